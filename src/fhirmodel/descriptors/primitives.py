"""FHIR primitive type table.

Each primitive carries the lexical pattern published with the FHIR R4
definitions and the Python representation used by instances:

- ``boolean``  -> ``bool``
- ``integer``, ``unsignedInt``, ``positiveInt`` -> ``int``
- ``decimal``  -> ``decimal.Decimal`` (keeps precision and trailing zeros)
- everything else -> ``str`` holding the exact lexical form
"""

import re
from decimal import Decimal, InvalidOperation
from enum import Enum
from functools import lru_cache
from typing import Any, Optional, Pattern

from pydantic import BaseModel, ConfigDict

from fhirmodel.core.exceptions import TypeMismatchError


class ValueType(str, Enum):
    """Python representation families for primitive values."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    DECIMAL = "decimal"
    STRING = "string"


@lru_cache(maxsize=None)
def _compile(pattern: str) -> Pattern[str]:
    return re.compile(pattern)


class PrimitiveType(BaseModel):
    """A FHIR primitive type and its lexical rules."""

    model_config = ConfigDict(frozen=True)

    name: str
    value_type: ValueType
    pattern: Optional[str] = None

    def coerce(self, value: Any, path: Optional[str] = None) -> Any:
        """Normalise a Python value for storage in an instance.

        Args:
            value: Value supplied by the caller
            path: Element path used in error messages

        Returns:
            The value in its canonical Python representation

        Raises:
            TypeMismatchError: If the value has the wrong Python type
        """
        if self.value_type is ValueType.BOOLEAN:
            if isinstance(value, bool):
                return value
        elif self.value_type is ValueType.INTEGER:
            if isinstance(value, int) and not isinstance(value, bool):
                return value
        elif self.value_type is ValueType.DECIMAL:
            if isinstance(value, Decimal):
                return value
            if isinstance(value, int) and not isinstance(value, bool):
                return Decimal(value)
        elif isinstance(value, str):
            return value

        raise TypeMismatchError(
            f"expected {self.name} value, got {type(value).__name__}", path=path
        )

    def from_native(self, value: Any, path: Optional[str] = None) -> Any:
        """Accept a value from a native document tree (parsed JSON or a hash).

        Floats are accepted for decimals through their shortest repr so that
        hand-built trees stay usable; JSON text is always parsed to Decimal.
        """
        if self.value_type is ValueType.DECIMAL and isinstance(value, float):
            return Decimal(repr(value))
        return self.coerce(value, path)

    def to_lexical(self, value: Any) -> str:
        """Render a stored value in its FHIR lexical form."""
        if self.value_type is ValueType.BOOLEAN:
            return "true" if value else "false"
        return str(value)

    def from_lexical(self, text: str, path: Optional[str] = None) -> Any:
        """Parse a lexical form (XML attribute value) into a stored value.

        Raises:
            TypeMismatchError: If the text cannot represent this primitive
        """
        if self.value_type is ValueType.BOOLEAN:
            if text == "true":
                return True
            if text == "false":
                return False
        elif self.value_type is ValueType.INTEGER:
            if re.fullmatch(r"-?[0-9]+", text):
                return int(text)
        elif self.value_type is ValueType.DECIMAL:
            try:
                return Decimal(text)
            except InvalidOperation:
                pass
        else:
            return text

        raise TypeMismatchError(f"{text!r} is not a valid {self.name}", path=path)

    def matches(self, value: Any) -> bool:
        """Check a stored value against the primitive's lexical pattern."""
        if self.pattern is None:
            return True
        return _compile(self.pattern).fullmatch(self.to_lexical(value)) is not None
