"""Field descriptors.

A FieldDescriptor describes one element of a resource or datatype: its
Python name, its wire name, its declared types, its cardinality and an
optional terminology binding.
"""

from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

UNBOUNDED = None
"""Value of ``FieldDescriptor.max`` for fields that may repeat without limit."""


def choice_suffix(type_code: str) -> str:
    """Return the wire suffix for a choice variant (``dateTime`` -> ``DateTime``)."""
    return type_code[:1].upper() + type_code[1:]


class BindingStrength(str, Enum):
    """Terminology binding strengths, strongest first."""

    REQUIRED = "required"
    EXTENSIBLE = "extensible"
    PREFERRED = "preferred"
    EXAMPLE = "example"

    @property
    def is_required(self) -> bool:
        """Whether values outside the value set are errors."""
        return self is BindingStrength.REQUIRED


class Binding(BaseModel):
    """Binding of a coded field to a value set."""

    model_config = ConfigDict(frozen=True)

    strength: BindingStrength
    value_set: Optional[str] = None
    codes: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)

    @property
    def has_codes(self) -> bool:
        """Whether the binding carries an expansion that can be checked."""
        return any(self.codes.values())

    def contains(self, code: str, system: Optional[str] = None) -> bool:
        """Check whether a code (optionally qualified by system) is permitted.

        Args:
            code: Code value
            system: Code system URI; when absent every system is searched

        Returns:
            True if the code appears in the bound expansion
        """
        if system is not None:
            return code in self.codes.get(system, ())
        return any(code in codes for codes in self.codes.values())


class FieldDescriptor(BaseModel):
    """Describes one field of a FHIR type."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    wire_name: str = ""
    path: str
    types: Tuple[str, ...] = Field(min_length=1)
    target_profiles: Tuple[str, ...] = Field(default=(), alias="targets")
    min: int = Field(default=0, ge=0)
    max: Optional[int] = 1
    binding: Optional[Binding] = None
    is_choice: bool = Field(default=False, alias="choice")

    @field_validator("max", mode="before")
    @classmethod
    def parse_max(cls, v: Any) -> Any:
        """Accept ``"*"`` for an unbounded maximum."""
        if v == "*":
            return UNBOUNDED
        return v

    @model_validator(mode="before")
    @classmethod
    def default_wire_name(cls, data: Any) -> Any:
        """Use the field name on the wire unless a distinct wire name is given."""
        if isinstance(data, dict) and not data.get("wire_name"):
            data = dict(data)
            data["wire_name"] = data.get("name")
        return data

    @model_validator(mode="after")
    def check_invariants(self) -> "FieldDescriptor":
        """Enforce cardinality ordering and choice naming."""
        if self.max is not None and self.max < self.min:
            raise ValueError(
                f"{self.path}: max ({self.max}) is smaller than min ({self.min})"
            )
        if self.max is not None and self.max < 1:
            raise ValueError(f"{self.path}: max must be at least 1")
        if self.is_choice:
            if not self.path.endswith("[x]"):
                raise ValueError(f"{self.path}: choice element path must end in [x]")
            if self.max != 1:
                raise ValueError(f"{self.path}: choice elements cannot repeat")
        elif len(self.types) != 1:
            raise ValueError(f"{self.path}: only choice elements may declare several types")
        return self

    @property
    def is_repeated(self) -> bool:
        """Whether the field holds a list."""
        return self.max is None or self.max > 1

    @property
    def is_required(self) -> bool:
        """Whether at least one value is required."""
        return self.min >= 1

    @property
    def cardinality(self) -> str:
        """Cardinality in ``min..max`` notation."""
        return f"{self.min}..{'*' if self.max is None else self.max}"

    @property
    def type_code(self) -> str:
        """The single declared type of a non-choice field."""
        return self.types[0]

    def variant_wire_name(self, type_code: str) -> str:
        """Wire name of a choice variant (``value`` + ``String``)."""
        return f"{self.wire_name}{choice_suffix(type_code)}"

    def variant_type(self, key: str) -> Optional[str]:
        """Resolve a type-suffixed key to one of this choice field's types."""
        if not self.is_choice or not key.startswith(self.wire_name):
            return None
        suffix = key[len(self.wire_name):]
        for type_code in self.types:
            if choice_suffix(type_code) == suffix:
                return type_code
        return None
