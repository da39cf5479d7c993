"""FHIR JSON text representation.

Built on the hash representation; text is produced and parsed with
simplejson in decimal mode so that ``decimal`` values keep their exact
lexical form (``1.50`` stays ``1.50``).
"""

from typing import Any, Dict, Optional, Union

import simplejson

from fhirmodel.config import get_settings
from fhirmodel.core.exceptions import TypeMismatchError
from fhirmodel.serialization.hash_format import HashFormat


class JsonFormat(HashFormat):
    """JSON text documents."""

    name = "json"

    def __init__(self, indent: Optional[int] = None):
        """Initialize the format.

        Args:
            indent: Indentation for output; defaults to ``Settings.json_indent``
        """
        self.indent = indent if indent is not None else get_settings().json_indent

    def finish(self, node: Dict[str, Any]) -> str:
        return simplejson.dumps(node, use_decimal=True, indent=self.indent)

    def parse(self, document: Union[str, bytes]) -> Dict[str, Any]:
        if not isinstance(document, (str, bytes)):
            raise TypeMismatchError(
                f"expected JSON text, got {type(document).__name__}"
            )
        try:
            node = simplejson.loads(document, use_decimal=True)
        except simplejson.JSONDecodeError as e:
            raise TypeMismatchError(f"invalid JSON document: {e}") from e
        return super().parse(node)
