"""Tagged union for choice (``value[x]``) fields."""

from dataclasses import dataclass
from typing import Any

from fhirmodel.descriptors.fields import choice_suffix


@dataclass(frozen=True)
class ChoiceValue:
    """One populated variant of a choice field.

    Attributes:
        type_code: FHIR type of the variant (``string``, ``CodeableConcept``)
        value: The variant's value
    """

    type_code: str
    value: Any

    @property
    def suffix(self) -> str:
        """Wire suffix for this variant (``String``, ``CodeableConcept``)."""
        return choice_suffix(self.type_code)

    def wire_name(self, logical_name: str) -> str:
        """Type-suffixed name of this variant for a logical field name."""
        return f"{logical_name}{self.suffix}"
