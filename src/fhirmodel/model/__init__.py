"""Runtime instances and choice values."""

from fhirmodel.model.choice import ChoiceValue
from fhirmodel.model.instance import (
    Instance,
    append_value,
    clear_value,
    coerce_value,
    get_primitive_element,
    get_value,
    new_instance,
    set_primitive_element,
    set_value,
)

__all__ = [
    "ChoiceValue",
    "Instance",
    "append_value",
    "clear_value",
    "coerce_value",
    "get_primitive_element",
    "get_value",
    "new_instance",
    "set_primitive_element",
    "set_value",
]
