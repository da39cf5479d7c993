"""Bridge between fhirmodel instances and ``fhirclient`` model objects.

Conversion goes through the FHIR JSON object shape that both sides
understand. ``fhirclient`` types decimals as ``float``, so decimal values
lose their lexical precision when crossing into its models.
"""

import importlib
from decimal import Decimal
from typing import Any, Optional

from fhirclient.models.fhirabstractresource import FHIRAbstractResource

from fhirmodel.core.exceptions import TypeMismatchError, UnknownTypeError
from fhirmodel.descriptors.registry import TypeRegistry
from fhirmodel.model.instance import Instance
from fhirmodel.serialization import HashFormat, deserialize_resource, serialize


def _floats(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _floats(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_floats(v) for v in value]
    return value


def fhirclient_class(resource_type: str) -> type:
    """Return the ``fhirclient.models`` class for a resource type.

    Raises:
        UnknownTypeError: If fhirclient has no model for the type
    """
    try:
        module = importlib.import_module(f"fhirclient.models.{resource_type.lower()}")
        return getattr(module, resource_type)
    except (ImportError, AttributeError):
        raise UnknownTypeError(
            f"fhirclient has no model for {resource_type!r}"
        ) from None


def to_fhirclient(instance: Instance, strict: bool = True) -> FHIRAbstractResource:
    """Convert a resource instance into the matching fhirclient model.

    Args:
        instance: Resource instance
        strict: Passed to the fhirclient constructor

    Returns:
        fhirclient resource object

    Raises:
        TypeMismatchError: If the instance is not a resource
    """
    if not instance.descriptor.is_resource:
        raise TypeMismatchError(
            f"{instance.type_name} is not a resource type", path=instance.type_name
        )
    cls = fhirclient_class(instance.type_name)
    document = _floats(serialize(instance, HashFormat()))
    return cls(jsondict=document, strict=strict)


def from_fhirclient(
    resource: FHIRAbstractResource,
    strict: Optional[bool] = None,
    registry: Optional[TypeRegistry] = None,
) -> Instance:
    """Convert a fhirclient resource object into an instance.

    Args:
        resource: fhirclient resource object
        strict: Unknown-key policy for deserialization
        registry: Registry used for type resolution

    Returns:
        Resource instance
    """
    return deserialize_resource(
        resource.as_json(), HashFormat(), strict=strict, registry=registry
    )
