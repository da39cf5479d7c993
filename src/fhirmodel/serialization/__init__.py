"""Serialization of instances to and from hash, JSON and XML documents."""

from typing import Any, Optional, Union

from fhirmodel.config import get_settings
from fhirmodel.descriptors.registry import TypeRegistry, get_registry
from fhirmodel.descriptors.types import TypeDescriptor
from fhirmodel.model.instance import Instance
from fhirmodel.serialization.base import Format, read_root, write_instance
from fhirmodel.serialization.hash_format import HashFormat
from fhirmodel.serialization.json_format import JsonFormat
from fhirmodel.serialization.xml_format import XmlFormat
from fhirmodel.utils.logging import log_context

FORMATS = {
    HashFormat.name: HashFormat,
    JsonFormat.name: JsonFormat,
    XmlFormat.name: XmlFormat,
}

FormatLike = Union[str, Format]


def get_format(fmt: FormatLike) -> Format:
    """Resolve a format name (``hash``, ``json``, ``xml``) or pass a Format through.

    Raises:
        ValueError: If the name is not a known format
    """
    if isinstance(fmt, Format):
        return fmt
    try:
        return FORMATS[fmt]()
    except KeyError:
        raise ValueError(
            f"Unknown format {fmt!r}; expected one of {', '.join(sorted(FORMATS))}"
        ) from None


def serialize(instance: Instance, fmt: FormatLike = "json") -> Any:
    """Serialize an instance.

    Args:
        instance: Instance to serialize
        fmt: Format name or Format object

    Returns:
        ``dict`` for the hash format, text for JSON and XML

    Raises:
        ChoiceConflictError: If a choice field has more than one variant
    """
    strategy = get_format(fmt)
    with log_context(resource_type=instance.type_name, document_format=strategy.name):
        return strategy.finish(write_instance(strategy, instance))


def _strictness(strict: Optional[bool]) -> bool:
    if strict is None:
        return not get_settings().ignore_unknown_fields
    return strict


def deserialize(
    document: Any,
    type_: Union[str, TypeDescriptor],
    fmt: FormatLike = "json",
    strict: Optional[bool] = None,
    registry: Optional[TypeRegistry] = None,
) -> Instance:
    """Deserialize a document into an instance of a known type.

    Args:
        document: Hash tree, JSON text or XML text
        type_: Expected type name or descriptor
        fmt: Format name or Format object
        strict: Raise on unknown keys; defaults to the inverse of
            ``Settings.ignore_unknown_fields``
        registry: Registry for type resolution; defaults to the shared one

    Returns:
        The populated instance

    Raises:
        UnknownFieldError: On unknown keys in strict mode
        CardinalityError: On list/scalar shape mismatch or too many values
        TypeMismatchError: On wrongly typed values or a resourceType mismatch
    """
    registry = registry if registry is not None else get_registry()
    descriptor = registry.lookup(type_) if isinstance(type_, str) else type_
    strategy = get_format(fmt)
    with log_context(resource_type=descriptor.name, document_format=strategy.name):
        return read_root(strategy, registry, document, descriptor, _strictness(strict))


def deserialize_resource(
    document: Any,
    fmt: FormatLike = "json",
    strict: Optional[bool] = None,
    registry: Optional[TypeRegistry] = None,
) -> Instance:
    """Deserialize a resource document, taking its type from the document.

    Raises:
        UnknownTypeError: If the document names an unregistered resource type
        TypeMismatchError: If the document does not name a resource type
    """
    registry = registry if registry is not None else get_registry()
    strategy = get_format(fmt)
    with log_context(document_format=strategy.name):
        return read_root(strategy, registry, document, None, _strictness(strict))


__all__ = [
    "FORMATS",
    "Format",
    "HashFormat",
    "JsonFormat",
    "XmlFormat",
    "deserialize",
    "deserialize_resource",
    "get_format",
    "serialize",
]
