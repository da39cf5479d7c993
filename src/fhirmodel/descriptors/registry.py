"""Type registry.

The registry maps FHIR type names to their descriptors. It is populated
once from definition files and treated as read-only afterwards.
"""

from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from fhirmodel.config import get_settings
from fhirmodel.core.exceptions import (
    DefinitionError,
    DuplicateTypeError,
    UnknownTypeError,
)
from fhirmodel.descriptors.loader import (
    PRIMITIVES_FILE,
    Source,
    bundled_definitions,
    load_definitions,
    load_primitives,
)
from fhirmodel.descriptors.primitives import PrimitiveType
from fhirmodel.descriptors.types import TypeDescriptor
from fhirmodel.utils.logging import get_logger

logger = get_logger(__name__)

RESOURCE = "Resource"
"""Abstract type code accepted by fields holding any resource (``contained``)."""

ELEMENT = "Element"
"""Datatype holding the ``id`` and ``extension`` of a primitive value."""


class TypeRegistry:
    """Name to descriptor map for composite and primitive FHIR types."""

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._types: Dict[str, TypeDescriptor] = {}
        self._primitives: Dict[str, PrimitiveType] = {}
        self._frozen = False

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._types

    def __iter__(self) -> Iterator[TypeDescriptor]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)

    @property
    def frozen(self) -> bool:
        """Whether the registry rejects further registrations."""
        return self._frozen

    def freeze(self) -> "TypeRegistry":
        """Stop accepting registrations."""
        self._frozen = True
        return self

    def _check_writable(self) -> None:
        if self._frozen:
            raise DefinitionError("Type registry is frozen")

    def register(self, type_name: str, descriptor: TypeDescriptor) -> None:
        """Register a descriptor and all its nested child descriptors.

        Args:
            type_name: Name to register under; must equal ``descriptor.name``
            descriptor: Type descriptor

        Raises:
            DuplicateTypeError: If the name, or a child's name, is taken
            DefinitionError: If the name disagrees with the descriptor
        """
        self._check_writable()
        if type_name != descriptor.name:
            raise DefinitionError(
                f"Cannot register {descriptor.name!r} under name {type_name!r}"
            )

        nested = list(descriptor.walk())
        names = set()
        for item in nested:
            if item.name in self._types or item.name in self._primitives:
                raise DuplicateTypeError(f"Type {item.name!r} is already registered")
            if item.name in names:
                raise DuplicateTypeError(
                    f"Type {item.name!r} is defined twice in {descriptor.name!r}"
                )
            names.add(item.name)

        for item in nested:
            self._types[item.name] = item
            logger.debug("type_registered", type_name=item.name, kind=item.kind.value)

    def register_primitive(self, primitive: PrimitiveType) -> None:
        """Register a primitive type.

        Raises:
            DuplicateTypeError: If the name is taken
        """
        self._check_writable()
        if primitive.name in self._primitives or primitive.name in self._types:
            raise DuplicateTypeError(f"Type {primitive.name!r} is already registered")
        self._primitives[primitive.name] = primitive

    def lookup(self, type_name: str) -> TypeDescriptor:
        """Return the descriptor registered under ``type_name``.

        Raises:
            UnknownTypeError: If no composite type has that name
        """
        try:
            return self._types[type_name]
        except KeyError:
            raise UnknownTypeError(f"Unknown type {type_name!r}") from None

    def contains(self, type_name: str) -> bool:
        """Check whether a composite type is registered."""
        return type_name in self._types

    def is_primitive(self, type_code: str) -> bool:
        """Check whether a type code names a primitive."""
        return type_code in self._primitives

    def primitive(self, type_code: str) -> PrimitiveType:
        """Return a primitive type.

        Raises:
            UnknownTypeError: If no primitive has that name
        """
        try:
            return self._primitives[type_code]
        except KeyError:
            raise UnknownTypeError(f"Unknown primitive type {type_code!r}") from None

    def resource_names(self) -> List[str]:
        """Names of all registered resource types, sorted."""
        return sorted(d.name for d in self._types.values() if d.is_resource)

    def check_references(self) -> None:
        """Ensure every declared field type resolves.

        Raises:
            DefinitionError: If a field names a type that is not registered
        """
        for descriptor in self._types.values():
            for fd in descriptor.fields:
                for type_code in fd.types:
                    if type_code == RESOURCE:
                        continue
                    if type_code not in self._types and type_code not in self._primitives:
                        raise DefinitionError(
                            f"Field {fd.path} refers to unknown type {type_code!r}"
                        )

    def load_directory(self, root: Source) -> int:
        """Register primitives and types found under a definitions directory.

        Args:
            root: Directory with an optional ``primitives.json`` plus
                ``types/`` and ``resources/`` subdirectories

        Returns:
            Number of top-level type definitions registered
        """
        primitives_file = root / PRIMITIVES_FILE
        if primitives_file.is_file():
            for primitive in load_primitives(primitives_file):
                self.register_primitive(primitive)

        descriptors = load_definitions(root)
        for descriptor in descriptors:
            self.register(descriptor.name, descriptor)

        logger.info(
            "definitions_loaded",
            source=str(root),
            types=len(descriptors),
            primitives=len(self._primitives),
        )
        return len(descriptors)

    def load_bundled(self) -> int:
        """Register the R4 definitions shipped with the package."""
        return self.load_directory(bundled_definitions())


def build_registry(extra_path: Optional[Path] = None) -> TypeRegistry:
    """Create a frozen registry from bundled and optional extra definitions.

    Args:
        extra_path: Additional definitions directory

    Returns:
        Populated, frozen registry
    """
    registry = TypeRegistry()
    registry.load_bundled()
    if extra_path is not None:
        registry.load_directory(extra_path)
    registry.check_references()
    return registry.freeze()


@lru_cache()
def get_registry() -> TypeRegistry:
    """Get the shared registry built from bundled definitions and settings."""
    return build_registry(get_settings().definitions_path)
