"""Loading of type definition files.

Definitions are JSON documents of the form::

    {"name": "Goal", "kind": "resource", "fields": [...], "children": [...]}

The bundled R4 subset lives in ``fhirmodel/definitions``; extra directories
with the same layout can be loaded on top of it.
"""

from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Iterator, List, Union

import simplejson
from pydantic import ValidationError

from fhirmodel.core.exceptions import DefinitionError
from fhirmodel.descriptors.primitives import PrimitiveType
from fhirmodel.descriptors.types import TypeDescriptor
from fhirmodel.utils.logging import get_logger

logger = get_logger(__name__)

PRIMITIVES_FILE = "primitives.json"
TYPE_DIRECTORIES = ("types", "resources")

Source = Union[Path, Traversable]


def bundled_definitions() -> Traversable:
    """Return the directory of definitions shipped with the package."""
    return resources.files("fhirmodel") / "definitions"


def _read_json(source: Source) -> dict:
    try:
        with source.open("r", encoding="utf-8") as fh:
            return simplejson.load(fh)
    except (OSError, simplejson.JSONDecodeError) as e:
        raise DefinitionError(f"Cannot read definition file {source}: {e}") from e


def parse_type(data: dict) -> TypeDescriptor:
    """Build a TypeDescriptor from a decoded definition document.

    Raises:
        DefinitionError: If the document does not describe a valid type
    """
    try:
        return TypeDescriptor.model_validate(data)
    except ValidationError as e:
        name = data.get("name", "<unnamed>") if isinstance(data, dict) else "<invalid>"
        raise DefinitionError(f"Invalid definition for {name}: {e}") from e


def load_type_file(source: Source) -> TypeDescriptor:
    """Load one type definition file."""
    return parse_type(_read_json(source))


def load_primitives(source: Source) -> List[PrimitiveType]:
    """Load the primitive type table."""
    data = _read_json(source)
    try:
        return [PrimitiveType.model_validate(item) for item in data["primitives"]]
    except (KeyError, TypeError, ValidationError) as e:
        raise DefinitionError(f"Invalid primitive table {source}: {e}") from e


def iter_type_files(root: Source) -> Iterator[Source]:
    """Yield type definition files under ``root`` in a stable order."""
    for subdir in TYPE_DIRECTORIES:
        directory = root / subdir
        if not directory.is_dir():
            continue
        entries = sorted(
            (entry for entry in directory.iterdir() if entry.name.endswith(".json")),
            key=lambda entry: entry.name,
        )
        yield from entries


def load_definitions(root: Source) -> List[TypeDescriptor]:
    """Load every type definition below a definitions directory.

    Args:
        root: Directory containing ``types/`` and/or ``resources/``

    Returns:
        Top-level descriptors, children still nested
    """
    descriptors = [load_type_file(entry) for entry in iter_type_files(root)]
    logger.debug("definition_files_read", root=str(root), count=len(descriptors))
    return descriptors
