"""Generate type definition files from FHIR StructureDefinition bundles.

Reads the ``profiles-types.json`` and ``profiles-resources.json`` bundles
published with the FHIR specification (plus, optionally, the
``valuesets.json`` and ``v3-codesystems.json`` bundles for binding code
expansion) and writes the JSON definition files consumed by
``fhirmodel.descriptors.loader``::

    fhirmodel-generate-definitions --in-dir fhir-r4/ --out definitions/ \\
        AuditEvent CodeSystem Encounter
"""

import argparse
import keyword
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import simplejson

from fhirmodel.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)

FHIR_TYPE_EXTENSION = "http://hl7.org/fhir/StructureDefinition/structuredefinition-fhir-type"
REGEX_EXTENSION = "http://hl7.org/fhir/StructureDefinition/regex"
SYSTEM_TYPE_PREFIX = "http://hl7.org/fhirpath/System."

NESTED_TYPE_CODES = ("BackboneElement", "Element")
ABSTRACT_TYPES = ("Resource", "DomainResource", "Element", "BackboneElement")

PRIMITIVE_VALUE_TYPES = {
    "boolean": "boolean",
    "integer": "integer",
    "unsignedInt": "integer",
    "positiveInt": "integer",
    "decimal": "decimal",
}

# System types used where an element carries no fhir-type extension
SYSTEM_TYPES = {
    "String": "string",
    "Boolean": "boolean",
    "Integer": "integer",
    "Decimal": "decimal",
    "Date": "date",
    "DateTime": "dateTime",
    "Time": "time",
}


@dataclass
class TypeSpec:
    """A type definition as written to disk."""

    name: str
    kind: str
    fields: List[Dict[str, Any]] = field(default_factory=list)
    children: List["TypeSpec"] = field(default_factory=list)


def load_bundle_resources(paths: Iterable[Path], resource_type: str) -> List[dict]:
    """Collect resources of one type from FHIR Bundle files.

    Args:
        paths: Bundle files; missing files are skipped
        resource_type: ``StructureDefinition``, ``ValueSet`` or ``CodeSystem``

    Returns:
        Matching resources in bundle order
    """
    found: List[dict] = []
    for path in paths:
        if not path.is_file():
            continue
        with path.open(encoding="utf-8") as fh:
            bundle = simplejson.load(fh)
        for entry in bundle.get("entry", []):
            res = entry.get("resource")
            if res and res.get("resourceType") == resource_type:
                found.append(res)
    return found


def strip_version(url: Optional[str]) -> Optional[str]:
    """Drop a ``|version`` suffix from a canonical URL."""
    if not url:
        return url
    return url.split("|", 1)[0]


def last_path_segment(url: str) -> str:
    """Return the final segment of a URL (``.../Patient`` -> ``Patient``)."""
    return url.rsplit("/", 1)[-1]


def python_name(wire_name: str) -> str:
    """Python field name for a wire name; keywords get a ``local_`` prefix."""
    if keyword.iskeyword(wire_name):
        return f"local_{wire_name}"
    return wire_name


def nested_type_name(path: str) -> str:
    """Qualified type name for a backbone element path.

    ``CodeSystem.concept.property`` -> ``CodeSystem.Concept.Property``
    """
    root, *rest = path.split(".")
    return ".".join([root] + [seg[:1].upper() + seg[1:] for seg in rest])


def element_type_code(type_entry: Dict[str, Any]) -> str:
    """Resolve an ElementDefinition type entry to a FHIR type code."""
    for ext in type_entry.get("extension", []):
        if ext.get("url") == FHIR_TYPE_EXTENSION:
            return ext.get("valueUrl") or ext.get("valueUri")
    code = type_entry["code"]
    if code.startswith(SYSTEM_TYPE_PREFIX):
        return SYSTEM_TYPES.get(code[len(SYSTEM_TYPE_PREFIX):], "string")
    return last_path_segment(code)


class CodeExpander:
    """Expands ValueSets to ``{system: [codes]}`` from local CodeSystems."""

    def __init__(self, value_sets: List[dict], code_systems: List[dict]):
        """Initialize the expander.

        Args:
            value_sets: ValueSet resources
            code_systems: CodeSystem resources
        """
        self.value_sets = {vs["url"]: vs for vs in value_sets if "url" in vs}
        self.code_systems = {cs["url"]: cs for cs in code_systems if "url" in cs}

    def system_codes(self, system: str) -> List[str]:
        """All codes of a CodeSystem, hierarchy flattened depth first."""
        cs = self.code_systems.get(system)
        if cs is None:
            return []
        codes: List[str] = []

        def walk(concepts: List[dict]) -> None:
            for concept in concepts:
                codes.append(concept["code"])
                walk(concept.get("concept", []))

        walk(cs.get("concept", []))
        return codes

    def expand(self, url: str, _seen: Optional[Set[str]] = None) -> Dict[str, List[str]]:
        """Expand a ValueSet by URL.

        Includes listing concepts are taken as is; whole-system includes are
        resolved from known CodeSystems; filters are not evaluated.

        Returns:
            Mapping of code system URI to ordered codes (empty when unknown)
        """
        seen = _seen if _seen is not None else set()
        url = strip_version(url)
        vs = self.value_sets.get(url)
        if vs is None or url in seen:
            return {}
        seen.add(url)

        expansion: Dict[str, List[str]] = {}

        def add(system: str, codes: Iterable[str]) -> None:
            bucket = expansion.setdefault(system, [])
            for code in codes:
                if code not in bucket:
                    bucket.append(code)

        for include in vs.get("compose", {}).get("include", []):
            for nested_url in include.get("valueSet", []):
                for system, codes in self.expand(nested_url, seen).items():
                    add(system, codes)
            system = include.get("system")
            if not system:
                continue
            if include.get("concept"):
                add(system, (c["code"] for c in include["concept"]))
            elif not include.get("filter"):
                add(system, self.system_codes(system))

        for exclude in vs.get("compose", {}).get("exclude", []):
            system = exclude.get("system")
            dropped = {c["code"] for c in exclude.get("concept", [])}
            if system in expansion:
                expansion[system] = [c for c in expansion[system] if c not in dropped]

        return {system: codes for system, codes in expansion.items() if codes}


def build_field(
    element: Dict[str, Any], expander: Optional[CodeExpander]
) -> Optional[Dict[str, Any]]:
    """Convert one snapshot ElementDefinition into a field entry.

    Returns:
        Field entry, or None for prohibited (``max == "0"``) elements
    """
    path = element["path"]
    if element.get("max") == "0":
        return None

    segment = path.rsplit(".", 1)[-1]
    is_choice = segment.endswith("[x]")
    wire_name = segment[:-3] if is_choice else segment

    if "contentReference" in element:
        types = [nested_type_name(element["contentReference"].lstrip("#"))]
        target_entries: List[dict] = []
    else:
        target_entries = element.get("type", [])
        types = []
        for entry in target_entries:
            code = element_type_code(entry)
            if code in NESTED_TYPE_CODES:
                code = nested_type_name(path)
            if code not in types:
                types.append(code)

    targets: List[str] = []
    for entry in target_entries:
        for profile in entry.get("targetProfile", []):
            target = last_path_segment(profile)
            if target not in targets:
                targets.append(target)

    spec: Dict[str, Any] = {"name": python_name(wire_name)}
    if spec["name"] != wire_name:
        spec["wire_name"] = wire_name
    spec["path"] = path
    spec["types"] = types
    if targets:
        spec["targets"] = targets
    spec["min"] = element.get("min", 0)
    max_value = element.get("max", "1")
    spec["max"] = "*" if max_value == "*" else int(max_value)

    binding = element.get("binding")
    if binding and binding.get("strength"):
        value_set = strip_version(binding.get("valueSet"))
        codes = expander.expand(value_set) if (expander and value_set) else {}
        spec["binding"] = {
            "strength": binding["strength"],
            "value_set": value_set,
            "codes": codes,
        }
    if is_choice:
        spec["choice"] = True
    return spec


def build_type(
    sd: Dict[str, Any], expander: Optional[CodeExpander] = None
) -> TypeSpec:
    """Build a TypeSpec tree from a StructureDefinition snapshot.

    Args:
        sd: StructureDefinition resource with a snapshot
        expander: Optional binding code expander

    Returns:
        Root TypeSpec with backbone element children nested under it
    """
    root_name = sd["type"]
    kind = "resource" if sd.get("kind") == "resource" else "complex-type"
    root = TypeSpec(name=root_name, kind=kind)
    by_path: Dict[str, TypeSpec] = {root_name: root}

    for element in sd.get("snapshot", {}).get("element", []):
        path = element["path"]
        if "." not in path:
            continue
        parent_path = path.rsplit(".", 1)[0]
        parent = by_path.get(parent_path)
        if parent is None:
            continue

        spec = build_field(element, expander)
        if spec is None:
            continue
        parent.fields.append(spec)

        if nested_type_name(path) in spec["types"] and "contentReference" not in element:
            child = TypeSpec(name=nested_type_name(path), kind="backbone-element")
            parent.children.append(child)
            by_path[path] = child

    return root


def referenced_types(spec: TypeSpec) -> Set[str]:
    """Type codes referenced anywhere in a TypeSpec tree."""
    found: Set[str] = set()
    for fd in spec.fields:
        found.update(fd["types"])
    for child in spec.children:
        found.update(referenced_types(child))
    return found


def collect_types(
    definitions: Dict[str, Dict[str, Any]],
    roots: Iterable[str],
    expander: Optional[CodeExpander] = None,
) -> List[TypeSpec]:
    """Build the requested types plus every complex type they reach.

    Args:
        definitions: Base (non-profile) StructureDefinitions keyed by type
        roots: Type names to start from
        expander: Optional binding code expander

    Returns:
        TypeSpecs sorted by name
    """
    built: Dict[str, TypeSpec] = {}
    pending = list(roots)
    while pending:
        name = pending.pop()
        if name in built or name in ABSTRACT_TYPES:
            continue
        sd = definitions.get(name)
        if sd is None or sd.get("kind") == "primitive-type":
            continue
        built[name] = build_type(sd, expander)
        pending.extend(sorted(referenced_types(built[name])))
    return [built[name] for name in sorted(built)]


def primitive_table(definitions: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Build the primitive type table with lexical regexes."""
    table = []
    for name in sorted(definitions):
        sd = definitions[name]
        if sd.get("kind") != "primitive-type":
            continue
        entry: Dict[str, Any] = {
            "name": name,
            "value_type": PRIMITIVE_VALUE_TYPES.get(name, "string"),
        }
        for element in sd.get("snapshot", {}).get("element", []):
            if element.get("path") != f"{name}.value":
                continue
            for type_entry in element.get("type", []):
                for ext in type_entry.get("extension", []):
                    if ext.get("url") == REGEX_EXTENSION:
                        entry["pattern"] = ext.get("valueString")
        table.append(entry)
    return table


def render_type(spec: TypeSpec, indent: int = 0) -> str:
    """Render a TypeSpec with one field per line."""
    pad = " " * indent
    lines = [
        f"{pad}{{",
        f'{pad}  "name": {simplejson.dumps(spec.name)},',
        f'{pad}  "kind": {simplejson.dumps(spec.kind)},',
        f'{pad}  "fields": [',
    ]
    rendered = [f"{pad}    {simplejson.dumps(fd, ensure_ascii=False)}" for fd in spec.fields]
    lines.append(",\n".join(rendered))
    if spec.children:
        lines.append(f"{pad}  ],")
        lines.append(f'{pad}  "children": [')
        lines.append(",\n".join(render_type(child, indent + 4) for child in spec.children))
    lines.append(f"{pad}  ]")
    lines.append(f"{pad}}}")
    return "\n".join(lines)


def render_primitives(table: List[Dict[str, Any]]) -> str:
    """Render the primitive table with one entry per line."""
    body = ",\n".join(f"    {simplejson.dumps(entry)}" for entry in table)
    return f'{{\n  "primitives": [\n{body}\n  ]\n}}\n'


def index_definitions(structure_definitions: List[dict]) -> Dict[str, Dict[str, Any]]:
    """Keep base definitions (not constraint profiles), keyed by type name."""
    definitions: Dict[str, Dict[str, Any]] = {}
    for sd in structure_definitions:
        if sd.get("derivation") == "constraint":
            continue
        if sd.get("kind") == "logical":
            continue
        definitions.setdefault(sd["type"], sd)
    return definitions


def generate(
    in_dir: Path, out_dir: Path, resources: List[str]
) -> Tuple[int, int]:
    """Generate definition files for resources and the types they use.

    Args:
        in_dir: Directory holding the FHIR definition bundles
        out_dir: Output definitions directory
        resources: Resource type names to generate

    Returns:
        ``(type_files, primitive_count)``
    """
    structure_definitions = load_bundle_resources(
        [in_dir / "profiles-types.json", in_dir / "profiles-resources.json"],
        "StructureDefinition",
    )
    terminology = [in_dir / "valuesets.json", in_dir / "v3-codesystems.json"]
    expander = CodeExpander(
        load_bundle_resources(terminology, "ValueSet"),
        load_bundle_resources(terminology, "CodeSystem"),
    )
    definitions = index_definitions(structure_definitions)

    specs = collect_types(definitions, resources, expander)
    for spec in specs:
        subdir = "resources" if spec.kind == "resource" else "types"
        target = out_dir / subdir / f"{spec.name}.json"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(render_type(spec) + "\n", encoding="utf-8")

    table = primitive_table(definitions)
    (out_dir / "primitives.json").write_text(render_primitives(table), encoding="utf-8")

    logger.info(
        "definitions_generated",
        out_dir=str(out_dir),
        types=len(specs),
        primitives=len(table),
    )
    return len(specs), len(table)


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--in-dir", required=True, type=Path, help="Directory with FHIR definition bundles"
    )
    parser.add_argument(
        "--out", required=True, type=Path, help="Output definitions directory"
    )
    parser.add_argument("resources", nargs="+", help="Resource types to generate")
    args = parser.parse_args(argv)

    setup_logging()
    type_count, primitive_count = generate(args.in_dir, args.out, args.resources)
    print(f"Wrote {type_count} type files and {primitive_count} primitives to {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
