"""Instance validation.

The Validator walks an instance tree and collects findings instead of
stopping at the first problem, so a draft resource can be reported on in
full. Checks performed:

- minimum and maximum cardinality of every field;
- primitive items carry a value, an id or extensions (ids and extensions
  are validated like any other element);
- at most one variant per choice field, and one when the field is required;
- lexical form of primitive values against their regular expressions;
- terminology bindings on ``code``, ``Coding`` and ``CodeableConcept``
  values (errors for ``required`` bindings, warnings otherwise);
- target resource types of literal ``Reference.reference`` values.
"""

import re
from typing import Any, List, Optional

from fhirmodel.core.exceptions import (
    BindingWarning,
    CardinalityError,
    ChoiceConflictError,
    InvalidCodeError,
    InvalidValueError,
    TypeMismatchError,
)
from fhirmodel.descriptors.fields import FieldDescriptor
from fhirmodel.descriptors.registry import RESOURCE, TypeRegistry
from fhirmodel.model.instance import Instance
from fhirmodel.utils.logging import get_logger
from fhirmodel.validation.issues import (
    ErrorType,
    ValidationIssue,
    ValidationReport,
    ValidationSeverity,
    ValidationType,
)

logger = get_logger(__name__)

CODING = "Coding"
CODEABLE_CONCEPT = "CodeableConcept"
REFERENCE = "Reference"

# Literal references: [base/]Type/id[/_history/version]
LITERAL_REFERENCE = re.compile(
    r"(?:.*/)?(?P<type>[A-Z][A-Za-z]+)/[A-Za-z0-9\-.]{1,64}"
    r"(?:/_history/[A-Za-z0-9\-.]{1,64})?"
)


class Validator:
    """Collects validation findings for instances."""

    def __init__(self, registry: Optional[TypeRegistry] = None):
        """Initialize validator.

        Args:
            registry: Registry used to resolve primitive types; defaults to
                the registry of each validated instance
        """
        self.registry = registry

    def validate(self, instance: Instance) -> ValidationReport:
        """Validate an instance tree.

        Args:
            instance: Root instance

        Returns:
            Report listing every finding in document order
        """
        issues: List[ValidationIssue] = []
        registry = self.registry if self.registry is not None else instance.registry
        self._validate_instance(registry, instance, instance.type_name, issues)
        report = ValidationReport(instance.type_name, issues)

        logger.info(
            "validation_completed",
            resource_type=instance.type_name,
            errors=len(report.errors),
            warnings=len(report.warnings),
        )
        return report

    def _validate_instance(
        self,
        registry: TypeRegistry,
        instance: Instance,
        location: str,
        issues: List[ValidationIssue],
    ) -> None:
        populated = dict(
            (fd.name, (stored, elements))
            for fd, stored, elements in instance.populated_entries()
        )

        for fd in instance.descriptor.fields:
            stored, elements = populated.get(fd.name, (None, None))
            field_location = f"{location}.{fd.wire_name}"

            if fd.is_choice:
                self._validate_choice(
                    registry, fd, stored or {}, elements or {}, location, issues
                )
                continue

            if fd.is_repeated:
                values = stored or []
                elements = elements or [None] * len(values)
            elif stored is None and elements is None:
                values, elements = [], []
            else:
                values, elements = [stored], [elements]
            self._check_cardinality(fd, len(values), field_location, issues)

            for index, (value, element) in enumerate(zip(values, elements)):
                item_location = (
                    f"{field_location}[{index}]" if fd.is_repeated else field_location
                )
                self._validate_value(
                    registry, fd, fd.type_code, value, item_location, issues, element
                )

    def _validate_choice(
        self,
        registry: TypeRegistry,
        fd: FieldDescriptor,
        variants: dict,
        elements: dict,
        location: str,
        issues: List[ValidationIssue],
    ) -> None:
        type_codes = list(variants) + [tc for tc in elements if tc not in variants]
        if len(type_codes) > 1:
            names = [fd.variant_wire_name(tc) for tc in type_codes]
            self._add(
                issues,
                ValidationSeverity.ERROR,
                ValidationType.CHOICE,
                ChoiceConflictError,
                f"{location}.{fd.wire_name}[x]",
                fd.path,
                f"Only one of {', '.join(names)} may be present",
            )
        elif not type_codes and fd.is_required:
            self._add(
                issues,
                ValidationSeverity.ERROR,
                ValidationType.CARDINALITY,
                CardinalityError,
                f"{location}.{fd.wire_name}[x]",
                fd.path,
                f"One of {', '.join(fd.variant_wire_name(tc) for tc in fd.types)} "
                "is required",
            )

        for type_code in type_codes:
            self._validate_value(
                registry,
                fd,
                type_code,
                variants.get(type_code),
                f"{location}.{fd.variant_wire_name(type_code)}",
                issues,
                elements.get(type_code),
            )

    def _check_cardinality(
        self,
        fd: FieldDescriptor,
        count: int,
        location: str,
        issues: List[ValidationIssue],
    ) -> None:
        if count < fd.min:
            message = (
                f"{fd.path} is required"
                if count == 0
                else f"{fd.path} needs at least {fd.min} values, found {count}"
            )
        elif fd.max is not None and count > fd.max:
            message = f"{fd.path} allows at most {fd.max} values, found {count}"
        else:
            return
        self._add(
            issues,
            ValidationSeverity.ERROR,
            ValidationType.CARDINALITY,
            CardinalityError,
            location,
            fd.path,
            message,
            details=f"Cardinality is {fd.cardinality}",
        )

    def _validate_value(
        self,
        registry: TypeRegistry,
        fd: FieldDescriptor,
        type_code: str,
        value: Any,
        location: str,
        issues: List[ValidationIssue],
        element: Optional[Instance] = None,
    ) -> None:
        if type_code == RESOURCE:
            if not isinstance(value, Instance) or not value.descriptor.is_resource:
                self._type_issue(fd, type_code, location, issues)
                return
            self._validate_instance(registry, value, location, issues)
            return

        if registry.is_primitive(type_code):
            primitive = registry.primitive(type_code)
            if element is not None:
                self._validate_instance(registry, element, location, issues)
            if value is None:
                if element is None or not any(True for _ in element.populated_entries()):
                    self._add(
                        issues,
                        ValidationSeverity.ERROR,
                        ValidationType.CARDINALITY,
                        CardinalityError,
                        location,
                        fd.path,
                        f"{fd.path} item needs a value, an id or extensions",
                    )
                return
            if isinstance(value, Instance):
                self._type_issue(fd, type_code, location, issues)
                return
            if not primitive.matches(value):
                self._add(
                    issues,
                    ValidationSeverity.ERROR,
                    ValidationType.VALUE,
                    InvalidValueError,
                    location,
                    fd.path,
                    f"{primitive.to_lexical(value)!r} is not a valid {type_code}",
                )
            if fd.binding is not None:
                self._check_codes(fd, [(value, None)], location, issues)
            return

        if not isinstance(value, Instance) or value.type_name != type_code:
            self._type_issue(fd, type_code, location, issues)
            return

        self._validate_instance(registry, value, location, issues)

        if fd.binding is not None and type_code == CODING:
            self._check_codes(fd, _codings([value]), location, issues)
        elif fd.binding is not None and type_code == CODEABLE_CONCEPT:
            self._check_codes(fd, _codings(value.coding), location, issues)
        elif type_code == REFERENCE:
            self._check_reference(fd, value, location, issues)

    def _check_codes(
        self,
        fd: FieldDescriptor,
        codes: List[tuple],
        location: str,
        issues: List[ValidationIssue],
    ) -> None:
        """Check ``(code, system)`` pairs against the field's binding.

        The value passes when any pair is in the bound code set; a value
        with no codes at all (text-only concept) is not checked.
        """
        binding = fd.binding
        if binding is None or not binding.has_codes or not codes:
            return
        if any(binding.contains(code, system) for code, system in codes):
            return

        shown = ", ".join(
            code if system is None else f"{system}|{code}" for code, system in codes
        )
        message = f"{shown} is not in value set {binding.value_set or fd.path}"
        details = f"Binding strength is {binding.strength.value}"

        if binding.strength.is_required:
            self._add(
                issues,
                ValidationSeverity.ERROR,
                ValidationType.VALUE_SET,
                InvalidCodeError,
                location,
                fd.path,
                message,
                details=details,
            )
        else:
            self._add(
                issues,
                ValidationSeverity.WARNING,
                ValidationType.VALUE_SET,
                BindingWarning,
                location,
                fd.path,
                message,
                details=details,
            )

    def _check_reference(
        self,
        fd: FieldDescriptor,
        reference: Instance,
        location: str,
        issues: List[ValidationIssue],
    ) -> None:
        targets = fd.target_profiles
        if not targets or RESOURCE in targets:
            return

        found = []
        literal = reference.reference
        if literal and not literal.startswith("#"):
            match = LITERAL_REFERENCE.fullmatch(literal)
            if match:
                found.append(match.group("type"))
        if reference.type:
            found.append(reference.type.rsplit("/", 1)[-1])

        for type_name in found:
            if type_name not in targets:
                self._add(
                    issues,
                    ValidationSeverity.ERROR,
                    ValidationType.REFERENCE,
                    TypeMismatchError,
                    location,
                    fd.path,
                    f"Reference to {type_name} is not allowed; "
                    f"expected one of {', '.join(targets)}",
                )

    def _type_issue(
        self,
        fd: FieldDescriptor,
        type_code: str,
        location: str,
        issues: List[ValidationIssue],
    ) -> None:
        self._add(
            issues,
            ValidationSeverity.ERROR,
            ValidationType.STRUCTURE,
            TypeMismatchError,
            location,
            fd.path,
            f"Value is not a {type_code}",
        )

    @staticmethod
    def _add(
        issues: List[ValidationIssue],
        severity: ValidationSeverity,
        validation_type: ValidationType,
        error_type: ErrorType,
        location: str,
        path: str,
        message: str,
        details: Optional[str] = None,
    ) -> None:
        issues.append(
            ValidationIssue(
                severity, validation_type, error_type, location, path, message, details
            )
        )


def _codings(codings: List[Instance]) -> List[tuple]:
    return [(coding.code, coding.system) for coding in codings if coding.code]


def validate(instance: Instance) -> ValidationReport:
    """Validate an instance with a default Validator."""
    return Validator().validate(instance)
