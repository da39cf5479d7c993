"""Validation findings and reports."""

from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Type, Union
from uuid import uuid4

from fhirmodel.core.exceptions import BindingWarning, FHIRModelError


class ValidationSeverity(Enum):
    """FHIR validation issue severity levels."""

    ERROR = "error"  # Content is invalid
    WARNING = "warning"  # Content could be improved
    INFORMATION = "information"  # Informational message


class ValidationType(Enum):
    """Kinds of validation check."""

    STRUCTURE = "structure"  # Types and shapes
    CARDINALITY = "cardinality"  # min/max bounds
    CHOICE = "choice"  # One variant per choice field
    VALUE_SET = "value_set"  # Terminology bindings
    VALUE = "value"  # Primitive lexical forms
    REFERENCE = "reference"  # Reference targets


# OperationOutcome issue-type codes (http://hl7.org/fhir/issue-type)
OUTCOME_CODES = {
    ValidationType.STRUCTURE: "structure",
    ValidationType.CARDINALITY: "required",
    ValidationType.CHOICE: "structure",
    ValidationType.VALUE_SET: "code-invalid",
    ValidationType.VALUE: "value",
    ValidationType.REFERENCE: "invalid",
}

ErrorType = Union[Type[FHIRModelError], Type[BindingWarning]]


class ValidationIssue:
    """Represents a validation issue."""

    def __init__(
        self,
        severity: ValidationSeverity,
        validation_type: ValidationType,
        error_type: ErrorType,
        location: str,
        path: str,
        message: str,
        details: Optional[str] = None,
    ):
        """Initialize validation issue.

        Args:
            severity: Issue severity
            validation_type: Type of validation
            error_type: Exception class this finding corresponds to
            location: Location in the instance, with list indexes
                (``AuditEvent.agent[0].requestor``)
            path: Element path of the field (``AuditEvent.agent.requestor``)
            message: Issue message
            details: Additional details
        """
        self.issue_id = f"VAL-{uuid4().hex[:8]}"
        self.severity = severity
        self.validation_type = validation_type
        self.error_type = error_type
        self.location = location
        self.path = path
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return (
            f"ValidationIssue({self.severity.value}, {self.error_type.__name__}, "
            f"{self.location!r}, {self.message!r})"
        )

    @property
    def is_error(self) -> bool:
        """Whether this issue makes the instance invalid."""
        return self.severity is ValidationSeverity.ERROR

    def to_exception(self) -> Union[FHIRModelError, BindingWarning]:
        """Build the exception or warning object matching this issue."""
        return self.error_type(self.message, path=self.location)

    def to_operation_outcome_issue(self) -> Dict[str, Any]:
        """Convert to FHIR OperationOutcome issue.

        Returns:
            OperationOutcome issue component
        """
        return {
            "severity": self.severity.value,
            "code": OUTCOME_CODES[self.validation_type],
            "diagnostics": self.message,
            "location": [self.location],
            "expression": [self.location],
            "details": {"text": self.details or self.message},
        }


class ValidationReport:
    """Ordered collection of validation issues for one instance."""

    def __init__(self, resource_type: str, issues: Optional[List[ValidationIssue]] = None):
        """Initialize report.

        Args:
            resource_type: Type name of the validated instance
            issues: Findings, in discovery order
        """
        self.resource_type = resource_type
        self.issues: List[ValidationIssue] = list(issues or [])

    def __iter__(self) -> Iterator[ValidationIssue]:
        return iter(self.issues)

    def __len__(self) -> int:
        return len(self.issues)

    @property
    def errors(self) -> List[ValidationIssue]:
        """Error-severity findings."""
        return [issue for issue in self.issues if issue.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        """Warning-severity findings."""
        return [
            issue
            for issue in self.issues
            if issue.severity is ValidationSeverity.WARNING
        ]

    @property
    def is_valid(self) -> bool:
        """True when no error-severity finding was reported."""
        return not self.errors

    def of_type(self, error_type: ErrorType) -> List[ValidationIssue]:
        """Findings whose error type is ``error_type`` or a subclass of it."""
        return [
            issue for issue in self.issues if issubclass(issue.error_type, error_type)
        ]

    def raise_for_errors(self) -> None:
        """Raise the exception for the first error-severity finding, if any."""
        errors = self.errors
        if errors:
            raise errors[0].to_exception()

    def to_operation_outcome(self) -> Dict[str, Any]:
        """Generate a FHIR OperationOutcome from the findings.

        An empty report yields a single informational "all OK" issue, as an
        OperationOutcome must carry at least one issue.
        """
        issues = [issue.to_operation_outcome_issue() for issue in self.issues]
        if not issues:
            issues.append(
                {
                    "severity": ValidationSeverity.INFORMATION.value,
                    "code": "informational",
                    "diagnostics": f"{self.resource_type} is valid",
                }
            )
        return {
            "resourceType": "OperationOutcome",
            "id": f"validation-{uuid4().hex[:8]}",
            "issue": issues,
        }
