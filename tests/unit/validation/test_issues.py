"""Tests for validation issues and reports."""

import pytest

from fhirmodel.core.exceptions import (
    BindingWarning,
    CardinalityError,
    ChoiceConflictError,
    FHIRModelError,
    InvalidCodeError,
)
from fhirmodel.validation import (
    ValidationIssue,
    ValidationReport,
    ValidationSeverity,
    ValidationType,
)


def make_issue(error_type=CardinalityError, severity=ValidationSeverity.ERROR):
    """Build an issue with fixed location data."""
    return ValidationIssue(
        severity,
        ValidationType.CARDINALITY,
        error_type,
        "AuditEvent.agent[0].requestor",
        "AuditEvent.agent.requestor",
        "AuditEvent.agent.requestor is required",
        details="Cardinality is 1..1",
    )


@pytest.mark.validation
class TestValidationIssue:
    """Test single findings."""

    def test_issue_id(self):
        """Test issues get a short unique identifier."""
        first, second = make_issue(), make_issue()

        assert first.issue_id.startswith("VAL-")
        assert first.issue_id != second.issue_id

    def test_to_exception(self):
        """Test the matching exception carries message and location."""
        error = make_issue().to_exception()

        assert isinstance(error, CardinalityError)
        assert error.path == "AuditEvent.agent[0].requestor"
        assert str(error) == (
            "AuditEvent.agent[0].requestor: AuditEvent.agent.requestor is required"
        )

    def test_warning_to_exception(self):
        """Test warnings convert to BindingWarning objects."""
        warning = make_issue(BindingWarning, ValidationSeverity.WARNING).to_exception()

        assert isinstance(warning, UserWarning)
        assert warning.path == "AuditEvent.agent[0].requestor"

    def test_operation_outcome_issue(self):
        """Test conversion to an OperationOutcome issue component."""
        outcome = make_issue().to_operation_outcome_issue()

        assert outcome["severity"] == "error"
        assert outcome["code"] == "required"
        assert outcome["expression"] == ["AuditEvent.agent[0].requestor"]
        assert outcome["details"] == {"text": "Cardinality is 1..1"}


@pytest.mark.validation
class TestValidationReport:
    """Test report aggregation."""

    def test_empty_report(self):
        """Test an empty report is valid and says so in its outcome."""
        report = ValidationReport("Goal")

        assert report.is_valid is True
        assert len(report) == 0
        report.raise_for_errors()
        outcome = report.to_operation_outcome()
        assert outcome["resourceType"] == "OperationOutcome"
        assert outcome["issue"][0]["severity"] == "information"

    def test_errors_and_warnings(self):
        """Test findings are split by severity."""
        error = make_issue()
        warning = make_issue(BindingWarning, ValidationSeverity.WARNING)
        report = ValidationReport("AuditEvent", [warning, error])

        assert report.errors == [error]
        assert report.warnings == [warning]
        assert report.is_valid is False
        assert list(report) == [warning, error]

    def test_of_type_includes_subclasses(self):
        """Test of_type matches subclasses of the requested error."""
        conflict = make_issue(ChoiceConflictError)
        code = make_issue(InvalidCodeError)
        report = ValidationReport("CodeSystem", [conflict, code])

        assert report.of_type(CardinalityError) == [conflict]
        assert report.of_type(FHIRModelError) == [conflict, code]

    def test_raise_for_errors(self):
        """Test the first error is raised as its exception class."""
        report = ValidationReport(
            "AuditEvent",
            [make_issue(BindingWarning, ValidationSeverity.WARNING), make_issue(InvalidCodeError)],
        )

        with pytest.raises(InvalidCodeError):
            report.raise_for_errors()
