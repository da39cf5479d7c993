"""Tests for the instance validator."""

import pytest

from fhirmodel.core.exceptions import (
    BindingWarning,
    CardinalityError,
    ChoiceConflictError,
    InvalidCodeError,
    InvalidValueError,
    TypeMismatchError,
)
from fhirmodel.model import new_instance, set_primitive_element
from fhirmodel.serialization import deserialize
from fhirmodel.validation import (
    ValidationSeverity,
    ValidationType,
    Validator,
    validate,
)


@pytest.fixture
def validator(registry):
    """Validator bound to the shared registry."""
    return Validator(registry)


@pytest.fixture
def audit_event(audit_event_document):
    """Valid AuditEvent instance."""
    return deserialize(audit_event_document, "AuditEvent", fmt="hash")


@pytest.mark.validation
class TestValidDocuments:
    """Test the sample documents validate cleanly."""

    @pytest.mark.parametrize(
        "resource_type",
        ["AuditEvent", "CodeSystem", "ConceptMap", "Encounter", "Goal", "NutritionOrder"],
    )
    def test_no_errors(self, validator, sample_documents, resource_type):
        """Test sample resources produce no error findings."""
        instance = deserialize(sample_documents[resource_type], resource_type, fmt="hash")

        report = validator.validate(instance)

        assert report.errors == []
        assert report.is_valid is True

    def test_module_level_validate(self, audit_event):
        """Test the validate shortcut uses the instance's registry."""
        assert validate(audit_event).is_valid is True


@pytest.mark.validation
class TestCardinality:
    """Test minimum and maximum cardinality findings."""

    def test_missing_source(self, validator, audit_event):
        """Test a missing AuditEvent.source yields one CardinalityError."""
        del audit_event.source

        report = validator.validate(audit_event)

        assert len(report.errors) == 1
        issue = report.errors[0]
        assert issue.error_type is CardinalityError
        assert issue.location == "AuditEvent.source"
        assert issue.path == "AuditEvent.source"
        assert issue.validation_type is ValidationType.CARDINALITY

    def test_nested_location_has_index(self, validator, audit_event):
        """Test findings inside lists carry the item index."""
        agents = audit_event.agent
        del agents[1].requestor
        audit_event.agent = agents

        report = validator.validate(audit_event)

        assert [issue.location for issue in report.errors] == [
            "AuditEvent.agent[1].requestor"
        ]
        assert report.errors[0].path == "AuditEvent.agent.requestor"

    def test_empty_resource(self, validator, registry):
        """Test every required field of an empty resource is reported."""
        report = validator.validate(new_instance("AuditEvent", registry))

        locations = [issue.location for issue in report.of_type(CardinalityError)]
        assert locations == [
            "AuditEvent.type",
            "AuditEvent.recorded",
            "AuditEvent.agent",
            "AuditEvent.source",
        ]

    def test_required_choice_missing(self, validator, registry):
        """Test a required choice with no variant is reported on the [x] name."""
        prop = new_instance("CodeSystem.Concept.Property", registry, code="p")

        report = validator.validate(prop)

        assert [issue.location for issue in report.errors] == [
            "CodeSystem.Concept.Property.value[x]"
        ]
        assert report.errors[0].error_type is CardinalityError


@pytest.mark.validation
class TestChoiceExclusivity:
    """Test choice fields with several variants."""

    def test_two_variants_reported(self, validator, registry):
        """Test both variants set on one property is an error finding."""
        prop = new_instance("CodeSystem.Concept.Property", registry, code="p")
        prop.valueBoolean = True
        prop.valueString = "x"

        report = validator.validate(prop)

        assert len(report.errors) == 1
        issue = report.errors[0]
        assert issue.error_type is ChoiceConflictError
        assert issue.validation_type is ValidationType.CHOICE
        assert "valueBoolean" in issue.message
        assert "valueString" in issue.message

    def test_optional_choice_conflict(self, validator, registry, goal_document):
        """Test two variants are an error even when the choice is optional."""
        goal = deserialize(goal_document, "Goal", fmt="hash")
        assert goal.descriptor.field("start").is_required is False
        goal.startCodeableConcept = new_instance(
            "CodeableConcept", registry, text="Start of treatment"
        )

        report = validator.validate(goal)

        assert [issue.location for issue in report.errors] == ["Goal.start[x]"]
        assert report.errors[0].error_type is ChoiceConflictError

    def test_conflict_inside_resource(self, validator, code_system_document):
        """Test conflicts deep inside a resource carry their location."""
        code_system = deserialize(code_system_document, "CodeSystem", fmt="hash")
        prop = code_system.concept[0].property[0]
        prop.valueBoolean = True
        concept = code_system.concept[0]
        concept.property = [prop]
        code_system.concept = [concept]

        report = validator.validate(code_system)

        assert [issue.location for issue in report.errors] == [
            "CodeSystem.concept[0].property[0].value[x]"
        ]
        assert report.of_type(CardinalityError) == report.errors


@pytest.mark.validation
class TestBindings:
    """Test terminology binding findings."""

    def test_required_code_outside_value_set(self, validator, audit_event):
        """Test an AuditEvent.action outside C/R/U/D/E is an InvalidCodeError."""
        audit_event.action = "X"

        report = validator.validate(audit_event)

        assert len(report.errors) == 1
        issue = report.errors[0]
        assert issue.error_type is InvalidCodeError
        assert issue.location == "AuditEvent.action"
        assert issue.validation_type is ValidationType.VALUE_SET

    @pytest.mark.parametrize("code", ["C", "R", "U", "D", "E"])
    def test_required_codes_accepted(self, validator, audit_event, code):
        """Test every audit action code passes."""
        audit_event.action = code

        assert validator.validate(audit_event).errors == []

    def test_example_binding_only_warns(self, validator, encounter_document):
        """Test an out-of-set Encounter.type is only a warning."""
        encounter_document["type"] = [
            {"coding": [{"system": "http://example.org/types", "code": "ZZZ"}]}
        ]
        encounter = deserialize(encounter_document, "Encounter", fmt="hash")

        report = validator.validate(encounter)

        assert report.errors == []
        assert len(report.warnings) == 1
        warning = report.warnings[0]
        assert warning.error_type is BindingWarning
        assert warning.location == "Encounter.type[0]"
        assert warning.severity is ValidationSeverity.WARNING
        assert "example" in warning.details

    def test_nested_required_code(self, validator, audit_event):
        """Test required bindings are checked inside backbone elements."""
        agent = audit_event.agent[1]
        network = agent.network
        network.type = "9"
        agent.network = network

        report = validator.validate(audit_event)

        assert [issue.location for issue in report.errors] == [
            "AuditEvent.agent[1].network.type"
        ]

    def test_text_only_concept_not_checked(self, validator, encounter_document):
        """Test a CodeableConcept without codings has nothing to check."""
        encounter_document["type"] = [{"text": "Walk-in"}]
        encounter = deserialize(encounter_document, "Encounter", fmt="hash")

        assert len(validator.validate(encounter)) == 0


@pytest.mark.validation
class TestValues:
    """Test primitive lexical checks and reference targets."""

    def test_primitive_pattern(self, validator, audit_event):
        """Test malformed primitive values are reported."""
        audit_event.recorded = "yesterday"

        report = validator.validate(audit_event)

        assert len(report.errors) == 1
        assert report.errors[0].error_type is InvalidValueError
        assert report.errors[0].location == "AuditEvent.recorded"

    def test_reference_target(self, validator, goal_document):
        """Test a reference to a disallowed resource type is reported."""
        goal_document["subject"] = {"reference": "Practitioner/1"}
        goal = deserialize(goal_document, "Goal", fmt="hash")

        report = validator.validate(goal)

        assert len(report.errors) == 1
        issue = report.errors[0]
        assert issue.error_type is TypeMismatchError
        assert issue.validation_type is ValidationType.REFERENCE
        assert issue.location == "Goal.subject"

    @pytest.mark.parametrize(
        "reference",
        [
            "Patient/example",
            "http://example.org/fhir/Group/g1",
            "Patient/example/_history/2",
            "#contained-1",
            "urn:uuid:c757873d-ec9a-4326-a141-556f43239520",
        ],
    )
    def test_allowed_references(self, validator, goal_document, reference):
        """Test allowed, contained and non-literal references pass."""
        goal_document["subject"] = {"reference": reference}
        goal = deserialize(goal_document, "Goal", fmt="hash")

        assert validator.validate(goal).errors == []

    def test_reference_type_element(self, validator, goal_document):
        """Test Reference.type is checked against the targets too."""
        goal_document["subject"] = {
            "type": "Device",
            "identifier": {"value": "d1"},
        }
        goal = deserialize(goal_document, "Goal", fmt="hash")

        assert len(validator.validate(goal).errors) == 1

    def test_report_raises_first_error(self, validator, audit_event):
        """Test raise_for_errors raises the finding's exception class."""
        del audit_event.source
        report = validator.validate(audit_event)

        with pytest.raises(CardinalityError) as exc_info:
            report.raise_for_errors()

        assert exc_info.value.path == "AuditEvent.source"


@pytest.mark.validation
class TestPrimitiveElements:
    """Test primitives carrying ids and extensions."""

    def test_extension_stands_in_for_value(self, validator, registry, audit_event):
        """Test a required primitive is present when it has only an extension."""
        del audit_event.recorded
        reason = new_instance(
            "Extension",
            registry,
            url="http://hl7.org/fhir/StructureDefinition/data-absent-reason",
            valueCode="unknown",
        )
        set_primitive_element(
            audit_event, "recorded", new_instance("Element", registry, extension=[reason])
        )

        assert validator.validate(audit_event).errors == []

    def test_item_without_anything(self, validator, registry):
        """Test a list item with no value and no element is reported."""
        name = new_instance("HumanName", registry, given=["Peter", None])

        report = validator.validate(name)

        assert [issue.location for issue in report.errors] == ["HumanName.given[1]"]
        assert report.errors[0].error_type is CardinalityError

    def test_extension_contents_validated(self, validator, registry, goal_document):
        """Test extensions on a primitive are validated like other elements."""
        goal = deserialize(goal_document, "Goal", fmt="hash")
        extension = new_instance("Extension", registry, valueString="pending review")
        set_primitive_element(
            goal, "lifecycleStatus", new_instance("Element", registry, extension=[extension])
        )

        report = validator.validate(goal)

        assert [issue.location for issue in report.errors] == [
            "Goal.lifecycleStatus.extension[0].url"
        ]
