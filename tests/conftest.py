"""Test configuration for fhirmodel.

Provides the shared registry and sample resource documents (hash form,
as FHIR JSON would decode them) used across the unit tests.
"""

from decimal import Decimal

import pytest

from fhirmodel.config import get_settings
from fhirmodel.descriptors import get_registry

XHTML_DIV = '<div xmlns="http://www.w3.org/1999/xhtml"><p>Application Start for under service login</p></div>'


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "serialization: mark test as exercising a document format"
    )
    config.addinivalue_line(
        "markers", "validation: mark test as exercising the validator"
    )
    config.addinivalue_line(
        "markers", "interop: mark test as requiring the fhirclient models"
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Make every test see settings derived from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def registry():
    """Shared registry built from the bundled definitions."""
    return get_registry()


@pytest.fixture
def audit_event_document():
    """A complete, valid AuditEvent."""
    return {
        "resourceType": "AuditEvent",
        "id": "example",
        "text": {"status": "generated", "div": XHTML_DIV},
        "type": {
            "system": "http://dicom.nema.org/resources/ontology/DCM",
            "code": "110100",
            "display": "Application Activity",
        },
        "action": "E",
        "recorded": "2012-10-25T22:04:27+11:00",
        "outcome": "0",
        "agent": [
            {
                "altId": "601847123",
                "name": "Grahame Grieve",
                "who": {"reference": "Practitioner/example"},
                "requestor": True,
            },
            {
                "name": "Grahame's Laptop",
                "requestor": False,
                "network": {"address": "127.0.0.1", "type": "2"},
            },
        ],
        "source": {
            "site": "Development",
            "observer": {"display": "Grahame's Laptop"},
            "type": [
                {
                    "system": "http://terminology.hl7.org/CodeSystem/security-source-type",
                    "code": "1",
                }
            ],
        },
        "entity": [
            {
                "what": {"reference": "Patient/example"},
                "detail": [{"type": "note", "valueString": "Login audit"}],
            }
        ],
    }


@pytest.fixture
def encounter_document():
    """A valid Encounter using the ``class`` wire name."""
    return {
        "resourceType": "Encounter",
        "id": "example",
        "status": "in-progress",
        "class": {
            "system": "http://terminology.hl7.org/CodeSystem/v3-ActCode",
            "code": "IMP",
            "display": "inpatient encounter",
        },
        "type": [
            {
                "coding": [
                    {
                        "system": "http://terminology.hl7.org/CodeSystem/encounter-type",
                        "code": "ADMS",
                    }
                ]
            }
        ],
        "subject": {"reference": "Patient/example"},
        "period": {"start": "2015-01-17T16:00:00+10:00"},
    }


@pytest.fixture
def code_system_document():
    """A CodeSystem with nested concepts and concept properties."""
    return {
        "resourceType": "CodeSystem",
        "id": "example",
        "url": "http://hl7.org/fhir/CodeSystem/example",
        "version": "20160128",
        "name": "ACMECholCodesBlood",
        "status": "draft",
        "experimental": True,
        "caseSensitive": True,
        "content": "complete",
        "count": 2,
        "concept": [
            {
                "code": "chol-mmol",
                "display": "SChol (mmol/L)",
                "property": [{"code": "status", "valueCode": "active"}],
                "concept": [
                    {
                        "code": "chol-mg",
                        "display": "SChol (mg/L)",
                        "property": [
                            {"code": "weight", "valueDecimal": Decimal("0.0250")}
                        ],
                    }
                ],
            }
        ],
    }


@pytest.fixture
def goal_document():
    """A Goal with choice fields at several levels."""
    return {
        "resourceType": "Goal",
        "id": "example",
        "lifecycleStatus": "active",
        "description": {"text": "Target weight is 160 to 180 lbs."},
        "subject": {"reference": "Patient/example", "display": "Peter James Chalmers"},
        "startDate": "2015-04-05",
        "target": [
            {
                "measure": {
                    "coding": [
                        {
                            "system": "http://loinc.org",
                            "code": "3141-9",
                            "display": "Weight Measured",
                        }
                    ]
                },
                "detailRange": {
                    "low": {"value": Decimal("160"), "unit": "lbs", "code": "[lb_av]"},
                    "high": {"value": Decimal("180"), "unit": "lbs", "code": "[lb_av]"},
                },
                "dueDate": "2016-04-05",
            }
        ],
    }


@pytest.fixture
def concept_map_document():
    """A ConceptMap exercising deep nesting and a content-referenced type."""
    return {
        "resourceType": "ConceptMap",
        "id": "101",
        "url": "http://hl7.org/fhir/ConceptMap/101",
        "status": "draft",
        "sourceUri": "http://hl7.org/fhir/ValueSet/address-use",
        "targetUri": "http://terminology.hl7.org/ValueSet/v3-AddressUse",
        "group": [
            {
                "source": "http://hl7.org/fhir/address-use",
                "target": "http://terminology.hl7.org/CodeSystem/v3-AddressUse",
                "element": [
                    {
                        "code": "home",
                        "target": [{"code": "H", "equivalence": "equivalent"}],
                    },
                    {
                        "code": "work",
                        "target": [
                            {
                                "code": "WP",
                                "equivalence": "equivalent",
                                "product": [
                                    {"property": "http://example.org/p", "value": "x"}
                                ],
                            }
                        ],
                    },
                ],
            }
        ],
    }


@pytest.fixture
def nutrition_order_document():
    """A NutritionOrder carrying decimals with trailing zeros."""
    return {
        "resourceType": "NutritionOrder",
        "id": "enteralcontinuous",
        "status": "active",
        "intent": "order",
        "patient": {"reference": "Patient/example"},
        "dateTime": "2014-09-17",
        "enteralFormula": {
            "baseFormulaProductName": "Acme High Protein Formula",
            "caloricDensity": {
                "value": Decimal("1.50"),
                "unit": "calories per milliliter",
                "system": "http://unitsofmeasure.org",
                "code": "cal/mL",
            },
            "maxVolumeToDeliver": {
                "value": Decimal("880.0"),
                "unit": "milliliter/day",
                "system": "http://unitsofmeasure.org",
                "code": "mL/d",
            },
        },
    }


@pytest.fixture
def sample_documents(
    audit_event_document,
    encounter_document,
    code_system_document,
    goal_document,
    concept_map_document,
    nutrition_order_document,
):
    """One sample document per bundled resource type."""
    return {
        "AuditEvent": audit_event_document,
        "Encounter": encounter_document,
        "CodeSystem": code_system_document,
        "Goal": goal_document,
        "ConceptMap": concept_map_document,
        "NutritionOrder": nutrition_order_document,
    }
