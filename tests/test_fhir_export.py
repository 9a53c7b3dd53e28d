"""
Unit tests for FHIR bundle export
"""

from datetime import datetime, timezone

from medguide.schemas import ActionType
from medguide.modules.fhir_export import (
    INSURANCE_ID_SYSTEM,
    generate_fhir_bundle,
    medication_statement,
    patient_resource,
)
from conftest import make_event, make_patient

EXPORTED_AT = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestPatientResource:
    """Test Patient resource mapping"""

    def test_patient_fields(self):
        resource = patient_resource(make_patient(age=79), today=EXPORTED_AT)

        assert resource["resourceType"] == "Patient"
        assert resource["id"] == "p1"
        assert resource["gender"] == "female"
        assert resource["birthDate"] == "1946-01-01"
        assert resource["identifier"][0] == {"system": INSURANCE_ID_SYSTEM, "value": "INS-001"}
        assert resource["name"][0]["text"] == "Jane Doe"


class TestMedicationStatement:
    """Test MedicationStatement mapping"""

    def test_active_statement(self):
        event = make_event("Amlodipine 10mg OM", date="2019-05-02", event_id="e1")

        statement = medication_statement(event, "p1", "2025-03-01T12:00:00+00:00")

        assert statement["status"] == "active"
        assert statement["statusReason"] == [{"text": "STARTED"}]
        assert statement["medicationCodeableConcept"] == {"text": "Amlodipine 10mg OM"}
        assert statement["subject"] == {"reference": "Patient/p1"}
        assert statement["effectiveDateTime"] == "2019-05-02"
        assert statement["dosage"][0]["route"] == {"text": "PO"}

    def test_stopped_statement(self):
        event = make_event("Metformin", action=ActionType.STOPPED, event_id="e2")

        statement = medication_statement(event, "p1", "now")

        assert statement["status"] == "stopped"

    def test_route_omitted_when_unknown(self):
        event = make_event("Insulin Glargine", route=None, event_id="e3")

        statement = medication_statement(event, "p1", "now")

        assert "route" not in statement["dosage"][0]


class TestBundle:
    """Test Bundle generation"""

    def test_bundle_structure(self):
        events = [
            make_event("Metformin", date="2009-09-01", action=ActionType.STOPPED, event_id="e2"),
            make_event("Metformin", date="2009-04-01", event_id="e1"),
        ]

        bundle = generate_fhir_bundle(make_patient(), events, timestamp=EXPORTED_AT)

        assert bundle["resourceType"] == "Bundle"
        assert bundle["type"] == "collection"
        assert bundle["timestamp"] == EXPORTED_AT.isoformat()
        resources = [entry["resource"] for entry in bundle["entry"]]
        assert resources[0]["resourceType"] == "Patient"
        # Every event is exported as given, stopped ones included
        assert [r["id"] for r in resources[1:]] == ["e2", "e1"]
        assert all(r["dateAsserted"] == EXPORTED_AT.isoformat() for r in resources[1:])
