"""
Shared fixtures for MedGuide tests
"""

import pytest

from medguide.schemas import ActionType, MedicationEvent, PatientProfile


def make_event(medication, date="2024-01-10", action=ActionType.STARTED, dosage="1 tablet daily", event_id=None, route="PO"):
    """Build a MedicationEvent with sensible defaults for the fields tests don't care about"""
    return MedicationEvent(
        id=event_id,
        date=date,
        medication=medication,
        dosage=dosage,
        route=route,
        action=action,
        rationale="Clinic review",
        source_quote=f"{medication} {action.value.lower()}",
    )


def make_patient(age=79, conditions=None, patient_id="p1", name="Jane Doe", gender="Female"):
    return PatientProfile(
        id=patient_id,
        name=name,
        age=age,
        gender=gender,
        conditions=conditions or [],
        insurance_number="INS-001",
    )


@pytest.fixture
def elderly_patient():
    """79-year-old with no recorded conditions"""
    return make_patient(age=79)


@pytest.fixture
def younger_patient():
    """60-year-old, below every geriatric age gate"""
    return make_patient(age=60, patient_id="p2", name="John Roe", gender="Male")


@pytest.fixture
def request_payload():
    """JSON body accepted by the safety, timeline and export endpoints"""
    return {
        "patient": {
            "id": "p1",
            "name": "Jane Doe",
            "age": 65,
            "gender": "Female",
            "conditions": [],
            "insuranceNumber": "INS-001",
        },
        "events": [
            {
                "id": "e1",
                "date": "2024-01-10",
                "medication": "Warfarin 2.5mg OM",
                "dosage": "2.5mg",
                "route": "PO",
                "action": "STARTED",
                "rationale": "AF anticoagulation",
                "source_quote": "Started warfarin 2.5mg",
            },
            {
                "id": "e2",
                "date": "2024-01-10",
                "medication": "Omeprazole 20mg OM",
                "dosage": "20mg",
                "route": "PO",
                "action": "CONTINUED",
                "rationale": "Reflux",
                "source_quote": "Continue omeprazole",
            },
        ],
    }
