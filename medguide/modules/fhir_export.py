"""
MedGuide FHIR Export
Maps a patient and their medication events to a FHIR R4 collection Bundle
"""

import logging
from typing import Any, Dict, Iterable, Optional
from datetime import datetime, timezone

from medguide.schemas import ActionType, MedicationEvent, PatientProfile

logger = logging.getLogger(__name__)

INSURANCE_ID_SYSTEM = "http://hospital.org/insurance-ids"


def patient_resource(patient: PatientProfile, today: Optional[datetime] = None) -> Dict[str, Any]:
    """FHIR Patient; birthDate is approximated as Jan 1 of (current year - age)"""
    today = today or datetime.now(timezone.utc)
    return {
        "resourceType": "Patient",
        "id": patient.id,
        "identifier": [
            {
                "system": INSURANCE_ID_SYSTEM,
                "value": patient.insurance_number,
            }
        ],
        "name": [
            {
                "use": "official",
                "text": patient.name,
            }
        ],
        "gender": patient.gender.lower(),
        "birthDate": f"{today.year - patient.age:04d}-01-01",
    }


def medication_statement(event: MedicationEvent, patient_id: str, asserted: str) -> Dict[str, Any]:
    """One MedicationStatement per event, mapped independently of any other event"""
    dosage: Dict[str, Any] = {"text": event.dosage}
    if event.route:
        dosage["route"] = {"text": event.route}

    return {
        "resourceType": "MedicationStatement",
        "id": event.id,
        "status": "stopped" if event.action == ActionType.STOPPED else "active",
        "statusReason": [{"text": event.action.value}],
        "medicationCodeableConcept": {"text": event.medication},
        "subject": {"reference": f"Patient/{patient_id}"},
        "effectiveDateTime": event.date,
        "dateAsserted": asserted,
        "dosage": [dosage],
        "note": [{"text": event.rationale}],
    }


def generate_fhir_bundle(
    patient: PatientProfile,
    events: Iterable[MedicationEvent],
    timestamp: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Generate a FHIR collection Bundle for a patient's medication timeline

    Args:
        patient: Patient profile
        events: Medication events (exported as given, not reconstructed)
        timestamp: Bundle timestamp, defaults to now (UTC)

    Returns:
        Bundle as a JSON-serializable dict
    """
    timestamp = timestamp or datetime.now(timezone.utc)
    asserted = timestamp.isoformat()

    statements = [medication_statement(event, patient.id, asserted) for event in events]
    logger.info(f"Exporting FHIR bundle for patient {patient.id} with {len(statements)} statements")

    return {
        "resourceType": "Bundle",
        "type": "collection",
        "timestamp": asserted,
        "entry": [{"resource": patient_resource(patient, timestamp)}]
        + [{"resource": statement} for statement in statements],
    }
