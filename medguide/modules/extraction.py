"""
MedGuide Extraction Post-Processing
Normalizes the JSON emitted by the upstream extraction model into MedicationEvents
"""

import re
import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from medguide.schemas import CompleteAnalysisResult, ExtractionResult, PatientProfile
from medguide.exceptions import MalformedInputError
from medguide.modules.rule_catalog import RuleCatalog
from medguide.modules.summarization import run_safety_assessment
from medguide.modules.temporal_reasoning import validate_events

logger = logging.getLogger(__name__)


# =============================================================================
# Normalization Patterns
# =============================================================================

class ExtractionPatterns:
    """Patterns for cleaning extractor output"""

    # Markdown code fences around a JSON payload
    FENCE_START = re.compile(r'^```(?:json)?\s*', re.IGNORECASE)
    FENCE_END = re.compile(r'\s*```$')

    # Words to title-case
    WORD = re.compile(r'\w\S*')

    # A word followed only by trailing punctuation, e.g. "Tablets,"
    WORD_WITH_PUNCT = re.compile(r'^(\w+)([^a-zA-Z0-9]*)$')

    NON_ALNUM = re.compile(r'[^a-zA-Z0-9-]')


# Medical acronyms kept uppercase when title-casing
MEDICAL_ACRONYMS = {
    'QV', 'IV', 'IM', 'SC', 'PO', 'PR', 'SL', 'NG', 'TP',
    'LA', 'XL', 'XR', 'SR', 'ER', 'CR', 'IR', 'DS', 'SA', 'HA',
    'HCT', 'HCTZ', 'CD', 'EC', 'PM', 'AM', 'OM', 'ON',
    'BD', 'TDS', 'QDS', 'PRN', 'D5', 'NS', 'D5NS', 'D5-NS', 'COPD', 'HIV',
    'RNA', 'DNA', 'MRI', 'CT', 'MRSA', 'OA', 'TKR', 'RAI', 'UTI', 'AKI',
    'NSAID', 'NSAIDS', 'ACE', 'ARB', 'CCB',
}


def clean_json_string(text: str) -> str:
    """Strip surrounding markdown code fences from model output"""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = ExtractionPatterns.FENCE_START.sub("", cleaned)
    if cleaned.endswith("```"):
        cleaned = ExtractionPatterns.FENCE_END.sub("", cleaned)
    return cleaned


def _title_case_word(match: "re.Match[str]") -> str:
    text = match.group(0)

    clean = ExtractionPatterns.NON_ALNUM.sub("", text)
    if clean and clean.upper() in MEDICAL_ACRONYMS:
        return re.sub(re.escape(clean), clean.upper(), text, count=1, flags=re.IGNORECASE)

    word_match = ExtractionPatterns.WORD_WITH_PUNCT.match(text)
    if word_match:
        word, punct = word_match.groups()
        return word[0].upper() + word[1:].lower() + punct

    return text[0].upper() + text[1:].lower()


def to_title_case(text: Optional[str]) -> Optional[str]:
    """
    Title Case a medication name, keeping medical acronyms uppercase.

    "nifedipine la 30mg" -> "Nifedipine LA 30mg"
    """
    if not text:
        return text
    return ExtractionPatterns.WORD.sub(_title_case_word, text)


def format_route(route: Optional[str]) -> Optional[str]:
    """Short routes are abbreviations (po -> PO); longer ones are title-cased"""
    if not route:
        return None
    if len(route) <= 3:
        return route.upper()
    return to_title_case(route)


# =============================================================================
# Response Parsing
# =============================================================================

def _normalize_event(raw: Dict[str, Any], event_id: str) -> Dict[str, Any]:
    event = dict(raw)
    event.setdefault("id", event_id)
    if isinstance(event.get("medication"), str):
        event["medication"] = to_title_case(event["medication"])
    event["route"] = format_route(event.get("route") or "")
    if isinstance(event.get("date"), str):
        # Keep the calendar part only: strict YYYY-MM-DD
        event["date"] = event["date"].split("T")[0]
    return event


def parse_extraction_response(
    text: str,
    patient_id: Optional[str] = None,
    id_prefix: str = "evt"
) -> ExtractionResult:
    """
    Parse and normalize the extraction model's JSON response

    Args:
        text: Raw model output, possibly wrapped in a markdown code fence
        patient_id: Fallback patient ID when the response omits one
        id_prefix: Prefix for generated event ids

    Returns:
        ExtractionResult with title-cased names, normalized routes and dates

    Raises:
        MalformedInputError: If the JSON or its structure is invalid
    """
    try:
        parsed = json.loads(clean_json_string(text or ""))
    except json.JSONDecodeError as e:
        logger.error(f"Failed to decode extractor JSON: {e}. Response: {(text or '')[:200]}")
        raise MalformedInputError("Failed to interpret the extraction response") from e

    extraction = parsed.get("extraction") if isinstance(parsed, dict) else None
    if not isinstance(extraction, dict) or not isinstance(extraction.get("events"), list):
        raise MalformedInputError("Invalid extraction structure", field="extraction.events")

    batch = uuid.uuid4().hex[:8]
    raw_events: List[Dict[str, Any]] = []
    for index, raw in enumerate(extraction["events"]):
        if not isinstance(raw, dict):
            raise MalformedInputError("Event must be an object", event_id=f"#{index}")
        raw_events.append(_normalize_event(raw, f"{id_prefix}_{index}_{batch}"))

    result_patient_id = extraction.get("patientId") or patient_id
    if not result_patient_id:
        raise MalformedInputError("Missing patient id", field="extraction.patientId")

    events = validate_events(raw_events)
    logger.info(f"Parsed {len(events)} medication events for patient {result_patient_id}")

    return ExtractionResult(patient_id=result_patient_id, events=events)


# =============================================================================
# Public API
# =============================================================================

def analyze_extraction(
    patient: PatientProfile,
    text: str,
    catalog: Optional[RuleCatalog] = None
) -> CompleteAnalysisResult:
    """
    Post-process extractor output and run the deterministic safety engine on it.

    Only the structured events reach the rules engine, never the raw notes.
    """
    extraction = parse_extraction_response(text, patient_id=patient.id)
    safety = run_safety_assessment(patient, extraction.events, catalog)
    return CompleteAnalysisResult(extraction=extraction, safety=safety)
