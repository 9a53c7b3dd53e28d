"""
MedGuide Result Aggregator
Turns a list of safety alerts into a SafetyResult with a short summary
"""

import logging
from typing import Iterable, List, Optional, Sequence

from medguide.schemas import PatientProfile, SafetyAlert, SafetyResult
from medguide.modules.rule_catalog import RuleCatalog
from medguide.modules.safety_engine import evaluate_safety
from medguide.modules.temporal_reasoning import EventInput

logger = logging.getLogger(__name__)


ALERTS_SUMMARY = (
    "Identified {count} potential safety concerns based on standard clinical "
    "guidelines (Beers, STOPP/START, Drug Interactions)."
)
NO_ALERTS_SUMMARY = (
    "No significant safety alerts detected based on current active medications "
    "and known conditions."
)


def summarize_alerts(alerts: Sequence[SafetyAlert]) -> str:
    """Summary sentence; depends only on the number of alerts"""
    if alerts:
        return ALERTS_SUMMARY.format(count=len(alerts))
    return NO_ALERTS_SUMMARY


def build_safety_result(alerts: Iterable[SafetyAlert]) -> SafetyResult:
    alerts: List[SafetyAlert] = list(alerts)
    return SafetyResult(alerts=alerts, summary=summarize_alerts(alerts))


def run_safety_assessment(
    patient: PatientProfile,
    events: Iterable[EventInput],
    catalog: Optional[RuleCatalog] = None
) -> SafetyResult:
    """
    Evaluate a patient's medication events and aggregate the findings

    Args:
        patient: Patient profile
        events: Medication events in any order
        catalog: Optional rule catalog override

    Returns:
        SafetyResult with deduplicated alerts and summary
    """
    result = build_safety_result(evaluate_safety(patient, events, catalog))
    logger.info(f"Safety assessment for patient {patient.id}: {len(result.alerts)} alerts")
    return result
