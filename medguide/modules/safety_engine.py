"""
MedGuide Safety Engine
Deterministic evaluation of active medications against the clinical rule catalog
"""

import logging
from typing import Iterable, List, Optional, Sequence

from medguide.schemas import MedicationEvent, PatientProfile, SafetyAlert
from medguide.exceptions import MalformedInputError
from medguide.modules.matching import age_gate, matches_condition, matches_keyword
from medguide.modules.rule_catalog import (
    DuplicationRule, InteractionRule, RuleCatalog, SingleDrugRule, get_rule_catalog
)
from medguide.modules.temporal_reasoning import EventInput, reconstruct_active_medications

logger = logging.getLogger(__name__)


# =============================================================================
# Deduplication
# =============================================================================

def deduplicate_alerts(alerts: Iterable[SafetyAlert]) -> List[SafetyAlert]:
    """
    Collapse alerts sharing (title, description), keeping the first.

    Stable and idempotent.
    """
    seen = set()
    unique = []
    for alert in alerts:
        if alert.identity in seen:
            continue
        seen.add(alert.identity)
        unique.append(alert)
    return unique


# =============================================================================
# Safety Engine
# =============================================================================

class SafetyEngine:
    """
    Main medication safety engine.

    Phases run in a fixed order: single-drug rules, pairwise interactions,
    class duplication, then deduplication. Within a phase, active medications
    are visited in reconstruction order and rules in catalog order.
    """

    def __init__(self, catalog: Optional[RuleCatalog] = None):
        """Initialize engine with the given catalog, or the configured default"""
        self.catalog = catalog if catalog is not None else get_rule_catalog()
        logger.debug(f"Initialized safety engine with {len(self.catalog)} rules")

    def evaluate(self, patient: PatientProfile, events: Iterable[EventInput]) -> List[SafetyAlert]:
        """
        Evaluate all rules for a patient's medication events

        Args:
            patient: Patient profile (age and conditions gate rules)
            events: Medication events in any order

        Returns:
            Deduplicated safety alerts

        Raises:
            MalformedInputError: If the patient or any event is unusable
        """
        self._validate_patient(patient)
        active_meds = reconstruct_active_medications(events)

        logger.info(
            f"Evaluating {len(self.catalog)} rules against {len(active_meds)} active "
            f"medications for patient {patient.id}"
        )

        single = self.evaluate_single_drug_rules(patient, active_meds)
        interactions = self.evaluate_interaction_rules(active_meds)
        duplications = self.evaluate_duplication_rules(active_meds)

        alerts = deduplicate_alerts(single + interactions + duplications)

        logger.info(
            f"Safety evaluation for patient {patient.id}: {len(single)} single-drug, "
            f"{len(interactions)} interaction, {len(duplications)} duplication, "
            f"{len(alerts)} after deduplication"
        )
        return alerts

    def evaluate_single_drug_rules(
        self,
        patient: PatientProfile,
        active_meds: Sequence[MedicationEvent]
    ) -> List[SafetyAlert]:
        """Phase A: Beers, STOPP/START and drug-disease rules"""
        alerts = []

        for med in active_meds:
            for rule in self.catalog.single_drug_rules:
                if self._single_rule_applies(rule, patient, med):
                    logger.debug(f"Rule {rule.id} triggered by {med.medication}")
                    alerts.append(rule.create_alert(med.medication))

        return alerts

    @staticmethod
    def _single_rule_applies(rule: SingleDrugRule, patient: PatientProfile, med: MedicationEvent) -> bool:
        if not age_gate(patient.age, rule.age_min):
            return False

        if not matches_keyword(med.medication, rule.drug_keywords):
            return False

        # Exception path, e.g. loop diuretics are appropriate with heart failure
        if rule.excluded_conditions and matches_condition(patient.conditions, rule.excluded_conditions):
            return False

        if rule.required_conditions and not matches_condition(patient.conditions, rule.required_conditions):
            return False

        return True

    def evaluate_interaction_rules(self, active_meds: Sequence[MedicationEvent]) -> List[SafetyAlert]:
        """Phase B: every ordered pair of distinct active medications"""
        alerts = []

        for med1 in active_meds:
            for med2 in active_meds:
                if med1 is med2:
                    continue
                for rule in self.catalog.interaction_rules:
                    if self._interaction_applies(rule, med1, med2):
                        logger.debug(f"Rule {rule.id} triggered by {med1.medication} + {med2.medication}")
                        alerts.append(rule.create_alert(f"{med1.medication} + {med2.medication}"))

        return alerts

    @staticmethod
    def _interaction_applies(rule: InteractionRule, med1: MedicationEvent, med2: MedicationEvent) -> bool:
        return (
            matches_keyword(med1.medication, rule.drug_keywords)
            and matches_keyword(med2.medication, rule.interaction_drug_keywords)
        )

    def evaluate_duplication_rules(self, active_meds: Sequence[MedicationEvent]) -> List[SafetyAlert]:
        """Phase C: two or more active medications from one class"""
        alerts = []

        for rule in self.catalog.duplication_rules:
            matched = self._class_members(rule, active_meds)
            if len(matched) >= 2:
                logger.debug(f"Rule {rule.id} triggered by {len(matched)} medications")
                alerts.append(rule.create_alert(" + ".join(m.medication for m in matched)))

        return alerts

    @staticmethod
    def _class_members(rule: DuplicationRule, active_meds: Sequence[MedicationEvent]) -> List[MedicationEvent]:
        return [med for med in active_meds if matches_keyword(med.medication, rule.drug_keywords)]

    @staticmethod
    def _validate_patient(patient: PatientProfile) -> None:
        if not isinstance(patient, PatientProfile):
            raise MalformedInputError(f"Expected PatientProfile, got {type(patient).__name__}")
        if patient.age < 0:
            raise MalformedInputError("Patient age must be non-negative", field="age")


# =============================================================================
# Public API
# =============================================================================

def evaluate_safety(
    patient: PatientProfile,
    events: Iterable[EventInput],
    catalog: Optional[RuleCatalog] = None
) -> List[SafetyAlert]:
    """
    Evaluate medication safety rules and generate alerts

    Synchronous and side-effect free; safe to call from worker threads or
    async layers once structured events are available.

    Args:
        patient: Patient profile
        events: Medication events in any order
        catalog: Rule catalog (defaults to the configured catalog)

    Returns:
        Deduplicated list of safety alerts
    """
    engine = SafetyEngine(catalog)
    return engine.evaluate(patient, events)
