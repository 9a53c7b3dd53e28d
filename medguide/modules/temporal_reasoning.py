"""
MedGuide Temporal Reasoning
Calendar-date handling, medication state reconstruction and timeline construction
"""

import re
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from datetime import date, datetime
from collections import OrderedDict

from dateutil import parser as date_parser
from pydantic import ValidationError

from medguide.schemas import ActionType, MedicationEvent
from medguide.exceptions import MalformedInputError
from medguide.config import settings

logger = logging.getLogger(__name__)

EventInput = Union[MedicationEvent, Dict[str, Any]]


# =============================================================================
# Calendar Dates
# =============================================================================

ISO_DATE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')

# Missing parts of a partial date ("March 2009") resolve against this, never today
LENIENT_DATE_DEFAULT = datetime(1900, 1, 1)


def parse_clinical_date(
    value: Optional[str],
    strict: Optional[bool] = None,
    event_id: Optional[str] = None
) -> date:
    """
    Parse an event date as a local calendar date.

    "YYYY-MM-DD" is built directly into a date with no time or timezone
    component, so "2009-04-01" can never shift to March 31. Anything else is
    rejected in strict mode, or handed to dateutil in lenient mode.

    Args:
        value: Date string from the extractor
        strict: Override for settings.strict_date_parsing
        event_id: Event identifier used in error messages

    Returns:
        Calendar date

    Raises:
        MalformedInputError: If the value is missing or unparseable
    """
    if strict is None:
        strict = settings.strict_date_parsing

    if not value or not value.strip():
        raise MalformedInputError("Missing event date", event_id=event_id, field="date")

    text = value.strip()
    match = ISO_DATE.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError as e:
            raise MalformedInputError(
                f"Invalid calendar date '{value}'", event_id=event_id, field="date"
            ) from e

    if strict:
        raise MalformedInputError(
            f"Date '{value}' does not match YYYY-MM-DD", event_id=event_id, field="date"
        )

    try:
        parsed = date_parser.parse(text, default=LENIENT_DATE_DEFAULT)
    except (ValueError, OverflowError) as e:
        raise MalformedInputError(
            f"Unparseable date '{value}'", event_id=event_id, field="date"
        ) from e

    logger.debug(f"Lenient date parse: '{value}' -> {parsed.date()}")
    return parsed.date()


# =============================================================================
# Event Validation
# =============================================================================

def _event_label(event: EventInput, index: int) -> str:
    """Identifier for an event in error messages"""
    event_id = event.get("id") if isinstance(event, dict) else getattr(event, "id", None)
    return event_id or f"#{index}"


def validate_events(events: Iterable[EventInput]) -> List[MedicationEvent]:
    """
    Coerce and check incoming events.

    Dicts are validated into MedicationEvent. Every event must name a
    medication.

    Raises:
        MalformedInputError: On the first event that is missing required data
    """
    validated = []

    for index, event in enumerate(events):
        label = _event_label(event, index)

        if isinstance(event, dict):
            try:
                event = MedicationEvent.model_validate(event)
            except ValidationError as e:
                first = e.errors()[0]
                field = ".".join(str(part) for part in first["loc"])
                raise MalformedInputError(first["msg"], event_id=label, field=field) from e
        elif not isinstance(event, MedicationEvent):
            raise MalformedInputError(
                f"Unsupported event type {type(event).__name__}", event_id=label
            )

        if not event.medication or not event.medication.strip():
            raise MalformedInputError("Missing medication name", event_id=label, field="medication")

        validated.append(event)

    return validated


def _dated_events(
    events: Iterable[EventInput],
    strict: Optional[bool] = None
) -> List[Tuple[date, MedicationEvent]]:
    """Validate events and pair each with its parsed date, sorted ascending"""
    dated = [
        (parse_clinical_date(event.date, strict=strict, event_id=_event_label(event, index)), event)
        for index, event in enumerate(validate_events(events))
    ]
    # sorted() is stable: same-day events keep input order
    return sorted(dated, key=lambda pair: pair[0])


# =============================================================================
# Medication State Reconstruction
# =============================================================================

def sort_events(events: Iterable[EventInput], strict: Optional[bool] = None) -> List[MedicationEvent]:
    """Events in calendar-date order; same-day events keep their input order"""
    return [event for _, event in _dated_events(events, strict)]


def _latest_by_name(sorted_events: Iterable[MedicationEvent]) -> "OrderedDict[str, MedicationEvent]":
    latest: "OrderedDict[str, MedicationEvent]" = OrderedDict()
    for event in sorted_events:
        latest[event.medication] = event
    return latest


def _active(latest: "OrderedDict[str, MedicationEvent]") -> List[MedicationEvent]:
    return [event for event in latest.values() if event.action != ActionType.STOPPED]


def latest_state_by_medication(
    events: Iterable[EventInput],
    strict: Optional[bool] = None
) -> "OrderedDict[str, MedicationEvent]":
    """
    Most recent event per exact medication name (last write wins).

    Names are compared verbatim: "Amlodipine" and "amlodipine " are distinct.
    Key order is the order in which each name first appears in date order.
    """
    return _latest_by_name(sort_events(events, strict))


def reconstruct_active_medications(
    events: Iterable[EventInput],
    strict: Optional[bool] = None
) -> List[MedicationEvent]:
    """
    Latest known state of every medication, excluding those last STOPPED.

    Args:
        events: Medication events in any order

    Returns:
        One event per active medication name
    """
    latest = latest_state_by_medication(events, strict)
    active = _active(latest)

    logger.debug(f"Reconstructed {len(active)} active of {len(latest)} medications")
    return active


# =============================================================================
# Medication Timeline
# =============================================================================

class MedicationTimeline:
    """Chronological view of one patient's medication events"""

    def __init__(
        self,
        patient_id: str,
        events: Iterable[EventInput],
        strict: Optional[bool] = None
    ):
        self.patient_id = patient_id
        dated = _dated_events(events, strict)
        self.dates: List[date] = [d for d, _ in dated]
        self.events: List[MedicationEvent] = [event for _, event in dated]

    def __repr__(self) -> str:
        return f"MedicationTimeline(patient={self.patient_id}, events={len(self.events)})"

    def __len__(self) -> int:
        return len(self.events)

    @property
    def start_date(self) -> Optional[date]:
        return self.dates[0] if self.dates else None

    @property
    def end_date(self) -> Optional[date]:
        return self.dates[-1] if self.dates else None

    def medication_history(self, medication: str) -> List[MedicationEvent]:
        """Chronological events for one exact medication name"""
        return [event for event in self.events if event.medication == medication]

    def events_by_date(self) -> "OrderedDict[date, List[MedicationEvent]]":
        """Events grouped per visit date"""
        grouped: "OrderedDict[date, List[MedicationEvent]]" = OrderedDict()
        for event_date, event in zip(self.dates, self.events):
            grouped.setdefault(event_date, []).append(event)
        return grouped

    def latest_state(self) -> "OrderedDict[str, MedicationEvent]":
        return _latest_by_name(self.events)

    def active_medications(self) -> List[MedicationEvent]:
        return _active(self.latest_state())

    def stopped_medications(self) -> List[str]:
        """Names whose most recent event is STOPPED"""
        return [
            name for name, event in self.latest_state().items()
            if event.action == ActionType.STOPPED
        ]

    def get_timeline_summary(self) -> Dict[str, Any]:
        """JSON-friendly summary of the timeline"""
        return {
            "patient_id": self.patient_id,
            "total_events": len(self.events),
            "medication_count": len(self.latest_state()),
            "active_medications": [e.medication for e in self.active_medications()],
            "stopped_medications": self.stopped_medications(),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "events_by_date": {
                event_date.isoformat(): [e.model_dump(mode="json") for e in day_events]
                for event_date, day_events in self.events_by_date().items()
            },
        }


# =============================================================================
# Public API
# =============================================================================

def build_medication_timeline(
    events: Iterable[EventInput],
    patient_id: str,
    strict: Optional[bool] = None
) -> MedicationTimeline:
    """
    Build a patient's medication timeline

    Args:
        events: Medication events in any order
        patient_id: Patient ID

    Returns:
        MedicationTimeline sorted by calendar date
    """
    timeline = MedicationTimeline(patient_id, events, strict)
    logger.info(
        f"Built timeline for patient {patient_id}: {len(timeline)} events, "
        f"{len(timeline.latest_state())} medications"
    )
    return timeline
