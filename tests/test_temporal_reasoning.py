"""
Unit tests for medication state reconstruction and timelines
"""

import pytest
from datetime import date

from medguide.schemas import ActionType
from medguide.exceptions import MalformedInputError
from medguide.modules.temporal_reasoning import (
    build_medication_timeline,
    latest_state_by_medication,
    parse_clinical_date,
    reconstruct_active_medications,
    sort_events,
    validate_events,
)
from conftest import make_event


class TestClinicalDateParsing:
    """Test calendar-date parsing of event dates"""

    def test_iso_date_is_local_calendar_date(self):
        """A first-of-month date never shifts to the previous day"""
        assert parse_clinical_date("2009-04-01") == date(2009, 4, 1)

    def test_surrounding_whitespace_is_ignored(self):
        assert parse_clinical_date(" 2010-12-31 ") == date(2010, 12, 31)

    def test_impossible_date_rejected(self):
        with pytest.raises(MalformedInputError) as exc_info:
            parse_clinical_date("2009-02-30", event_id="e7")

        assert exc_info.value.event_id == "e7"
        assert exc_info.value.field == "date"

    def test_missing_date_rejected(self):
        with pytest.raises(MalformedInputError):
            parse_clinical_date("")
        with pytest.raises(MalformedInputError):
            parse_clinical_date(None)

    def test_strict_mode_rejects_other_formats(self):
        with pytest.raises(MalformedInputError):
            parse_clinical_date("01/04/2009", strict=True)

    def test_lenient_mode_falls_back_to_dateutil(self):
        assert parse_clinical_date("April 1, 2009", strict=False) == date(2009, 4, 1)

    def test_lenient_partial_date_does_not_depend_on_today(self):
        """Missing day or month resolves to the first, not to the current date"""
        assert parse_clinical_date("March 2009", strict=False) == date(2009, 3, 1)
        assert parse_clinical_date("2009", strict=False) == date(2009, 1, 1)

    def test_lenient_mode_still_rejects_garbage(self):
        with pytest.raises(MalformedInputError):
            parse_clinical_date("not a date", strict=False)


class TestEventValidation:
    """Test coercion and checking of incoming events"""

    def test_dicts_are_coerced(self):
        raw = {
            "id": "e1",
            "date": "2024-01-10",
            "medication": "Amlodipine 5mg OD",
            "dosage": "5mg",
            "action": "STARTED",
            "rationale": "BP",
            "source_quote": "start amlodipine",
        }

        events = validate_events([raw])

        assert events[0].medication == "Amlodipine 5mg OD"
        assert events[0].action == ActionType.STARTED

    def test_missing_field_reports_event_and_field(self):
        raw = {
            "id": "e9",
            "medication": "Amlodipine",
            "dosage": "5mg",
            "action": "STARTED",
            "rationale": "BP",
            "source_quote": "start amlodipine",
        }

        with pytest.raises(MalformedInputError) as exc_info:
            validate_events([raw])

        assert exc_info.value.event_id == "e9"
        assert exc_info.value.field == "date"

    def test_non_event_items_rejected(self):
        """Anything that is neither a dict nor a MedicationEvent is a typed error"""
        for item in (42, None, "Omeprazole"):
            with pytest.raises(MalformedInputError) as exc_info:
                validate_events([item])

            assert exc_info.value.event_id == "#0"

    def test_blank_medication_rejected(self):
        with pytest.raises(MalformedInputError) as exc_info:
            validate_events([make_event("   ")])

        assert exc_info.value.field == "medication"
        assert exc_info.value.event_id == "#0"


class TestStateReconstruction:
    """Test last-write-wins reconstruction of the active medication set"""

    def test_events_sorted_by_date(self):
        events = [
            make_event("B", date="2024-03-01"),
            make_event("A", date="2023-12-25"),
        ]

        assert [e.medication for e in sort_events(events)] == ["A", "B"]

    def test_same_day_events_keep_input_order(self):
        first = make_event("Metformin", date="2024-01-10", action=ActionType.STARTED)
        second = make_event("Metformin", date="2024-01-10", action=ActionType.STOPPED)

        ordered = sort_events([first, second])

        assert ordered[0] is first
        assert ordered[1] is second
        assert reconstruct_active_medications([first, second]) == []

    def test_stopped_medication_is_inactive(self):
        """Scenario: Metformin started then stopped is not active"""
        events = [
            make_event("Metformin", date="2009-04-01", action=ActionType.STARTED),
            make_event("Metformin", date="2009-09-01", action=ActionType.STOPPED),
        ]

        assert reconstruct_active_medications(events) == []

    def test_latest_event_wins_regardless_of_input_order(self):
        older = make_event("Amlodipine", date="2020-01-01", dosage="5mg")
        newer = make_event("Amlodipine", date="2021-06-01", dosage="10mg", action=ActionType.INCREASED)

        active = reconstruct_active_medications([newer, older])

        assert len(active) == 1
        assert active[0].dosage == "10mg"

    def test_restarted_medication_is_active(self):
        events = [
            make_event("Ramipril", date="2020-01-01"),
            make_event("Ramipril", date="2020-06-01", action=ActionType.STOPPED),
            make_event("Ramipril", date="2021-01-01", action=ActionType.STARTED),
        ]

        active = reconstruct_active_medications(events)

        assert [e.date for e in active] == ["2021-01-01"]

    def test_names_compared_verbatim(self):
        """No normalization: differently written names are different medications"""
        events = [
            make_event("Amlodipine", date="2020-01-01"),
            make_event("amlodipine", date="2020-02-01", action=ActionType.STOPPED),
        ]

        active = reconstruct_active_medications(events)

        assert [e.medication for e in active] == ["Amlodipine"]

    def test_key_order_is_first_appearance_in_date_order(self):
        events = [
            make_event("Late", date="2022-01-01"),
            make_event("Early", date="2020-01-01"),
            make_event("Early", date="2023-01-01", action=ActionType.CONTINUED),
        ]

        assert list(latest_state_by_medication(events)) == ["Early", "Late"]

    def test_malformed_date_propagates(self):
        with pytest.raises(MalformedInputError):
            reconstruct_active_medications([make_event("Aspirin", date="2024-13-01")])


class TestMedicationTimeline:
    """Test the chronological timeline view"""

    @pytest.fixture
    def timeline(self):
        events = [
            make_event("Nifedipine LA 30mg", date="2019-05-02", event_id="e3"),
            make_event("Metformin 500mg", date="2018-01-15", event_id="e1"),
            make_event("Metformin 500mg", date="2019-05-02", action=ActionType.STOPPED, event_id="e2"),
        ]
        return build_medication_timeline(events, "p1")

    def test_bounds(self, timeline):
        assert timeline.start_date == date(2018, 1, 15)
        assert timeline.end_date == date(2019, 5, 2)
        assert len(timeline) == 3

    def test_medication_history(self, timeline):
        history = timeline.medication_history("Metformin 500mg")

        assert [e.id for e in history] == ["e1", "e2"]

    def test_events_grouped_by_visit(self, timeline):
        grouped = timeline.events_by_date()

        assert list(grouped) == [date(2018, 1, 15), date(2019, 5, 2)]
        assert [e.id for e in grouped[date(2019, 5, 2)]] == ["e3", "e2"]

    def test_summary(self, timeline):
        summary = timeline.get_timeline_summary()

        assert summary["patient_id"] == "p1"
        assert summary["total_events"] == 3
        assert summary["medication_count"] == 2
        assert summary["active_medications"] == ["Nifedipine LA 30mg"]
        assert summary["stopped_medications"] == ["Metformin 500mg"]
        assert summary["start_date"] == "2018-01-15"
        assert summary["end_date"] == "2019-05-02"
        assert summary["events_by_date"]["2019-05-02"][1]["action"] == "STOPPED"

    def test_active_set_matches_reconstruction(self, timeline):
        assert timeline.active_medications() == reconstruct_active_medications(timeline.events)
        assert timeline.latest_state() == latest_state_by_medication(timeline.events)

    def test_empty_timeline(self):
        timeline = build_medication_timeline([], "p9")

        assert timeline.start_date is None
        assert timeline.get_timeline_summary()["active_medications"] == []
