"""
MedGuide error taxonomy
Typed failures raised by the safety core
"""

from typing import Optional


class MedGuideError(Exception):
    """Base class for all MedGuide errors"""


class MalformedInputError(MedGuideError):
    """
    An input record cannot be used by the engine.

    Raised when an event's date fails calendar-date parsing or a required
    field is absent. Never retried: the engine cannot repair extractor output.
    """

    def __init__(self, message: str, event_id: Optional[str] = None, field: Optional[str] = None):
        self.event_id = event_id
        self.field = field
        location = []
        if event_id is not None:
            location.append(f"event={event_id}")
        if field is not None:
            location.append(f"field={field}")
        if location:
            message = f"{message} ({', '.join(location)})"
        super().__init__(message)


class RuleDefinitionError(MedGuideError):
    """A static rule catalog entry is malformed. Raised at catalog build time."""

    def __init__(self, message: str, rule_id: Optional[str] = None):
        self.rule_id = rule_id
        if rule_id is not None:
            message = f"Rule {rule_id}: {message}"
        super().__init__(message)
