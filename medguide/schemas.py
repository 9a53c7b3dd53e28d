"""
MedGuide - Medication Safety Data Schemas
Pydantic models for medication events, patients and safety findings
"""

from pydantic import BaseModel, ConfigDict, Field, computed_field
from typing import Optional, List, Tuple
from enum import Enum


# ============================================================================
# Enumerations
# ============================================================================

class ActionType(str, Enum):
    """What happened to a medication at a given visit"""
    STARTED = "STARTED"
    STOPPED = "STOPPED"
    INCREASED = "INCREASED"
    DECREASED = "DECREASED"
    CONTINUED = "CONTINUED"
    UNCLEAR = "UNCLEAR"


class AlertSeverity(str, Enum):
    """Clinical alert severity levels"""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


# ============================================================================
# Medication Event Models
# ============================================================================

class MedicationEvent(BaseModel):
    """
    One dated change (or restatement) of a medication, as produced by the
    upstream extractor. Immutable once produced.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[str] = Field(None, description="Unique identifier for navigation")
    date: str = Field(..., description="Calendar date, YYYY-MM-DD")
    start_date: Optional[str] = Field(
        None, alias="startDate", description="Original start date of the medication if known"
    )
    medication: str = Field(..., description="Free-text drug name as extracted")
    dosage: str
    route: Optional[str] = Field(None, description="PO, IV, Topical, etc.")
    action: ActionType
    rationale: str
    source_quote: str = Field(..., description="Verbatim evidence from the note")


class PatientProfile(BaseModel):
    """Patient demographics and known conditions"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    age: int = Field(..., ge=0)
    gender: str
    conditions: List[str] = Field(default_factory=list, description="Free-text condition labels")
    notes: str = ""
    insurance_number: str = Field("", alias="insuranceNumber")


class ExtractionResult(BaseModel):
    """Structured medication timeline extracted from a patient's notes"""
    model_config = ConfigDict(populate_by_name=True)

    patient_id: str = Field(..., alias="patientId")
    events: List[MedicationEvent] = Field(default_factory=list)


# ============================================================================
# Safety Alert Models
# ============================================================================

class SafetyAlert(BaseModel):
    """One structured safety finding"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    severity: AlertSeverity
    description: str
    recommendation: str
    citation: Optional[str] = None
    citation_url: Optional[str] = Field(None, alias="citationUrl")

    @property
    def identity(self) -> Tuple[str, str]:
        """Value identity used for deduplication"""
        return (self.title, self.description)


class SafetyResult(BaseModel):
    """Deduplicated alerts plus a one-line summary"""
    alerts: List[SafetyAlert] = Field(default_factory=list)
    summary: str

    @computed_field
    @property
    def high_severity_count(self) -> int:
        """Count HIGH severity alerts"""
        return len([a for a in self.alerts if a.severity == AlertSeverity.HIGH])


class CompleteAnalysisResult(BaseModel):
    """Extraction plus safety assessment for one patient record"""
    extraction: ExtractionResult
    safety: SafetyResult


# ============================================================================
# Request Models
# ============================================================================

class SafetyEvaluationRequest(BaseModel):
    """Patient and events to evaluate"""
    patient: PatientProfile
    events: List[MedicationEvent] = Field(default_factory=list)


class ExtractionAnalysisRequest(BaseModel):
    """Raw extractor output to post-process and evaluate"""
    patient: PatientProfile
    extractor_output: str = Field(..., description="JSON text returned by the extraction model")
