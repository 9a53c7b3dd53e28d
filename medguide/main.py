"""
MedGuide - Main FastAPI Application
Medication timeline and deterministic clinical-safety assessment service
"""

import logging
from typing import Any, Dict, Optional
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from medguide.config import settings
from medguide.exceptions import MalformedInputError
from medguide.schemas import (
    CompleteAnalysisResult, ExtractionAnalysisRequest, SafetyEvaluationRequest, SafetyResult
)
from medguide.modules.rule_catalog import RuleCategory, get_rule_catalog
from medguide.modules.summarization import run_safety_assessment
from medguide.modules.temporal_reasoning import build_medication_timeline
from medguide.modules.extraction import analyze_extraction
from medguide.modules.fhir_export import generate_fhir_bundle

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting MedGuide application...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Rule catalog loaded: {len(get_rule_catalog())} rules enabled")

    yield

    logger.info("Shutting down MedGuide application...")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="MedGuide",
    description="Medication timeline and deterministic clinical-safety assessment",
    version="1.0.0",
    debug=settings.debug,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MalformedInputError)
async def malformed_input_handler(request: Request, exc: MalformedInputError):
    """Bad extractor output is the caller's problem, not a server fault"""
    logger.warning(f"Rejected malformed input on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "event_id": exc.event_id, "field": exc.field}
    )


# =============================================================================
# Health Check Endpoints
# =============================================================================

@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": "1.0.0",
        "environment": settings.environment
    }


# =============================================================================
# Rule Catalog Endpoints
# =============================================================================

@app.get("/api/v1/rules", tags=["clinical_rules"])
async def list_rules(category: Optional[RuleCategory] = Query(None, description="Filter by rule category")):
    """List the enabled clinical rules"""
    catalog = get_rule_catalog()
    rules = catalog.by_category(category) if category else list(catalog)
    return [rule.model_dump(mode="json") for rule in rules]


# =============================================================================
# Safety Endpoints
# =============================================================================

@app.post("/api/v1/safety/evaluate", response_model=SafetyResult, tags=["safety"])
def evaluate_safety_endpoint(request: SafetyEvaluationRequest):
    """
    Evaluate a patient's medication events against the rule catalog

    Args:
        request: Patient profile and medication events in any order

    Returns:
        Deduplicated alerts and summary
    """
    try:
        logger.info(f"Evaluating safety for patient {request.patient.id} ({len(request.events)} events)")
        return run_safety_assessment(request.patient, request.events)

    except MalformedInputError:
        raise
    except Exception as e:
        logger.error(f"Error in safety evaluation: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Safety evaluation failed"
        )


@app.post("/api/v1/timeline", tags=["timeline"])
def build_timeline(request: SafetyEvaluationRequest) -> Dict[str, Any]:
    """
    Build the patient's medication timeline

    Returns:
        Timeline summary with active and stopped medications
    """
    try:
        timeline = build_medication_timeline(request.events, request.patient.id)
        return timeline.get_timeline_summary()

    except MalformedInputError:
        raise
    except Exception as e:
        logger.error(f"Error building timeline: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Timeline construction failed"
        )


@app.post("/api/v1/extraction/analyze", response_model=CompleteAnalysisResult, tags=["extraction"])
def analyze_extraction_endpoint(request: ExtractionAnalysisRequest):
    """
    Post-process extraction model output and run the safety engine on it

    Args:
        request: Patient profile and raw extractor JSON

    Returns:
        Normalized extraction plus safety assessment
    """
    try:
        return analyze_extraction(request.patient, request.extractor_output)

    except MalformedInputError:
        raise
    except Exception as e:
        logger.error(f"Error analyzing extraction: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Analysis failed"
        )


# =============================================================================
# Export Endpoints
# =============================================================================

@app.post("/api/v1/export/fhir", tags=["export"])
def export_fhir(request: SafetyEvaluationRequest) -> Dict[str, Any]:
    """Export the patient's medication events as a FHIR collection Bundle"""
    return generate_fhir_bundle(request.patient, request.events)


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "medguide.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        workers=1 if settings.api_reload else settings.api_workers,
        log_level=settings.log_level.lower()
    )
