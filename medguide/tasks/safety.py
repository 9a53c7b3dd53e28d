"""
MedGuide - Safety Tasks
Celery tasks wrapping the synchronous safety engine
"""

import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from medguide.celery_app import celery_app
from medguide.schemas import SafetyEvaluationRequest
from medguide.exceptions import MalformedInputError
from medguide.modules.summarization import run_safety_assessment

logger = logging.getLogger(__name__)


def _assess(payload: Dict[str, Any]) -> Dict[str, Any]:
    try:
        request = SafetyEvaluationRequest.model_validate(payload)
    except ValidationError as e:
        raise MalformedInputError(f"Invalid safety evaluation payload: {e.errors()[0]['msg']}") from e

    result = run_safety_assessment(request.patient, request.events)
    return result.model_dump(mode="json", by_alias=True)


@celery_app.task(name="medguide.tasks.safety.evaluate_safety", bind=True)
def evaluate_safety_task(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Evaluate one patient's medication events asynchronously

    Args:
        payload: {"patient": PatientProfile, "events": [MedicationEvent, ...]}

    Returns:
        SafetyResult as dictionary
    """
    logger.info(f"Starting async safety evaluation (task {self.request.id})")
    try:
        return _assess(payload)
    except MalformedInputError as e:
        # Bad extractor output is not retryable
        logger.error(f"Safety evaluation rejected input: {e}")
        raise


@celery_app.task(name="medguide.tasks.safety.evaluate_batch", bind=True)
def evaluate_batch_task(self, payloads: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Evaluate several patients in one task

    A malformed payload yields an {"error": ...} entry in its slot instead of
    failing the whole batch.
    """
    logger.info(f"Starting batch safety evaluation of {len(payloads)} patients")
    results = []

    for index, payload in enumerate(payloads):
        try:
            results.append(_assess(payload))
        except MalformedInputError as e:
            logger.warning(f"Batch item {index} rejected: {e}")
            results.append({"error": str(e)})

    return results
