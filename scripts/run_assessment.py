#!/usr/bin/env python3
"""
MedGuide - Safety Assessment Script
Runs the rules engine over a JSON file of {"patient": ..., "events": [...]}
"""

import sys
import json
import logging
from pathlib import Path

# Add parent directory to path to import medguide modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from medguide.exceptions import MalformedInputError
from medguide.schemas import SafetyEvaluationRequest
from medguide.modules.summarization import run_safety_assessment
from medguide.modules.temporal_reasoning import build_medication_timeline

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main(path: str) -> int:
    """Print the timeline summary and safety alerts for one patient file"""
    request = SafetyEvaluationRequest.model_validate(json.loads(Path(path).read_text()))

    try:
        timeline = build_medication_timeline(request.events, request.patient.id)
        result = run_safety_assessment(request.patient, request.events)
    except MalformedInputError as e:
        logger.error(f"✗ Input rejected: {e}")
        return 1

    summary = timeline.get_timeline_summary()
    logger.info("="*60)
    logger.info(f"Patient {request.patient.name} ({request.patient.age}y)")
    logger.info("="*60)
    logger.info(f"Events: {summary['total_events']} ({summary['start_date']} to {summary['end_date']})")
    logger.info(f"Active: {', '.join(summary['active_medications']) or 'none'}")
    logger.info(f"Stopped: {', '.join(summary['stopped_medications']) or 'none'}")
    logger.info(result.summary)

    for alert in result.alerts:
        logger.info(f"  [{alert.severity.value}] {alert.title}")
        logger.info(f"      {alert.description}")

    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(f"Usage: {sys.argv[0]} <patient.json>")
        sys.exit(2)
    sys.exit(main(sys.argv[1]))
