"""
MedGuide - Celery Application Configuration
Runs safety assessments asynchronously for batch and background callers
"""

import logging
from celery import Celery
from medguide.config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create Celery application
celery_app = Celery(
    "medguide",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "medguide.tasks.safety",
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    enable_utc=True,
    task_time_limit=settings.task_time_limit,
    task_soft_time_limit=settings.task_soft_time_limit,
    worker_prefetch_multiplier=settings.worker_prefetch_multiplier,
    result_expires=600,
    task_always_eager=settings.celery_task_always_eager,
)

celery_app.conf.task_routes = {
    "medguide.tasks.safety.*": {"queue": "safety"},
}

logger.debug(f"Celery broker: {settings.celery_broker_url}")

if __name__ == "__main__":
    celery_app.start()
