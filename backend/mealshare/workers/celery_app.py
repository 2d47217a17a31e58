from celery import Celery

from mealshare.config import settings
from mealshare.logging import configure_logging, get_logger


celery_app = Celery("mealshare", broker=settings.redis_url, backend=settings.redis_url)
celery_app.conf.task_routes = {"mealshare.workers.tasks.*": {"queue": "celery"}}
celery_app.conf.worker_concurrency = settings.celery_worker_concurrency

# Celery Beat: lists stuck in PENDING (lost worker, crashed job) become FAILED
celery_app.conf.beat_schedule = {
    "fail-stale-generations": {
        "task": "mealshare.workers.tasks.fail_stale_generations",
        "schedule": 300.0,
        "options": {"queue": "celery"},
    },
}

# Import tasks so they are registered with the worker
from mealshare.workers import tasks  # noqa: E402,F401

configure_logging()
logger = get_logger(__name__)
logger.info(
    "celery.configured broker=%s worker_concurrency=%s",
    settings.redis_url,
    settings.celery_worker_concurrency,
)
