from datetime import datetime, timedelta

from celery.utils.log import get_task_logger

from mealshare.config import settings
from mealshare.logging import get_logger
from mealshare.services.llm.dspy_client import configure_dspy
from mealshare.services.realtime import publish_list_change
from mealshare.services.shopping.generation import build_shopping_list
from mealshare.services.shopping.store import mark_failed, mark_ready
from mealshare.storage.db import get_session
from mealshare.storage.models import ShoppingListStatus
from mealshare.storage.repositories import get_shopping_list_by_id, get_stale_pending_lists
from mealshare.utils.timing import time_span
from mealshare.workers.celery_app import celery_app

logger = get_task_logger(__name__)
app_logger = get_logger(__name__)


@celery_app.task(bind=True)
def generate_shopping_list(self, list_id: str):
    """Fill a PENDING list from its recipe selections; FAILED with a message on error."""
    task_id = self.request.id
    logger.info("generation.start task_id=%s list_id=%s", task_id, list_id)
    with time_span("generation.total", task_id=task_id, list_id=list_id) as span:
        with get_session() as session:
            shopping_list = get_shopping_list_by_id(session, list_id)
            if shopping_list is None:
                app_logger.warning("generation.skip list_id=%s not found; deleted before the job ran", list_id)
                return {"status": "skipped", "list_id": list_id, "reason": "not_found"}
            if shopping_list.status != ShoppingListStatus.PENDING.value:
                app_logger.info("generation.skip list_id=%s status=%s", list_id, shopping_list.status)
                return {"status": "skipped", "list_id": list_id, "reason": shopping_list.status}
            try:
                if settings.use_llm_categorizer:
                    configure_dspy()
                data = build_shopping_list(session, shopping_list)
            except Exception as exc:
                app_logger.error(
                    "generation.failure task_id=%s list_id=%s error=%s",
                    task_id,
                    list_id,
                    exc,
                    exc_info=True,
                )
                mark_failed(session, shopping_list, str(exc) or exc.__class__.__name__)
                publish_list_change(shopping_list)
                raise
            mark_ready(session, shopping_list, data)
            publish_list_change(shopping_list)
            item_count = sum(len(c.items) for c in data.categories)
            span["items"] = item_count
    app_logger.info("generation.success task_id=%s list_id=%s items=%s", task_id, list_id, item_count)
    return {"status": "success", "list_id": list_id, "items": item_count}


@celery_app.task
def fail_stale_generations(timeout_minutes: int | None = None):
    """Mark lists stuck in PENDING past the timeout as FAILED so owners can retry.

    Run periodically via Celery Beat.
    """
    minutes = timeout_minutes or settings.generation_timeout_minutes
    cutoff = datetime.utcnow() - timedelta(minutes=minutes)
    with get_session() as session:
        stale = get_stale_pending_lists(session, cutoff)
        for shopping_list in stale:
            mark_failed(session, shopping_list, f"generation timed out after {minutes} minutes")
            publish_list_change(shopping_list)
        list_ids = [s.id for s in stale]
    app_logger.info("generation.stale_failed count=%s list_ids=%s", len(list_ids), list_ids)
    return {"failed": len(list_ids), "list_ids": list_ids}
