"""Live-update channel: shopping-list row changes over Redis pub/sub.

Every change is published on the list's own channel and on its household's
channel. Subscribers overwrite their local copy with each payload.
"""

import json
from typing import AsyncIterator, Optional

from redis import Redis
from redis import asyncio as aioredis
from redis.exceptions import RedisError

from mealshare.config import settings
from mealshare.logging import get_logger
from mealshare.storage.models import ShoppingList

logger = get_logger(__name__)


def list_channel(list_id: str) -> str:
    return f"shopping_list:{list_id}"


def household_channel(household_id: str) -> str:
    return f"household:{household_id}:shopping_lists"


def change_payload(shopping_list: ShoppingList, event: str) -> dict:
    return {
        "event": event,
        "id": shopping_list.id,
        "household_id": shopping_list.household_id,
        "title": shopping_list.title,
        "status": shopping_list.status,
        "shopping_list": shopping_list.shopping_list,
        "error": shopping_list.error,
        "updated_at": shopping_list.updated_at.isoformat() if shopping_list.updated_at else None,
    }


def _redis_client() -> Redis:
    return Redis.from_url(settings.redis_url, socket_connect_timeout=2, socket_timeout=2)


def publish_list_change(shopping_list: ShoppingList, event: str = "UPDATE") -> Optional[dict]:
    """Publish a row change. Failures are logged, never raised to the writer."""
    payload = change_payload(shopping_list, event)
    message = json.dumps(payload, default=str, ensure_ascii=False)
    try:
        client = _redis_client()
        try:
            client.publish(list_channel(shopping_list.id), message)
            client.publish(household_channel(shopping_list.household_id), message)
        finally:
            client.close()
    except RedisError as exc:
        logger.warning("realtime.publish_failed list_id=%s event=%s error=%s", shopping_list.id, event, exc)
        return None
    logger.info("realtime.published list_id=%s event=%s status=%s", shopping_list.id, event, shopping_list.status)
    return payload


def format_sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str, ensure_ascii=False)}\n\n"


async def stream_channel(channel: str) -> AsyncIterator[str]:
    """Yield SSE frames for every message published on ``channel``."""
    client = aioredis.from_url(settings.redis_url)
    pubsub = client.pubsub()
    await pubsub.subscribe(channel)
    logger.info("realtime.subscribe channel=%s", channel)
    try:
        yield format_sse("subscribed", {"channel": channel})
        async for message in pubsub.listen():
            if message.get("type") != "message":
                continue
            raw = message.get("data")
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            try:
                payload = json.loads(raw)
            except (TypeError, json.JSONDecodeError):
                logger.warning("realtime.bad_message channel=%s", channel)
                continue
            yield format_sse("shopping_list", payload)
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
        await client.aclose()
        logger.info("realtime.unsubscribe channel=%s", channel)
