import time
from typing import Any

import dspy

from mealshare.config import settings
from mealshare.logging import get_logger
from mealshare.storage.db import get_session
from mealshare.storage.repositories import log_llm_call
from mealshare.utils.timing import format_duration

logger = get_logger(__name__)


def _make_lm(model: str) -> dspy.LM:
    return dspy.LM(
        f"{settings.llm_provider}/{model}",
        api_key=settings.llm_api_key,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout_s,
    )


def configure_dspy() -> None:
    dspy.configure(lm=_make_lm(settings.llm_model))
    logger.info("llm.configure provider=%s model=%s", settings.llm_provider, settings.llm_model)


def llm_context():
    """LM scope for request handlers; dspy.configure may only be called from the thread that first called it."""
    return dspy.context(lm=_make_lm(settings.llm_model))


def run_with_logging(prompt_name: str, prompt_version: str, fn: Any, **kwargs: Any) -> Any:
    """Call ``fn(**kwargs)`` and persist the call (input, output, latency) to LLMCallLog."""
    start = time.time()
    logger.info("[TIMING] llm.call.start name=%s version=%s model=%s", prompt_name, prompt_version, settings.llm_model)
    result = fn(**kwargs)
    latency_ms = int((time.time() - start) * 1000)
    with get_session() as session:
        log_llm_call(
            session=session,
            prompt_name=prompt_name,
            prompt_version=prompt_version,
            model=settings.llm_model,
            input_payload=_truncate(str(kwargs)),
            output_payload=_truncate(str(result)),
            latency_ms=latency_ms,
        )
    logger.info(
        "[TIMING] llm.call.end name=%s latency_ms=%s (%s)",
        prompt_name,
        latency_ms,
        format_duration(latency_ms),
    )
    return result


def _truncate(payload: str, limit: int = 8000) -> str:
    # image payloads are base64 and can be megabytes
    if len(payload) <= limit:
        return payload
    return payload[:limit] + f"...[{len(payload) - limit} chars truncated]"
