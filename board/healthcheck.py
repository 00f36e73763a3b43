"""Provider health checks: ping each model before convening the board."""

import asyncio
import logging

from board.providers.base import AIProvider, CallOptions

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(key: str, provider: AIProvider) -> tuple[str, bool, str]:
    """Ping a single provider. Returns (model_key, ok, error_message)."""
    options = CallOptions(max_tokens=16, temperature=0.0, timeout_sec=_TIMEOUT_SEC)
    try:
        await asyncio.wait_for(provider.generate(_PING_PROMPT, options), timeout=_TIMEOUT_SEC)
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", key, exc)
        return key, False, str(exc) or type(exc).__name__
    return key, True, ""


async def run_health_checks(providers: dict[str, AIProvider]) -> dict[str, tuple[bool, str]]:
    """Ping all providers in parallel.

    Returns:
        Dict mapping model key -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(k, p) for k, p in providers.items()))
    return {key: (ok, err) for key, ok, err in results}
