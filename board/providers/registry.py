"""Map settings.yaml `sdk` values to provider classes and build the available ones."""

import logging

from config.config_loader import AppConfig
from board.providers.anthropic import AnthropicProvider
from board.providers.base import AIProvider
from board.providers.gemini import GeminiProvider
from board.providers.openai_provider import OpenAIProvider
from board.providers.xai import XAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
    "xai": XAIProvider,
}


def build_providers(config: AppConfig, model_keys: list[str] | None = None) -> dict[str, AIProvider]:
    """Instantiate providers for the given model keys (default: all available).

    Models without an API key or with an unknown sdk are skipped with a warning.
    """
    wanted = model_keys if model_keys is not None else sorted(config.available_models)
    providers: dict[str, AIProvider] = {}
    for key in wanted:
        if key in providers:
            continue
        if key not in config.available_models:
            logger.warning("Model '%s' has no API key configured, skipping", key)
            continue
        model_cfg = config.models[key]
        provider_cls = PROVIDER_CLASSES.get(model_cfg.sdk)
        if provider_cls is None:
            logger.warning("Model '%s' uses unknown sdk '%s', skipping", key, model_cfg.sdk)
            continue
        try:
            providers[key] = provider_cls(model_cfg)
        except Exception as exc:
            logger.warning("Failed to instantiate provider '%s': %s", key, exc)
    return providers
