"""Gemini provider using google-genai SDK with native async."""

import asyncio
import logging
import os
import time

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from board.providers.base import AIProvider, CallOptions, ModelResponse, ProviderError, ProviderTimeout

logger = logging.getLogger(__name__)


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    async def generate(self, prompt: str, options: CallOptions | None = None) -> ModelResponse:
        timeout = self._timeout_for(options)
        gen_config = genai_types.GenerateContentConfig(
            max_output_tokens=self._max_tokens_for(options),
            system_instruction=options.system_prompt if options is not None else None,
            temperature=options.temperature if options is not None else None,
        )

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._config.model,
                    contents=prompt,
                    config=gen_config,
                ),
                timeout=timeout,
            )
        except TimeoutError as exc:
            raise ProviderTimeout(self._config.name, f"Request timed out after {timeout:g}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.text:
            raise ProviderError(self._config.name, "Empty response text")

        input_tokens = output_tokens = None
        if response.usage_metadata:
            input_tokens = response.usage_metadata.prompt_token_count
            output_tokens = response.usage_metadata.candidates_token_count

        logger.info("Gemini %s: %.2fs, %s/%s tokens", self._config.model, latency, input_tokens, output_tokens)

        return ModelResponse(
            provider=self._config.name,
            model=self._config.model,
            content=response.text,
            latency_sec=latency,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
