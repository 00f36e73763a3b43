"""Abstract base for all AI model providers, plus the structured JSON call built on top."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from config.config_loader import ModelConfig

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class ProviderTimeout(ProviderError):
    """Raised when a provider call exceeds its time limit."""


class OutputValidationError(ProviderError):
    """Raised when a response is not valid JSON or does not match the expected schema."""


@dataclass
class ModelResponse:
    provider: str          # model key from settings.yaml
    model: str             # actual model string used
    content: str
    latency_sec: float
    input_tokens: int | None = None
    output_tokens: int | None = None


@dataclass
class CallOptions:
    system_prompt: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    timeout_sec: float | None = None


@dataclass
class StructuredResult(Generic[T]):
    data: T
    cost: float


def extract_json(text: str) -> dict:
    """Parse a JSON object from model output, tolerating markdown fences and chatter.

    Raises:
        ValueError: If no JSON object can be parsed.
    """
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    cleaned = cleaned.strip()

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ValueError(f"No JSON object in response: {exc}") from exc
        try:
            parsed = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as inner:
            raise ValueError(f"Failed to parse JSON response: {inner}") from inner

    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config

    def name(self) -> str:
        """Return the model key (e.g. 'claude_sonnet')."""
        return self._config.name

    def model_string(self) -> str:
        """Return the actual model identifier string."""
        return self._config.model

    @abstractmethod
    async def generate(self, prompt: str, options: CallOptions | None = None) -> ModelResponse:
        """Generate a free-text response for the given prompt.

        Raises:
            ProviderTimeout: When the call exceeds options.timeout_sec
                (or the model's configured timeout).
            ProviderError: On API failure or empty response.
        """
        ...

    def cost_of(self, response: ModelResponse) -> float:
        """USD cost of a response from its token usage and configured pricing."""
        input_cost = (response.input_tokens or 0) * self._config.input_cost_per_mtok
        output_cost = (response.output_tokens or 0) * self._config.output_cost_per_mtok
        return (input_cost + output_cost) / 1_000_000

    def _timeout_for(self, options: CallOptions | None) -> float:
        if options is not None and options.timeout_sec is not None:
            return options.timeout_sec
        return float(self._config.timeout_sec)

    def _max_tokens_for(self, options: CallOptions | None) -> int:
        if options is not None and options.max_tokens is not None:
            return options.max_tokens
        return self._config.max_tokens

    async def complete_json(
        self,
        prompt: str,
        schema: type[T],
        options: CallOptions | None = None,
    ) -> StructuredResult[T]:
        """Call the model and validate its JSON answer against a pydantic schema.

        Raises:
            ProviderTimeout, ProviderError: Propagated from generate().
            OutputValidationError: If the answer is not valid JSON for the schema.
        """
        response = await self.generate(prompt, options)
        cost = self.cost_of(response)

        try:
            payload = extract_json(response.content)
            data = schema.model_validate(payload)
        except (ValueError, PydanticValidationError) as exc:
            logger.debug("Invalid %s payload from %s: %.500s", schema.__name__, self.name(), response.content)
            raise OutputValidationError(self.name(), f"Invalid {schema.__name__}: {exc}") from exc

        return StructuredResult(data=data, cost=cost)
