"""
Decision request service: the one place AI agents talk to a model.
Retries with backoff are left to the Anthropic client (`max_retries`). The
service caches identical prompts for a short TTL and reports network failures
separately from logical ones.
"""
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace

import anthropic
from anthropic import AsyncAnthropic

from games.errors import DecisionRequestError
from .config import Config

logger = logging.getLogger("agentarena.decision")


@dataclass(frozen=True)
class DecisionRequest:
    model: str
    system_prompt: str
    user_prompt: str
    temperature: float = 0.7
    max_tokens: int = 1000
    response_format: str = "json"


@dataclass(frozen=True)
class DecisionResponse:
    content: str
    model: str
    cached: bool = False
    usage: dict = field(default_factory=dict)


class DecisionService(ABC):
    @abstractmethod
    async def request(self, request: DecisionRequest) -> DecisionResponse:
        pass


class AnthropicDecisionService(DecisionService):
    """DecisionService backed by the Anthropic Messages API."""

    def __init__(self, config: Config, client: AsyncAnthropic | None = None):
        self.config = config
        self.client = client or AsyncAnthropic(
            api_key=config.anthropic_api_key,
            timeout=config.request_timeout,
            max_retries=max(0, config.request_retries),
        )
        self.cache_ttl = config.cache_ttl
        self._cache: dict[tuple, tuple[float, DecisionResponse]] = {}
        self.request_count = 0

    async def request(self, request: DecisionRequest) -> DecisionResponse:
        key = (request.model, request.system_prompt, request.user_prompt)
        cached = self._cache.get(key)
        if cached and time.monotonic() - cached[0] < self.cache_ttl:
            logger.debug(f"Cache hit for {request.model}")
            return replace(cached[1], cached=True)

        try:
            response = await self._call_llm(request)
        except anthropic.APIConnectionError as e:
            # APITimeoutError is a connection error too
            logger.warning(f"Model request to {request.model} failed to connect: {e}")
            raise DecisionRequestError(f"Model request failed: {e}", network=True, context={"model": request.model}) from e
        except anthropic.APIStatusError as e:
            logger.error(f"Model request rejected ({e.status_code}): {e}")
            raise DecisionRequestError(
                f"Model request failed: {e}",
                network=False,
                context={"model": request.model, "status": e.status_code},
            ) from e
        except Exception as e:
            logger.warning(f"Model request to {request.model} failed: {e}")
            raise DecisionRequestError(f"Model request failed: {e}", network=False, context={"model": request.model}) from e

        self._cache[key] = (time.monotonic(), response)
        return response

    async def _call_llm(self, request: DecisionRequest) -> DecisionResponse:
        self.request_count += 1
        response = await self.client.messages.create(
            model=request.model,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            system=request.system_prompt,
            messages=[{"role": "user", "content": request.user_prompt}],
        )
        usage = getattr(response, "usage", None)
        return DecisionResponse(
            content=response.content[0].text,
            model=request.model,
            usage={
                "input_tokens": getattr(usage, "input_tokens", 0),
                "output_tokens": getattr(usage, "output_tokens", 0),
            },
        )

    def clear_cache(self):
        self._cache.clear()
