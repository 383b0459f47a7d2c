"""
Text-generation provider backed by the OpenAI chat completions API.
"""

import asyncio
import logging
from typing import Optional, Protocol

from openai import AsyncOpenAI

from wanderpost.core.errors import ProviderError
from wanderpost.core.rate_limit import FixedWindowRateLimiter
from wanderpost.core.settings import Settings

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate(self, prompt: str, temperature: float = 0.7, max_tokens: int = 1000) -> str:
        ...


class OpenAITextGenerator:
    """Rate-limited completion client; every failure surfaces as ProviderError"""

    def __init__(
        self,
        settings: Settings,
        client: Optional[AsyncOpenAI] = None,
        limiter: Optional[FixedWindowRateLimiter] = None,
    ):
        self.settings = settings
        self.model = settings.OPENAI_MODEL
        self.timeout = settings.REQUEST_TIMEOUT_SECONDS
        self.client = client or AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY or None,
            timeout=self.timeout,
            max_retries=0,
        )
        self.limiter = limiter or FixedWindowRateLimiter(settings.OPENAI_RATE_LIMIT_PER_MINUTE)

    async def generate(self, prompt: str, temperature: float = 0.7, max_tokens: int = 1000) -> str:
        await self.limiter.acquire()
        logger.info(f"Requesting completion from {self.model} (max_tokens={max_tokens})")
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=temperature,
                    max_tokens=max_tokens,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError("openai", f"timed out after {self.timeout}s") from e
        except Exception as e:
            raise ProviderError("openai", str(e)) from e

        if not response.choices or not response.choices[0].message.content:
            raise ProviderError("openai", "empty completion")
        return response.choices[0].message.content.strip()
