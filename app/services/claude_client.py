"""Claude AI client used as the text-generation service."""

import asyncio
import logging
import random
from typing import Optional

import httpx
from anthropic import APIConnectionError, APIError, AsyncAnthropic, RateLimitError

from app.config import settings
from app.services.exceptions import ServiceConfigError, ServiceUnavailable

logger = logging.getLogger(__name__)


class ClaudeClient:
    """Client for interacting with Claude AI."""

    def __init__(self, api_key: str = None, model: str = None, timeout: float = None):
        """Initialize Claude client; the API client is created on first use."""
        self.api_key = api_key if api_key is not None else settings.ANTHROPIC_API_KEY
        self.model = model or settings.CLAUDE_MODEL
        self.timeout = timeout or settings.EXTRACTION_TIMEOUT_SECONDS
        self.max_tokens = settings.EXTRACTION_MAX_TOKENS
        self.max_retries = settings.MAX_API_RETRIES
        self.retry_base_delay = settings.RETRY_BASE_DELAY
        self.retry_max_delay = settings.RETRY_MAX_DELAY
        self.retry_jitter = settings.RETRY_JITTER
        self._client: Optional[AsyncAnthropic] = None

    @property
    def client(self) -> AsyncAnthropic:
        if not self.api_key:
            raise ServiceConfigError("Claude API key not configured")
        if self._client is None:
            self._client = AsyncAnthropic(
                api_key=self.api_key,
                timeout=httpx.Timeout(self.timeout, connect=10.0),
                max_retries=0,
            )
        return self._client

    async def _call_with_retry(self, create_func):
        """Call Claude API, retrying only on rate limits with exponential backoff."""
        last_error = None
        attempts = max(self.max_retries, 1)

        for attempt in range(attempts):
            try:
                response = await create_func()

                # Log token usage for monitoring
                if hasattr(response, "usage"):
                    logger.info(
                        f"Claude API call: {response.usage.input_tokens} input, "
                        f"{response.usage.output_tokens} output tokens"
                    )

                return response

            except RateLimitError as e:
                last_error = e
                if attempt == attempts - 1:
                    break
                base_wait = min(self.retry_base_delay * (2 ** attempt), self.retry_max_delay)
                wait_time = base_wait + random.uniform(0, self.retry_jitter)
                logger.warning(
                    f"Rate limited, waiting {wait_time:.1f}s (attempt {attempt + 1}/{attempts})"
                )
                await asyncio.sleep(wait_time)

        raise last_error

    async def generate(self, prompt: str) -> str:
        """
        Send a single-turn prompt and return the text of the reply.

        Args:
            prompt: Complete user prompt

        Returns:
            Text content of the first response block

        Raises:
            ServiceConfigError: no API key configured (nothing is sent)
            ServiceUnavailable: transport failure, API error, timeout or empty reply
        """
        client = self.client

        try:
            response = await asyncio.wait_for(
                self._call_with_retry(
                    lambda: client.messages.create(
                        model=self.model,
                        max_tokens=self.max_tokens,
                        temperature=0.1,
                        messages=[{"role": "user", "content": prompt}],
                    )
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Claude API call timed out after {self.timeout}s")
            raise ServiceUnavailable(f"Claude API timed out after {self.timeout}s") from e
        except APIConnectionError as e:
            logger.error(f"Claude API connection failed: {e}")
            raise ServiceUnavailable(f"Claude API connection failed: {e}") from e
        except APIError as e:
            logger.error(f"Claude API error: {e}")
            raise ServiceUnavailable(f"Claude API error: {e}") from e

        for block in response.content:
            if getattr(block, "type", None) == "text" and block.text:
                return block.text

        raise ServiceUnavailable("No content in Claude response")
