"""
Client for the external text-understanding service.

Wraps ``openai.AsyncOpenAI`` chat completions with a per-attempt timeout.
Transient failures (timeouts, connection errors, rate limits, 5xx) are
retried by tenacity with exponential backoff; anything else fails fast.
Every failure surfaces as ``ExtractionServiceError`` so callers handle a
single exception type.
"""

import asyncio
import logging
from typing import Optional, Tuple

from openai import (
    APIConnectionError,
    APIError,
    APITimeoutError,
    AsyncOpenAI,
    InternalServerError,
    OpenAIError,
    RateLimitError,
)
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import settings
from app.core.exceptions import ExtractionServiceError
from app.schemas.facts import TokenUsage

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (
    APITimeoutError,
    APIConnectionError,
    RateLimitError,
    InternalServerError,
    asyncio.TimeoutError,
)

_MAX_BACKOFF_SECONDS = 10


class ExtractionClient:
    """Send one extraction request and return the raw JSON text plus usage."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff: Optional[float] = None,
    ) -> None:
        self._client = client
        self.model = model or settings.OPENAI_MODEL
        self.max_tokens = max_tokens or settings.EXTRACTION_MAX_TOKENS
        self.timeout = timeout if timeout is not None else settings.EXTRACTION_TIMEOUT_SECONDS
        self.max_retries = (
            max_retries if max_retries is not None else settings.EXTRACTION_MAX_RETRIES
        )
        self.backoff = backoff if backoff is not None else settings.EXTRACTION_RETRY_BACKOFF_SECONDS

    def _get_client(self) -> AsyncOpenAI:
        """Create the SDK client on first use.

        SDK retries are off: tenacity owns the retry policy, so attempts
        are counted in one place.
        """
        if self._client is None:
            try:
                self._client = AsyncOpenAI(
                    api_key=settings.OPENAI_API_KEY or None,
                    max_retries=0,
                )
            except OpenAIError as exc:
                raise ExtractionServiceError(f"Extraction client not configured: {exc}") from exc
        return self._client

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.backoff, max=_MAX_BACKOFF_SECONDS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def complete_json(self, system_prompt: str, user_content: str) -> Tuple[str, TokenUsage]:
        """Return the model's JSON answer and the tokens it consumed.

        Raises:
            ExtractionServiceError: service unreachable, erroring, or
                still failing after ``max_retries`` retries.
        """
        client = self._get_client()
        try:
            response = await self._retrying()(
                self._create, client, system_prompt, user_content
            )
        except _TRANSIENT_ERRORS as exc:
            raise ExtractionServiceError(
                f"Extraction service unavailable after {self.max_retries + 1} attempts: {exc!r}"
            ) from exc
        except APIError as exc:
            raise ExtractionServiceError(f"Extraction service error: {exc}") from exc

        content = (response.choices[0].message.content or "") if response.choices else ""
        return content, self._usage(response)

    async def _create(self, client: AsyncOpenAI, system_prompt: str, user_content: str):
        """One attempt, bounded by the per-attempt timeout."""
        return await asyncio.wait_for(
            client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                max_tokens=self.max_tokens,
                temperature=0,
                response_format={"type": "json_object"},
            ),
            timeout=self.timeout,
        )

    @staticmethod
    def _usage(response) -> TokenUsage:
        usage = getattr(response, "usage", None)
        if usage is None:
            return TokenUsage()
        return TokenUsage(
            prompt_tokens=usage.prompt_tokens or 0,
            completion_tokens=usage.completion_tokens or 0,
            total_tokens=usage.total_tokens or 0,
        )
