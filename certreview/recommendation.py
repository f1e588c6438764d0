"""Streamed client-feedback recommendations from OpenAI."""

from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from certreview.config import settings
from certreview.errors import ExternalServiceError

_client: AsyncOpenAI | None = None


def get_openai_client() -> AsyncOpenAI:
    """Dependency returning a lazily built process-wide client."""
    global _client
    if _client is None:
        try:
            _client = AsyncOpenAI(api_key=settings.openai_api_key)
        except OpenAIError as exc:
            raise ExternalServiceError("Recommendation service is not configured") from exc
    return _client


async def open_completion_stream(client: AsyncOpenAI, prompt: str, model: str | None) -> Any:
    return await client.chat.completions.create(
        model=model or settings.recommendation_model,
        messages=[{"role": "user", "content": prompt}],
        stream=True,
    )


async def iter_text(stream: Any) -> AsyncIterator[str]:
    """Plain-text deltas of a chat completion stream."""
    async for chunk in stream:
        if not chunk.choices:
            continue
        delta = chunk.choices[0].delta.content
        if delta:
            yield delta
