"""OpenAI chat-completion adapter used by the extraction engine."""

from __future__ import annotations

import logging
from typing import Any

from openai import OpenAI, OpenAIError

from .errors import DownstreamHttpFailure

logger = logging.getLogger(__name__)


class LLMClient:
    """Synchronous JSON-mode completions, text-only or with one image URL."""

    def __init__(self, api_key: str | None, timeout: float) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._client: OpenAI | None = None

    def _get_client(self) -> OpenAI:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise DownstreamHttpFailure("OPENAI_API_KEY is not configured.")
        try:
            self._client = OpenAI(api_key=self._api_key, timeout=self._timeout, max_retries=1)
        except OpenAIError as exc:
            logger.error("Failed to initialise OpenAI client: %s", exc)
            raise DownstreamHttpFailure(str(exc)) from exc
        return self._client

    def complete_json(self, prompt: str, *, model: str, image_url: str | None = None) -> str | None:
        """Return the raw message content of a ``json_object`` completion.

        OpenAI SDK errors propagate; callers decide how timeouts and
        transport failures are classified.
        """
        client = self._get_client()
        content: str | list[dict[str, Any]] = prompt
        if image_url:
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_url}},
            ]

        response = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": content}],
            response_format={"type": "json_object"},
            temperature=0,
        )
        return response.choices[0].message.content
