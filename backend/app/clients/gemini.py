"""
Google Gemini API client (generateContent).

API Documentation: https://ai.google.dev/api/generate-content
Authentication: x-goog-api-key header

The request enables the google_search tool so answers are grounded in live web
results. Grounded responses cannot be forced into JSON mode, so callers get raw
text and parse it themselves.
"""

import httpx

from app.clients.base_client import APIError, BaseAPIClient, TransientAPIError
from app.config import settings
from app.services.errors import LookupRejectedError, TransientLookupError


class GeminiClient(BaseAPIClient):
    """Gemini text generation client returning the raw response text."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_attempts: int | None = None,
        backoff_min: float | None = None,
        backoff_max: float | None = None,
        use_search_grounding: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.use_search_grounding = (
            settings.gemini_use_search_grounding
            if use_search_grounding is None
            else use_search_grounding
        )
        super().__init__(
            base_url=settings.gemini_base_url,
            headers={"x-goog-api-key": self.api_key},
            timeout=settings.gemini_timeout_seconds,
            max_attempts=max_attempts or settings.enrichment_max_attempts,
            backoff_min=settings.enrichment_retry_backoff_min if backoff_min is None else backoff_min,
            backoff_max=settings.enrichment_retry_backoff_max if backoff_max is None else backoff_max,
            transport=transport,
        )

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    async def generate_text(self, prompt: str) -> str:
        """
        Run a single-turn prompt and return the concatenated text parts.

        Raises:
            TransientLookupError: retries exhausted on a timeout/network/rate-limit failure
            LookupRejectedError: missing key, non-retryable HTTP error or blocked prompt
        """
        if not self.api_key:
            raise LookupRejectedError("GEMINI_API_KEY not configured")

        body: dict = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if self.use_search_grounding:
            body["tools"] = [{"google_search": {}}]

        try:
            data = await self.post(f"/models/{self.model}:generateContent", json=body)
        except TransientAPIError as e:
            raise TransientLookupError(str(e)) from e
        except APIError as e:
            raise LookupRejectedError(str(e)) from e

        return self._extract_text(data)

    @staticmethod
    def _extract_text(data: object) -> str:
        """Join the text parts of the first candidate.

        Raises LookupRejectedError when the body is not shaped like a
        generateContent response.
        """
        if not isinstance(data, dict):
            raise LookupRejectedError(f"Unexpected response body: {type(data).__name__}")

        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback")
            reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            if reason:
                raise LookupRejectedError(f"Prompt blocked: {reason}")
            return ""
        if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
            raise LookupRejectedError("Unexpected candidates in response")

        content = candidates[0].get("content") or {}
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return ""
        return "".join(
            p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
        )
