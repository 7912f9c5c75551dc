"""
Remote text-generation backends for the classifier.
A backend only turns a prompt into raw model text; parsing, retries and
caching live in the classifier orchestrator.
"""

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from .config import settings
from .exceptions import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Protocol for remote generation backends."""
    model: str

    async def generate(self, prompt: str) -> str: ...


class GeminiBackend:
    """Gemini ``generateContent`` over REST."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_output_tokens: int = 256,
    ):
        key = api_key or settings.gemini_api_key
        if not key:
            raise ConfigurationError("GEMINI_API_KEY is required")
        self.api_key = key
        self.model = model or settings.gemini_model
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.max_output_tokens = max_output_tokens
        self._owns_client = http_client is None
        # Per-call deadlines are enforced by the orchestrator; this is only a transport ceiling
        self.http_client = http_client or httpx.AsyncClient(timeout=30.0)

    @property
    def url(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    def _body(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                # Strongly hint JSON-only
                "responseMimeType": "application/json",
                "maxOutputTokens": self.max_output_tokens,
                "temperature": 0,
            },
        }

    @staticmethod
    def extract_text(response_body: Dict[str, Any]) -> Optional[str]:
        """Extract text from a Gemini response."""
        try:
            parts = response_body["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            return None
        texts = [p.get("text", "") for p in parts if isinstance(p, dict)]
        text = "".join(texts)
        return text or None

    async def generate(self, prompt: str) -> str:
        response = await self.http_client.post(
            self.url,
            params={"key": self.api_key},
            json=self._body(prompt),
        )

        if response.status_code != 200:
            logger.warning(f"Gemini API returned status {response.status_code} for model {self.model}")
            raise ProviderError(
                f"Gemini API error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderError(f"Gemini returned a non-JSON body: {e}") from e

        text = self.extract_text(body)
        if text is None:
            raise ProviderError("Gemini response contained no text candidates")
        return text

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()
