"""
Resilient classifier orchestrator.

Wraps a remote text-generation backend with redaction, a TTL response cache,
a per-call deadline, bounded retry with exponential backoff, and fallback
construction. ``classify`` never raises for provider, parse, or timeout
failures; "don't know" is expressed as a high-uncertainty fallback response.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from .cache import InMemoryResponseCache, ResponseCache, cache_key
from .categories import empty_scores
from .detectors import RedactResult, redact_pii
from .models import ClassifierResponse
from .parsing import parse_model_text
from .prompt import build_moderation_prompt
from .providers import TextGenerator

logger = logging.getLogger(__name__)

MAX_DETAIL_CHARS = 120


class Classifier(Protocol):
    """Anything that can turn text into a validated classifier response."""
    async def classify(
        self,
        text: str,
        lang: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ClassifierResponse: ...


class FailureKind(str, Enum):
    PARSE = "parse error"
    PROVIDER = "provider error"
    TIMEOUT = "timeout"


# All above the uncertainty widening threshold
FALLBACK_UNCERTAINTY = {
    FailureKind.PARSE: 0.75,
    FailureKind.PROVIDER: 0.85,
    FailureKind.TIMEOUT: 0.85,
}


def fallback_response(kind: FailureKind, detail: Optional[str] = None) -> ClassifierResponse:
    """
    Build a fallback response: zero scores, no labels, one evidence string naming
    the failure, and uncertainty high enough to widen thresholds.
    """
    reason = kind.value
    if kind is FailureKind.PROVIDER and detail:
        reason = f"{reason}: {detail[:MAX_DETAIL_CHARS]}"
    return ClassifierResponse(
        scores=empty_scores(),
        labels=[],
        evidence=[reason],
        uncertainty=FALLBACK_UNCERTAINTY[kind],
        fallback_reason=reason,
    )


class ResilientClassifier:
    """
    Classifier orchestrator around a remote backend.

    Usage:
        classifier = ResilientClassifier(GeminiBackend(), timeout_ms=3500)
        response = await classifier.classify("some text", lang="en")
    """

    def __init__(
        self,
        backend: TextGenerator,
        cache: Optional[ResponseCache] = None,
        *,
        ttl_seconds: float = 600,
        max_retries: int = 2,
        initial_backoff_ms: int = 300,
        max_backoff_ms: int = 2500,
        timeout_ms: Optional[int] = None,
        redactor: Callable[[str], RedactResult] = redact_pii,
        prompt_builder: Callable[[str, Optional[str]], str] = build_moderation_prompt,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.backend = backend
        self.cache = cache if cache is not None else InMemoryResponseCache()
        self.ttl_seconds = ttl_seconds
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff_ms / 1000
        self.max_backoff = max_backoff_ms / 1000
        self.timeout_ms = timeout_ms
        self.redactor = redactor
        self.prompt_builder = prompt_builder
        self._sleep = sleep
        # instrumentation
        self.remote_calls = 0
        self.cache_hits = 0

    @property
    def model(self) -> str:
        return self.backend.model

    async def classify(
        self,
        text: str,
        lang: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> ClassifierResponse:
        """
        Classify text, returning a real or fallback response.

        Args:
            text: Raw text; it is redacted before hashing and before transmission
            lang: Optional language hint passed to the prompt
            timeout: Deadline in seconds for this call, covering every attempt
                and backoff sleep; defaults to ``timeout_ms``

        Returns:
            ClassifierResponse (check ``is_fallback``)
        """
        redacted = self.redactor(text).redacted
        key = cache_key(self.model, redacted)

        cached = await self._cache_get(key)
        if cached is not None:
            self.cache_hits += 1
            logger.debug(f"Classifier cache hit for model {self.model}")
            return cached

        if timeout is None and self.timeout_ms:
            timeout = self.timeout_ms / 1000

        try:
            response = await asyncio.wait_for(self._classify_with_retries(redacted, lang), timeout)
        except asyncio.TimeoutError:
            # Deadlines are per caller; a timeout verdict is not cached
            logger.warning(f"Classifier call timed out after {timeout}s; using fallback")
            return fallback_response(FailureKind.TIMEOUT)

        await self._cache_set(key, response)
        return response

    async def _classify_with_retries(self, redacted: str, lang: Optional[str]) -> ClassifierResponse:
        prompt = self.prompt_builder(redacted, lang)
        backoff = min(self.initial_backoff, self.max_backoff)
        attempt = 0

        while True:
            attempt += 1
            self.remote_calls += 1
            detail = None
            # The caller deadline cancels this coroutine, so a TimeoutError raised
            # here comes from the transport and is retried like any provider error
            try:
                raw = await self.backend.generate(prompt)
            except Exception as e:
                kind = FailureKind.PROVIDER
                detail = str(e) or type(e).__name__
            else:
                try:
                    parsed = parse_model_text(raw)
                except Exception as e:
                    logger.error(f"Classifier output could not be parsed: {type(e).__name__}")
                    parsed = None
                if parsed is not None:
                    return parsed
                kind = FailureKind.PARSE

            logger.warning(f"Classifier attempt {attempt}/{self.max_retries + 1} failed: {kind.value}")
            if attempt > self.max_retries:
                logger.warning(f"Classifier retries exhausted; using fallback ({kind.value})")
                return fallback_response(kind, detail)

            await self._sleep(backoff)
            backoff = min(backoff * 2, self.max_backoff)

    async def _cache_get(self, key: str) -> Optional[ClassifierResponse]:
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.error(f"Response cache read failed: {e}")
            return None

    async def _cache_set(self, key: str, response: ClassifierResponse) -> None:
        try:
            await self.cache.set(key, response, self.ttl_seconds)
        except Exception as e:
            logger.error(f"Response cache write failed: {e}")

    async def aclose(self) -> None:
        """Release the backend HTTP client and the cache connection, where they have one."""
        for resource in (self.backend, self.cache):
            close = getattr(resource, "aclose", None)
            if close is not None:
                await close()
