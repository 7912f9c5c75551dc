"""
Moderation orchestrator: classifier -> decision engine -> fail-safe override.
"""

import asyncio
import logging
import yaml
from typing import Optional

from .cache import create_response_cache
from .classifier import Classifier, FailureKind, ResilientClassifier, fallback_response
from .config import Settings, settings as default_settings
from .decision import apply_policy
from .exceptions import ConfigurationError, InvalidInputError
from .models import ClassifierResponse, ModerationResult
from .providers import GeminiBackend
from .thresholds import DEFAULT_THRESHOLDS, Thresholds, load_thresholds

logger = logging.getLogger(__name__)


class Moderator:
    """Sequences a classifier and the decision engine for one text at a time."""

    def __init__(
        self,
        classifier: Classifier,
        thresholds: Optional[Thresholds] = None,
        timeout_ms: Optional[int] = None,
    ):
        self.classifier = classifier
        self.thresholds = thresholds if thresholds is not None else DEFAULT_THRESHOLDS
        self.timeout_ms = timeout_ms

    async def _classify(self, text: str, lang: Optional[str], timeout: Optional[float]) -> ClassifierResponse:
        # Substitute classifiers need not honor the never-raise contract
        try:
            return await self.classifier.classify(text, lang=lang, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Classifier timed out; using fallback")
            return fallback_response(FailureKind.TIMEOUT)
        except Exception as e:
            logger.error(f"Classifier raised {type(e).__name__}; using fallback")
            return fallback_response(FailureKind.PROVIDER, str(e) or type(e).__name__)

    async def moderate(
        self,
        text: str,
        lang: Optional[str] = None,
        thresholds: Optional[Thresholds] = None,
        timeout_ms: Optional[int] = None,
    ) -> ModerationResult:
        """
        Moderate a single text.

        Raises:
            InvalidInputError: If text is empty or whitespace only
        """
        if not isinstance(text, str) or not text.strip():
            raise InvalidInputError("text is required")

        timeout_ms = timeout_ms if timeout_ms is not None else self.timeout_ms
        timeout = timeout_ms / 1000 if timeout_ms else None

        response = await self._classify(text, lang, timeout)
        result = apply_policy(
            response.scores,
            uncertainty=response.uncertainty,
            explanations=response.evidence,
            thresholds=thresholds if thresholds is not None else self.thresholds,
        )

        # Fail-safe: a fallback response never allows content
        if response.is_fallback and result.action == "allow":
            result = result.model_copy(update={
                "action": "review",
                "allowed": False,
                "explanations": result.explanations or [response.fallback_reason],
            })

        logger.info(
            f"Moderation decided action={result.action} risk={result.risk:.2f} "
            f"labels={','.join(result.labels) or '-'} fallback={response.is_fallback}"
        )
        return result

    async def aclose(self) -> None:
        """Release connections held by the classifier, if it has any."""
        close = getattr(self.classifier, "aclose", None)
        if close is not None:
            await close()


def build_moderator(config: Settings = default_settings) -> Moderator:
    """
    Wire the production moderator from settings.

    Raises:
        ConfigurationError: If the provider credential is missing or the
            thresholds file or cache backend is invalid
    """
    thresholds = DEFAULT_THRESHOLDS
    if config.thresholds_path:
        try:
            thresholds = load_thresholds(config.thresholds_path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Invalid thresholds file {config.thresholds_path}: {e}") from e
    backend = GeminiBackend(
        api_key=config.gemini_api_key,
        model=config.gemini_model,
        base_url=config.gemini_base_url,
    )
    try:
        cache = create_response_cache(backend=config.cache_backend, redis_url=config.redis_url)
    except (RuntimeError, ValueError) as e:
        raise ConfigurationError(str(e)) from e
    classifier = ResilientClassifier(
        backend,
        cache,
        ttl_seconds=config.cache_ttl_seconds,
        max_retries=config.max_retries,
        initial_backoff_ms=config.initial_backoff_ms,
        max_backoff_ms=config.max_backoff_ms,
    )
    return Moderator(classifier, thresholds=thresholds, timeout_ms=config.timeout_ms)


async def moderate_text(text: str, moderator: Optional[Moderator] = None, **kwargs) -> ModerationResult:
    """Convenience wrapper: moderate ``text`` with ``moderator`` or one built from settings."""
    moderator = moderator or build_moderator()
    return await moderator.moderate(text, **kwargs)
