"""
Tests for the moderation orchestrator and its fail-safe guarantees.
"""

import asyncio
import pytest

from llm_moderation.classifier import FailureKind, ResilientClassifier, fallback_response
from llm_moderation.config import Settings
from llm_moderation.exceptions import ConfigurationError, InvalidInputError, ProviderError
from llm_moderation.models import ClassifierResponse
from llm_moderation.moderate import Moderator, build_moderator, moderate_text
from llm_moderation.thresholds import DEFAULT_THRESHOLDS, with_overrides

from conftest import FakeBackend, FakeClassifier, make_scores, model_json


def moderator_for(**scores):
    return Moderator(FakeClassifier(ClassifierResponse(scores=make_scores(**scores))))


class TestModerate:
    """End-to-end decisions through a substitute classifier."""

    def test_block(self):
        result = asyncio.run(moderator_for(hate=0.9).moderate("some text"))
        assert result.action == "block"
        assert result.labels == ["hate"]
        assert result.risk == 0.9

    def test_review(self):
        result = asyncio.run(moderator_for(harassment=0.75).moderate("some text"))
        assert result.action == "review"
        assert result.allowed is False

    def test_allow(self):
        result = asyncio.run(moderator_for().moderate("hello there"))
        assert result.action == "allow"
        assert result.allowed is True

    def test_per_call_thresholds(self):
        thresholds = with_overrides(DEFAULT_THRESHOLDS, {"politics": {"review_low": 0.1, "review_high": 0.2, "block": 0.2}})
        result = asyncio.run(moderator_for(politics=0.3).moderate("vote", thresholds=thresholds))
        assert result.action == "block"

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_text_rejected(self, text):
        classifier = FakeClassifier()
        with pytest.raises(InvalidInputError):
            asyncio.run(Moderator(classifier).moderate(text))
        assert classifier.calls == 0


class TestFailSafe:
    """Fallback responses never allow."""

    @pytest.mark.parametrize("kind", list(FailureKind))
    def test_fallback_reviews(self, kind):
        moderator = Moderator(FakeClassifier(fallback_response(kind, "upstream down")))
        result = asyncio.run(moderator.moderate("some text"))
        assert result.action == "review"
        assert result.allowed is False
        assert result.explanations
        assert result.explanations[0].startswith(kind.value)

    def test_fallback_without_evidence_gets_reason(self):
        response = ClassifierResponse(scores=make_scores(), uncertainty=0.9, fallback_reason="parse error")
        result = asyncio.run(Moderator(FakeClassifier(response)).moderate("x"))
        assert result.action == "review"
        assert result.explanations == ["parse error"]

    def test_classifier_exception_becomes_review(self):
        moderator = Moderator(FakeClassifier(error=RuntimeError("socket closed")))
        result = asyncio.run(moderator.moderate("some text"))
        assert result.action == "review"
        assert result.explanations == ["provider error: socket closed"]

    def test_classifier_timeout_becomes_review(self):
        moderator = Moderator(FakeClassifier(error=asyncio.TimeoutError()))
        result = asyncio.run(moderator.moderate("some text"))
        assert result.action == "review"
        assert result.explanations == ["timeout"]

    def test_every_retry_failing_never_allows(self, no_sleep):
        backend = FakeBackend(ProviderError("HTTP 500"))
        moderator = Moderator(ResilientClassifier(backend, sleep=no_sleep))
        result = asyncio.run(moderator.moderate("some text"))
        assert result.action in ("review", "block")
        assert result.allowed is False
        assert "provider error" in result.explanations[0]

    def test_real_fallback_scores_can_still_block(self):
        # A fallback never lowers an action, it only lifts allow
        response = ClassifierResponse(scores=make_scores(hate=1.0), uncertainty=0.85, fallback_reason="timeout")
        result = asyncio.run(Moderator(FakeClassifier(response)).moderate("x"))
        assert result.action == "block"


class TestCaching:
    """Repeated text within the TTL window."""

    def test_identical_text_one_remote_call(self, no_sleep):
        backend = FakeBackend(model_json(spam=0.72))
        classifier = ResilientClassifier(backend, sleep=no_sleep)
        moderator = Moderator(classifier)

        first = asyncio.run(moderator.moderate("buy now!!!"))
        second = asyncio.run(moderator.moderate("buy now!!!"))
        assert first == second
        assert first.action == "review"
        assert backend.calls == 1
        assert classifier.remote_calls == 1

    def test_moderate_text_helper(self):
        result = asyncio.run(moderate_text("hi", moderator=moderator_for()))
        assert result.action == "allow"


class TestBuildModerator:
    """Wiring from settings."""

    def test_builds_with_key(self):
        moderator = build_moderator(Settings(gemini_api_key="k", cache_backend="memory", timeout_ms=1200))
        assert isinstance(moderator.classifier, ResilientClassifier)
        assert moderator.timeout_ms == 1200

    def test_missing_key(self, monkeypatch):
        from llm_moderation import providers
        monkeypatch.setattr(providers.settings, "gemini_api_key", None)
        with pytest.raises(ConfigurationError):
            build_moderator(Settings(gemini_api_key=None))

    def test_bad_thresholds_file(self):
        with pytest.raises(ConfigurationError):
            build_moderator(Settings(gemini_api_key="k", thresholds_path="/nonexistent/thresholds.yaml"))

    def test_bad_cache_backend(self):
        with pytest.raises(ConfigurationError):
            build_moderator(Settings(gemini_api_key="k", cache_backend="redis", redis_url=None))


class TestAclose:
    """Resource release passes through to the classifier."""

    def test_closes_classifier(self):
        class ClosableClassifier(FakeClassifier):
            closed = False

            async def aclose(self):
                self.closed = True

        classifier = ClosableClassifier()
        asyncio.run(Moderator(classifier).aclose())
        assert classifier.closed

    def test_classifier_without_aclose(self):
        asyncio.run(Moderator(FakeClassifier()).aclose())
