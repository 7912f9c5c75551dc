"""
Shared test doubles: deterministic backends and classifiers.
"""

import json
import pytest

from llm_moderation.categories import empty_scores
from llm_moderation.models import ClassifierResponse


def make_scores(**overrides):
    scores = empty_scores()
    scores.update(overrides)
    return scores


def model_json(uncertainty=0.0, labels=None, evidence=None, **scores):
    return json.dumps({
        "scores": make_scores(**scores),
        "labels": labels or [],
        "evidence": evidence or [],
        "uncertainty": uncertainty,
    })


class FakeBackend:
    """Replays scripted outputs; an Exception instance in the script is raised instead."""
    model = "fake-model"

    def __init__(self, *outputs):
        self.outputs = list(outputs)
        self.prompts = []

    @property
    def calls(self):
        return len(self.prompts)

    async def generate(self, prompt):
        self.prompts.append(prompt)
        out = self.outputs[min(len(self.prompts), len(self.outputs)) - 1]
        if isinstance(out, Exception):
            raise out
        return out


class FakeClassifier:
    """Substitute classifier returning a fixed response and counting calls."""
    model = "fake-model"

    def __init__(self, response=None, error=None):
        self.response = response or ClassifierResponse(scores=make_scores())
        self.error = error
        self.calls = 0

    async def classify(self, text, lang=None, timeout=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def no_sleep():
    """Recording replacement for asyncio.sleep."""
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    sleep.delays = delays
    return sleep
