"""Shared test fixtures for booklens tests."""

import asyncio
import json
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from booklens.config import PipelineConfig
from booklens.errors import InferenceError
from booklens.storage import InMemoryArtifactStore

SAMPLE_BOOK = """THE SAMPLE BOOK
A preamble that should not be analyzed.

Chapter 1
The night was cold and the wind howled over the moor.

A lone rider approached the castle gates at midnight.

Ok.

Chapter 2
Morning brought a pale light through the narrow windows.

The rider, now a guest, explored the silent corridors.

Portraits watched him from every wall of the long gallery.

Chapter 3
A letter arrived, sealed with black wax and no name.

Its contents sent the household into quiet turmoil.

Chapter 4
At last the guest resolved to leave before the storm.

But the gates, once open, had been locked behind him.
"""


def default_response(system_prompt: str, user_prompt: str) -> str:
    """Canned JSON per prompt kind, recognized from the user prompt."""
    if "genre and pragmatics" in user_prompt:
        return json.dumps(
            {
                "genre": {"type": "gothic", "conventions": ["isolation"]},
                "atmosphere": {"mood": "tense", "evidence": ["howled"]},
                "rhetoric": [],
            }
        )
    if "vocabulary and L1 interference" in user_prompt:
        return json.dumps({"lexis": [{"term": "moor"}], "l1_logic_gaps": []})
    if "prosody" in user_prompt:
        return "```json\n" + json.dumps({"prosody": {"stress": []}}) + "\n```"
    if "Linguistic Samples" in user_prompt:
        return json.dumps({"summary": "A chapter", "themes": ["dread"]})
    if "Previous Chapter" in user_prompt:
        return json.dumps({"continuity": ["the rider"], "shifts": []})
    raise AssertionError(f"Unexpected prompt: {user_prompt[:80]!r}")


class FakeInferenceClient:
    """Scripted InferenceClient that records every call.

    Args:
        responder: (system_prompt, user_prompt) -> text, or an exception
            instance to raise
        delay: Seconds each call takes (or a callable of the user prompt)
    """

    def __init__(
        self,
        responder: Callable[[str, str], object] | None = None,
        delay: float | Callable[[str], float] = 0.0,
    ):
        self.responder = responder or default_response
        self.delay = delay
        self.calls: list[dict] = []
        self.active = 0
        self.peak_active = 0

    async def complete(self, system_prompt, user_prompt, temperature, expect_structured):
        self.calls.append(
            {
                "system": system_prompt,
                "user": user_prompt,
                "temperature": temperature,
                "expect_structured": expect_structured,
                "at": time.monotonic(),
            }
        )
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            delay = self.delay(user_prompt) if callable(self.delay) else self.delay
            if delay:
                await asyncio.sleep(delay)
            result = self.responder(system_prompt, user_prompt)
            if isinstance(result, BaseException):
                raise result
            return result
        finally:
            self.active -= 1

    def calls_matching(self, text: str) -> list[dict]:
        return [c for c in self.calls if text in c["user"]]


def server_error() -> InferenceError:
    return InferenceError("Internal Server Error", status=500)


@pytest.fixture
def fake_client() -> FakeInferenceClient:
    """Inference client answering every bundled prompt."""
    return FakeInferenceClient()


@pytest.fixture
def memory_store() -> InMemoryArtifactStore:
    """Empty in-memory artifact store."""
    return InMemoryArtifactStore()


@pytest.fixture
def fast_config() -> PipelineConfig:
    """Pipeline settings with no pauses and tiny backoff delays."""
    return PipelineConfig(
        chapter_concurrency=2,
        paragraph_concurrency=2,
        max_retries=3,
        backoff_schedule=[0.01, 0.02],
        request_timeout=5.0,
        paragraph_pause=0.0,
        facet_stagger=0.0,
    )


@pytest.fixture
def sample_text() -> str:
    return SAMPLE_BOOK


@pytest.fixture
def sample_book(tmp_path: Path) -> Path:
    """Sample book written to a temporary file."""
    path = tmp_path / "sample_book.txt"
    path.write_text(SAMPLE_BOOK, encoding="utf-8")
    return path


@pytest.fixture
def prompts_dir(tmp_path: Path) -> Path:
    """Temporary prompts directory."""
    directory = tmp_path / "prompts"
    directory.mkdir()
    return directory
