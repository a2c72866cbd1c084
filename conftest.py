import asyncio
import json
from typing import Callable, List, Optional, Union

import pytest

from config import Settings
from generative import CompletionClient
from monitor import AvailabilityMonitor
from pipeline import ContentPipeline
from store import InMemoryDocumentStore, StoreError

Reply = Union[str, BaseException]


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCompletionClient(CompletionClient):
    """Scripted stand-in for Gemini. Replies are consumed in order, then `default`
    is used; exceptions are raised instead of returned. Prompts mentioning the
    emotion classifier get `emotion_reply` when it is set."""

    def __init__(self, replies: Optional[List[Reply]] = None, default: Reply = "Penjelasan dari Gemini.",
                 emotion_reply: Optional[Reply] = None) -> None:
        self.replies = list(replies or [])
        self.default = default
        self.emotion_reply = emotion_reply
        self.calls: List[str] = []
        self.before_reply: Optional[Callable[[str], None]] = None

    async def complete(self, prompt_text: str, max_output_tokens: int, temperature: float) -> str:
        self.calls.append(prompt_text)
        if self.before_reply:
            self.before_reply(prompt_text)
        if self.emotion_reply is not None and "Plutchik" in prompt_text:
            reply = self.emotion_reply
        else:
            reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, BaseException):
            raise reply
        return reply


class SlowCompletionClient(CompletionClient):
    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.calls = 0

    async def complete(self, prompt_text: str, max_output_tokens: int, temperature: float) -> str:
        self.calls += 1
        await asyncio.sleep(self.delay)
        return "too late"


class FailingWriteStore(InMemoryDocumentStore):
    async def set(self, key, value):
        raise StoreError("disk full")

    async def append(self, collection, value):
        raise StoreError("disk full")


def emotion_json(decision: str = "NEXT_LEVEL", emotion: str = "Joy", confidence: float = 0.9,
                 message: str = "Hebat!") -> str:
    payload = {"decision": decision, "emotion": emotion, "confidenceScore": confidence, "message": message}
    return "```json\n" + json.dumps(payload) + "\n```"


@pytest.fixture
def settings():
    return Settings(
        retry_delay_seconds=5.0,
        generation_timeout_seconds=0.5,
        cooldown_seconds=60,
        log_level="WARNING",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monitor(clock):
    return AvailabilityMonitor(cooldown_seconds=60, clock=clock)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_client():
    return FakeCompletionClient()


@pytest.fixture
def make_pipeline(store, monitor, settings, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    def _make(client, store_override=None):
        return ContentPipeline(store_override or store, client, monitor, settings, sleep=fake_sleep)

    return _make


@pytest.fixture
def pipeline(make_pipeline, fake_client):
    return make_pipeline(fake_client)
