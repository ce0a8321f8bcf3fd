"""Shared test fixtures for the spam shield pipeline."""
from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable

import pytest

from spam_shield.errors import ClassifierUnreachable
from spam_shield.models import ClassificationVerdict, GrantResult, RawMessage


class FakeClassifier:
    """Deterministic classifier; bodies listed in `spam` are spam, `failing` raise."""

    def __init__(
        self,
        spam: set[str] | None = None,
        failing: set[str] | None = None,
        delay: Callable[[str], float] | None = None,
    ) -> None:
        self.spam = spam or set()
        self.failing = failing or set()
        self.delay = delay
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def classify(self, body: str) -> ClassificationVerdict:
        with self._lock:
            self.calls.append(body)
        if self.delay is not None:
            threading.Event().wait(self.delay(body))
        if body in self.failing:
            raise ClassifierUnreachable(f"timed out classifying {body!r}")
        label = "spam" if body in self.spam else "ham"
        return ClassificationVerdict(is_spam=label == "spam", label=label)


class FakeSource:
    """Inbox source returning a fixed batch or raising."""

    def __init__(self, messages: list[RawMessage] | None = None, error: Exception | None = None) -> None:
        self.messages = messages or []
        self.error = error
        self.calls: list[int] = []
        self.release: asyncio.Event | None = None

    async def fetch_inbox(self, max_count: int) -> list[RawMessage]:
        self.calls.append(max_count)
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.messages[:max_count]


class FakeGate:
    def __init__(self, result: GrantResult = GrantResult.GRANTED) -> None:
        self.result = result
        self.calls = 0

    async def request_read_access(self) -> GrantResult:
        self.calls += 1
        return self.result


def make_messages(count: int) -> list[RawMessage]:
    return [
        RawMessage(
            sender=f"+1555000{index:04d}",
            body=f"message body {index}",
            timestamp_millis=1_700_000_000_000 - index * 60_000,
            source_index=index,
        )
        for index in range(count)
    ]


@pytest.fixture
def sample_records() -> list[dict[str, Any]]:
    """Inbox records in the device API shape."""
    return [
        {"_id": 3, "address": "+15550001", "body": "WIN a FREE cruise now!!!", "date": "1700000300000"},
        {"_id": 2, "address": "Mom", "body": "Dinner at 7?", "date": "1700000200000"},
        {"_id": 1, "address": "+15550002", "body": "Your code is 123456", "date": 1700000100000},
    ]


@pytest.fixture
def messages() -> list[RawMessage]:
    return make_messages(3)
