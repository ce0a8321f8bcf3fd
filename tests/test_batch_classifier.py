"""Tests for BatchClassifier."""

from __future__ import annotations

import logging
import random
import time

import pytest

from conftest import FakeClassifier, make_messages
from spam_shield.batch_classifier import BatchClassifier
from spam_shield.errors import ClassificationFailed, ClassifierUnreachable
from spam_shield.models import RawMessage


class TestOrdering:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", range(0, 11))
    async def test_output_matches_input_order(self, count: int) -> None:
        """Output order follows source_index whatever order calls finish in."""
        messages = make_messages(count)
        rng = random.Random(count)
        delays = {m.body: rng.uniform(0, 0.05) for m in messages}
        classifier = FakeClassifier(delay=lambda body: delays[body])

        results = await BatchClassifier(classifier).classify_all(messages)

        assert len(results) == count
        assert [r.source_index for r in results] == [m.source_index for m in messages]
        assert [r.body for r in results] == [m.body for m in messages]

    @pytest.mark.asyncio
    async def test_reverse_completion_order(self) -> None:
        """The last message finishing first does not move it to the front."""
        messages = make_messages(5)
        classifier = FakeClassifier(
            spam={messages[0].body},
            delay=lambda body: 0.1 if body == messages[0].body else 0.0,
        )

        results = await BatchClassifier(classifier).classify_all(messages)

        assert results[0].body == messages[0].body
        assert results[0].is_spam is True
        assert all(not r.is_spam for r in results[1:])

    @pytest.mark.asyncio
    async def test_duplicates_are_kept(self) -> None:
        """Identical bodies from the same sender are each annotated."""
        messages = [
            RawMessage(sender="same", body="same text", timestamp_millis=1000, source_index=index)
            for index in range(3)
        ]

        results = await BatchClassifier(FakeClassifier()).classify_all(messages)

        assert [r.source_index for r in results] == [0, 1, 2]


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_calls_run_concurrently(self) -> None:
        """Ten slow calls take about as long as one."""
        messages = make_messages(10)
        classifier = FakeClassifier(delay=lambda body: 0.2)

        started = time.monotonic()
        await BatchClassifier(classifier).classify_all(messages)
        elapsed = time.monotonic() - started

        assert elapsed < 1.5
        assert sorted(classifier.calls) == sorted(m.body for m in messages)

    @pytest.mark.asyncio
    async def test_empty_batch_makes_no_calls(self) -> None:
        classifier = FakeClassifier()

        assert await BatchClassifier(classifier).classify_all([]) == []
        assert classifier.calls == []


class TestFailure:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("failing_index", [0, 4, 9])
    async def test_any_failure_fails_batch(self, failing_index: int) -> None:
        messages = make_messages(10)
        classifier = FakeClassifier(failing={messages[failing_index].body})

        with pytest.raises(ClassificationFailed) as exc_info:
            await BatchClassifier(classifier).classify_all(messages)

        assert isinstance(exc_info.value.__cause__, ClassifierUnreachable)

    @pytest.mark.asyncio
    async def test_first_failure_wins_without_waiting(self) -> None:
        """A slow sibling is not awaited once one call has failed."""
        messages = make_messages(2)
        classifier = FakeClassifier(
            failing={messages[0].body},
            delay=lambda body: 0.5 if body == messages[1].body else 0.0,
        )

        started = time.monotonic()
        with pytest.raises(ClassificationFailed):
            await BatchClassifier(classifier).classify_all(messages)

        assert time.monotonic() - started < 0.45

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self) -> None:
        """Only classifier errors are folded into ClassificationFailed."""

        class Broken:
            def classify(self, body: str):
                raise KeyError(body)

        with pytest.raises(KeyError):
            await BatchClassifier(Broken()).classify_all(make_messages(1))


class TestLogging:
    @pytest.mark.asyncio
    async def test_logs_prediction_label(self, caplog: pytest.LogCaptureFixture) -> None:
        """The service's raw label is logged per message."""
        messages = make_messages(2)
        classifier = FakeClassifier(spam={messages[1].body})

        with caplog.at_level(logging.DEBUG, logger="spam_shield.batch_classifier"):
            await BatchClassifier(classifier).classify_all(messages)

        assert "Message 0 classified as ham (spam=False)" in caplog.text
        assert "Message 1 classified as spam (spam=True)" in caplog.text
