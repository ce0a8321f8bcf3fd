"""Concurrent fan-out of a message batch to the classifier."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol, Sequence

from .errors import ClassificationFailed, ClassifierError
from .models import AnnotatedMessage, ClassificationVerdict, RawMessage

logger = logging.getLogger(__name__)


class Classifier(Protocol):
    def classify(self, body: str) -> ClassificationVerdict: ...


class BatchClassifier:
    """Classify every message concurrently; one failure fails the batch."""

    def __init__(self, client: Classifier) -> None:
        self.client = client

    async def classify_all(self, messages: Sequence[RawMessage]) -> list[AnnotatedMessage]:
        """Return annotated messages in input order, whatever order the calls finish in.

        The first failing call aborts the batch with ClassificationFailed. Calls
        still running are left to finish in their worker threads and their
        verdicts are dropped.
        """
        if not messages:
            return []

        logger.info("Classifying %s messages", len(messages))
        try:
            verdicts = await asyncio.gather(
                *(self._classify_one(message) for message in messages)
            )
        except ClassifierError as exc:
            logger.error("Batch classification aborted: %s", exc)
            raise ClassificationFailed(f"Failed to classify {len(messages)} messages: {exc}") from exc

        # gather keeps argument order, so verdicts[i] belongs to messages[i].
        annotated = [
            AnnotatedMessage.from_verdict(message, verdict)
            for message, verdict in zip(messages, verdicts)
        ]
        logger.info(
            "Classified %s messages, %s flagged as spam",
            len(annotated),
            sum(1 for item in annotated if item.is_spam),
        )
        return annotated

    async def _classify_one(self, message: RawMessage) -> ClassificationVerdict:
        verdict = await asyncio.to_thread(self.client.classify, message.body)
        logger.debug(
            "Message %s classified as %s (spam=%s)", message.source_index, verdict.label, verdict.is_spam
        )
        return verdict
