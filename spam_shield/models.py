"""Typed containers shared across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from .utils import millis_to_datetime


class GrantResult(str, Enum):
    """Outcome of asking for read access to the inbox."""

    GRANTED = "granted"
    DENIED = "denied"
    DEFERRED = "deferred"


class FailureReason(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    SOURCE_UNAVAILABLE = "source_unavailable"
    CLASSIFICATION_FAILED = "classification_failed"


@dataclass(frozen=True)
class RawMessage:
    """A received text message as returned by the device inbox."""

    sender: str
    body: str
    timestamp_millis: int
    source_index: int

    @property
    def received(self) -> datetime:
        return millis_to_datetime(self.timestamp_millis)


@dataclass(frozen=True)
class ClassificationVerdict:
    """Binary spam verdict for one message body."""

    is_spam: bool
    label: Optional[str] = field(default=None, compare=False)


@dataclass(frozen=True)
class AnnotatedMessage:
    """A raw message paired with its verdict."""

    sender: str
    body: str
    timestamp_millis: int
    source_index: int
    is_spam: bool

    @classmethod
    def from_verdict(cls, message: RawMessage, verdict: ClassificationVerdict) -> "AnnotatedMessage":
        return cls(
            sender=message.sender,
            body=message.body,
            timestamp_millis=message.timestamp_millis,
            source_index=message.source_index,
            is_spam=verdict.is_spam,
        )

    @property
    def received(self) -> datetime:
        return millis_to_datetime(self.timestamp_millis)


@dataclass(frozen=True)
class Idle:
    """No run has been requested yet."""


@dataclass(frozen=True)
class Loading:
    """Permission, fetch and classification are in flight."""


@dataclass(frozen=True)
class Ready:
    """The last run classified every fetched message."""

    messages: tuple[AnnotatedMessage, ...] = ()


@dataclass(frozen=True)
class Failed:
    """The last run stopped; `detail` is a human readable explanation."""

    reason: FailureReason
    detail: str = ""


PipelineState = Union[Idle, Loading, Ready, Failed]
