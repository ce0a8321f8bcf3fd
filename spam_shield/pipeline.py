"""Controller that owns the pipeline state and drives one run at a time."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from .batch_classifier import BatchClassifier
from .errors import ClassificationFailed, PermissionDenied, SourceUnavailable
from .models import (
    AnnotatedMessage,
    Failed,
    FailureReason,
    Idle,
    Loading,
    PipelineState,
    RawMessage,
    Ready,
)
from .permission_gate import PermissionGate, require_grant

logger = logging.getLogger(__name__)

StateListener = Callable[[PipelineState], None]
NoticeSink = Callable[[str], None]

NOTICES = {
    FailureReason.PERMISSION_DENIED: "SMS permission denied",
    FailureReason.SOURCE_UNAVAILABLE: "Failed to read SMS messages.",
    FailureReason.CLASSIFICATION_FAILED: "Failed to check messages for spam.",
}


class MessageSource(Protocol):
    async def fetch_inbox(self, max_count: int) -> list[RawMessage]: ...


class PipelineController:
    """Run permission → fetch → classify and publish the resulting state.

    State only changes through ``_transition``, which enforces
    Idle/Ready/Failed → Loading → Ready | Failed. A run requested while
    another is loading is ignored.
    """

    def __init__(
        self,
        permission_gate: PermissionGate,
        source: MessageSource,
        classifier: BatchClassifier,
        max_count: int = 10,
        notice: Optional[NoticeSink] = None,
    ) -> None:
        self.permission_gate = permission_gate
        self.source = source
        self.classifier = classifier
        self.max_count = max_count
        self.notice = notice
        self._state: PipelineState = Idle()
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def busy(self) -> bool:
        return isinstance(self._state, Loading)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call `listener` with every new state; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def run(self) -> PipelineState:
        """Perform one run and return the state it settled in.

        Whatever interrupts the run (including cancellation) the controller
        leaves Loading through Failed, so later runs are accepted.
        """
        if self.busy:
            logger.info("Run requested while loading; ignoring")
            return self._state

        self._transition(Loading())
        stage = FailureReason.PERMISSION_DENIED
        try:
            if not await self._has_permission():
                return self._fail(FailureReason.PERMISSION_DENIED, "Read access to SMS was not granted")

            stage = FailureReason.SOURCE_UNAVAILABLE
            try:
                messages = await self.source.fetch_inbox(self.max_count)
            except SourceUnavailable as exc:
                logger.error("Failed to read inbox: %s", exc)
                return self._fail(FailureReason.SOURCE_UNAVAILABLE, str(exc))
            except Exception as exc:
                logger.exception("Unexpected error while reading inbox")
                return self._fail(FailureReason.SOURCE_UNAVAILABLE, str(exc))

            stage = FailureReason.CLASSIFICATION_FAILED
            try:
                results = await self.classifier.classify_all(messages)
            except ClassificationFailed as exc:
                return self._fail(FailureReason.CLASSIFICATION_FAILED, str(exc))
            except Exception as exc:
                logger.exception("Unexpected error while checking messages for spam")
                return self._fail(FailureReason.CLASSIFICATION_FAILED, str(exc))

            return self._ready(results)
        finally:
            if self.busy:
                logger.warning("Run interrupted during %s", stage.value)
                self._fail(stage, "Run was interrupted")

    async def _has_permission(self) -> bool:
        try:
            require_grant(await self.permission_gate.request_read_access())
        except PermissionDenied as exc:
            logger.info("%s", exc)
            return False
        except Exception:
            logger.warning("Permission request failed", exc_info=True)
            return False
        return True

    def _ready(self, results: list[AnnotatedMessage]) -> PipelineState:
        self._transition(Ready(tuple(results)))
        return self._state

    def _fail(self, reason: FailureReason, detail: str) -> PipelineState:
        self._transition(Failed(reason, detail))
        if self.notice is not None:
            try:
                self.notice(NOTICES[reason])
            except Exception:
                logger.exception("Notice callback failed")
        return self._state

    def _transition(self, new_state: PipelineState) -> None:
        loading = isinstance(self._state, Loading)
        if isinstance(new_state, Idle) or isinstance(new_state, Loading) == loading:
            raise RuntimeError(
                f"Invalid transition {type(self._state).__name__} -> {type(new_state).__name__}"
            )
        logger.debug("State %s -> %s", type(self._state).__name__, type(new_state).__name__)
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("State listener %r failed", listener)
