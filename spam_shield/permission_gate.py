"""Gates that ask for read access to the SMS inbox."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

from .errors import PermissionDenied
from .models import GrantResult

logger = logging.getLogger(__name__)

READ_SMS = "android.permission.READ_SMS"

PROMPT_TITLE = "SMS Permission"
PROMPT_MESSAGE = "This app needs access to your SMS messages."
PROMPT_CHOICES = "[OK (y) / Cancel (n) / Ask Me Later (l)]"

_GRANT_ANSWERS = {"y", "yes", "ok"}
_DEFER_ANSWERS = {"l", "later", "ask me later"}


class PermissionGate(Protocol):
    async def request_read_access(self) -> GrantResult: ...


def require_grant(result: GrantResult) -> GrantResult:
    """Raise PermissionDenied unless `result` is a grant; deferred counts as denied."""
    if result is not GrantResult.GRANTED:
        raise PermissionDenied(f"SMS permission {result.value}")
    return result


class StaticPermissionGate:
    """Answer every request with a fixed result."""

    def __init__(self, result: GrantResult) -> None:
        self.result = result

    async def request_read_access(self) -> GrantResult:
        logger.debug("Permission %s preconfigured as %s", READ_SMS, self.result.value)
        return self.result


class ConsolePermissionGate:
    """Prompt on the terminal, once per call; nothing is remembered."""

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        output_func: Callable[[str], None] = print,
    ) -> None:
        self.input_func = input_func
        self.output_func = output_func

    async def request_read_access(self) -> GrantResult:
        return await asyncio.to_thread(self._prompt)

    def _prompt(self) -> GrantResult:
        self.output_func(PROMPT_TITLE)
        self.output_func(PROMPT_MESSAGE)
        try:
            answer = self.input_func(f"{PROMPT_CHOICES} ")
        except EOFError:
            logger.info("No answer to %s prompt; treating as denied", READ_SMS)
            return GrantResult.DENIED
        return self.interpret(answer)

    @staticmethod
    def interpret(answer: str) -> GrantResult:
        normalized = (answer or "").strip().lower()
        if normalized in _GRANT_ANSWERS:
            return GrantResult.GRANTED
        if normalized in _DEFER_ANSWERS:
            return GrantResult.DEFERRED
        return GrantResult.DENIED
