"""Inbox adapters that turn device message records into RawMessage batches."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Sequence

from .errors import SourceUnavailable
from .models import RawMessage
from .utils import load_json_list, parse_epoch_millis

logger = logging.getLogger(__name__)

INBOX_BOX = "inbox"


def inbox_query(max_count: int) -> dict[str, Any]:
    """Filter understood by the device inbox API."""
    return {"box": INBOX_BOX, "indexFrom": 0, "maxCount": max_count}


class InboxSource:
    """Base adapter; subclasses only supply the raw record list."""

    async def fetch_inbox(self, max_count: int) -> list[RawMessage]:
        """Return up to `max_count` inbox messages, most recent first."""
        if max_count < 1:
            raise ValueError(f"max_count must be positive, got {max_count}")

        records = await self._load_records(inbox_query(max_count))
        messages: list[RawMessage] = []
        for raw in records:
            if not self._is_inbox(raw):
                continue
            messages.append(self._to_message(raw, len(messages)))
            if len(messages) >= max_count:
                break

        logger.info("Fetched %s inbox messages", len(messages))
        return messages

    async def _load_records(self, query: dict[str, Any]) -> list[Any]:
        raise NotImplementedError

    @staticmethod
    def _is_inbox(raw: Any) -> bool:
        if not isinstance(raw, dict):
            return True  # rejected by _to_message
        box = raw.get("box", raw.get("folder"))
        return box is None or str(box).lower() == INBOX_BOX

    @staticmethod
    def _to_message(raw: Any, index: int) -> RawMessage:
        if not isinstance(raw, dict):
            raise SourceUnavailable(f"Inbox record {index} is not an object: {raw!r}")
        missing = [key for key in ("address", "body", "date") if raw.get(key) is None]
        if missing:
            raise SourceUnavailable(f"Inbox record {index} is missing {', '.join(missing)}")
        try:
            timestamp = parse_epoch_millis(raw["date"])
        except ValueError as exc:
            raise SourceUnavailable(f"Inbox record {index} has an invalid date") from exc
        return RawMessage(
            sender=str(raw["address"]),
            body=str(raw["body"]),
            timestamp_millis=timestamp,
            source_index=index,
        )


class CommandInboxSource(InboxSource):
    """Read the inbox through a device bridge command printing a JSON list.

    The JSON-encoded query is passed as the last argument, e.g.
    ``termux-sms-inbox '{"box": "inbox", "indexFrom": 0, "maxCount": 10}'``.
    """

    def __init__(self, command: Sequence[str], timeout: float = 30.0) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self.command = list(command)
        self.timeout = timeout

    async def _load_records(self, query: dict[str, Any]) -> list[Any]:
        argv = [*self.command, json.dumps(query)]
        logger.debug("Running inbox command %s", argv)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            logger.error("Inbox command could not be started: %s", exc)
            raise SourceUnavailable(f"Unable to run {self.command[0]}: {exc}") from exc

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise SourceUnavailable(f"{self.command[0]} timed out after {self.timeout}s") from exc

        if process.returncode != 0:
            logger.error(
                "Inbox command failed (%s): %s",
                process.returncode,
                stderr.decode(errors="replace").strip(),
            )
            raise SourceUnavailable(f"{self.command[0]} exited with status {process.returncode}")

        try:
            return load_json_list(stdout)
        except ValueError as exc:
            raise SourceUnavailable(f"{self.command[0]} returned malformed JSON") from exc


class JsonExportInboxSource(InboxSource):
    """Read the inbox from an exported JSON file of message records."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    async def _load_records(self, query: dict[str, Any]) -> list[Any]:
        try:
            payload = await asyncio.to_thread(self.path.read_bytes)
        except OSError as exc:
            logger.error("Inbox export %s could not be read: %s", self.path, exc)
            raise SourceUnavailable(f"Unable to read {self.path}") from exc

        try:
            records = load_json_list(payload)
        except ValueError as exc:
            raise SourceUnavailable(f"{self.path} is not a JSON list of messages") from exc
        return records[query["indexFrom"]:]
