"""Entry point that checks the newest SMS inbox messages for spam."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
import sys

from dotenv import load_dotenv

# Ensure project root is on sys.path when running as a script
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spam_shield.batch_classifier import BatchClassifier
from spam_shield.classifier_client import ClassifierClient
from spam_shield.config import Settings
from spam_shield.message_source import CommandInboxSource, InboxSource, JsonExportInboxSource
from spam_shield.models import AnnotatedMessage, Failed, GrantResult, Loading, PipelineState, Ready
from spam_shield.permission_gate import ConsolePermissionGate, PermissionGate, StaticPermissionGate
from spam_shield.pipeline import PipelineController

load_dotenv()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Flag likely spam among the newest SMS inbox messages.")
    parser.add_argument("--export", type=Path, help="Read messages from an exported JSON inbox file")
    parser.add_argument("--yes", action="store_true", help="Assume SMS read permission is granted")
    parser.add_argument("--json", action="store_true", help="Print results as JSON instead of text")
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def build_permission_gate(settings: Settings, assume_granted: bool) -> PermissionGate:
    if assume_granted:
        return StaticPermissionGate(GrantResult.GRANTED)
    if settings.static_grant is not None:
        return StaticPermissionGate(settings.static_grant)
    return ConsolePermissionGate()


def build_source(settings: Settings, export: Path | None) -> InboxSource:
    if export is not None:
        return JsonExportInboxSource(export)
    if settings.inbox_source == "export":
        return JsonExportInboxSource(settings.inbox_export_path)
    return CommandInboxSource(settings.inbox_command)


def render_message(item: AnnotatedMessage) -> str:
    received = item.received.astimezone().strftime("%Y-%m-%d %H:%M")
    verdict = "Potential Spam" if item.is_spam else "Not Spam"
    # Two body lines per message, like the list rows on the device.
    preview = "\n    ".join(item.body.splitlines()[:2])
    return f"[{verdict}] {item.sender} ({received})\n    {preview}"


def render_state(state: PipelineState, as_json: bool) -> None:
    if isinstance(state, Loading):
        if not as_json:
            print("Checking messages...")
        return
    if isinstance(state, Ready):
        if as_json:
            print(
                json.dumps(
                    [
                        {
                            "address": item.sender,
                            "body": item.body,
                            "date": str(item.timestamp_millis),
                            "isSpam": item.is_spam,
                        }
                        for item in state.messages
                    ],
                    indent=2,
                )
            )
            return
        for item in state.messages:
            print(render_message(item))
        if not state.messages:
            print("No messages in the inbox.")
    elif isinstance(state, Failed) and as_json:
        print(json.dumps({"error": state.reason.value, "detail": state.detail}))


def show_notice(text: str) -> None:
    print(f"Error: {text}", file=sys.stderr)


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    settings = Settings()
    configure_logging(settings.log_level)

    client = ClassifierClient.from_settings(settings)
    controller = PipelineController(
        permission_gate=build_permission_gate(settings, args.yes),
        source=build_source(settings, args.export),
        classifier=BatchClassifier(client),
        max_count=settings.inbox_max_count,
        notice=show_notice,
    )
    controller.subscribe(lambda state: render_state(state, args.json))

    try:
        state = asyncio.run(controller.run())
    finally:
        client.close()

    if isinstance(state, Ready):
        logging.info(
            "Run complete: messages=%s spam=%s",
            len(state.messages),
            sum(1 for item in state.messages if item.is_spam),
        )
        return
    raise SystemExit(1)


if __name__ == "__main__":
    main()
