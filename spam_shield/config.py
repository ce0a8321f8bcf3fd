"""Configuration management for the SMS spam shield."""

from __future__ import annotations

import shlex
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, HttpUrl, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import GrantResult

# Load .env early so BaseSettings can pick values up seamlessly.
load_dotenv()

# The device inbox query is fixed to the ten most recent messages.
MAX_INBOX_BATCH = 10


class Settings(BaseSettings):
    """App configuration derived from environment variables."""

    classifier_base_url: HttpUrl = Field(
        "http://192.168.0.104:5000", alias="CLASSIFIER_BASE_URL"
    )
    classifier_timeout: float = Field(10.0, alias="CLASSIFIER_TIMEOUT", gt=0)

    inbox_max_count: int = Field(MAX_INBOX_BATCH, alias="INBOX_MAX_COUNT", ge=1, le=MAX_INBOX_BATCH)
    inbox_source: Literal["command", "export"] = Field("command", alias="INBOX_SOURCE")
    inbox_command_raw: str = Field("termux-sms-inbox", alias="INBOX_COMMAND")
    inbox_export_path: Path | None = Field(None, alias="INBOX_EXPORT_PATH")

    sms_permission: Literal["prompt", "granted", "denied", "deferred"] = Field(
        "prompt", alias="SMS_PERMISSION"
    )
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("inbox_export_path", mode="before")
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("inbox_source", "sms_permission", mode="before")
    @classmethod
    def _normalize_choice(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def _validate_inbox_source(self):
        if self.inbox_source == "export" and self.inbox_export_path is None:
            raise ValueError("INBOX_EXPORT_PATH is required when INBOX_SOURCE=export.")
        if self.inbox_source == "command" and not self.inbox_command:
            raise ValueError("INBOX_COMMAND must not be empty when INBOX_SOURCE=command.")
        return self

    @property
    def classifier_url(self) -> str:
        return str(self.classifier_base_url).rstrip("/")

    @property
    def inbox_command(self) -> list[str]:
        """Bridge command split the way a shell would."""
        return shlex.split(self.inbox_command_raw)

    @property
    def static_grant(self) -> GrantResult | None:
        """Preconfigured permission answer, or None to prompt."""
        if self.sms_permission == "prompt":
            return None
        return GrantResult(self.sms_permission)
