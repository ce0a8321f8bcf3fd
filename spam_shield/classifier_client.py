"""Client for the remote spam prediction endpoint."""

from __future__ import annotations

import logging
import threading
from typing import Callable

import requests

from .config import Settings
from .errors import ClassifierBadResponse, ClassifierUnreachable
from .models import ClassificationVerdict

logger = logging.getLogger(__name__)

SPAM_LABEL = "spam"


class ClassifierClient:
    """Send one message body to `/predict` and read back the verdict.

    Batches call `classify` from several worker threads, so every thread
    gets its own `requests.Session`.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session_factory = session_factory
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClassifierClient":
        return cls(settings.classifier_url, timeout=settings.classifier_timeout)

    @property
    def session(self) -> requests.Session:
        """Session owned by the calling thread."""
        session = getattr(self._local, "session", None)
        if session is None:
            session = self.session_factory()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def classify(self, body: str) -> ClassificationVerdict:
        """Return the verdict for `body`; raises a ClassifierError subclass on failure."""
        url = f"{self.base_url}/predict"
        try:
            response = self.session.post(url, json={"text": body}, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("Classifier request to %s failed: %s", url, exc)
            raise ClassifierUnreachable(f"Unable to reach classifier at {url}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            logger.error("Classifier request failed (%s): %s", response.status_code, response.text)
            raise ClassifierBadResponse(
                f"Classifier returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        payload = self._parse_response_body(response)
        label = payload.get("prediction")
        return ClassificationVerdict(is_spam=label == SPAM_LABEL, label=label)

    def close(self) -> None:
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._local = threading.local()

    @staticmethod
    def _parse_response_body(response) -> dict:
        try:
            payload = response.json()
        except ValueError as exc:
            logger.error("Classifier returned a non-JSON body: %s", response.text)
            raise ClassifierBadResponse(
                "Classifier response is not valid JSON", status_code=response.status_code
            ) from exc
        if not isinstance(payload, dict):
            raise ClassifierBadResponse(
                "Classifier response is not a JSON object", status_code=response.status_code
            )
        return payload
