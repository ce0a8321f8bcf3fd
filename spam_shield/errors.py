"""Exceptions raised along the acquisition and classification pipeline."""

from __future__ import annotations


class SpamShieldError(Exception):
    """Base class for pipeline errors."""


class PermissionDenied(SpamShieldError):
    """Read access to the inbox was refused or deferred."""


class SourceUnavailable(SpamShieldError):
    """The inbox could not be read."""


class ClassifierError(SpamShieldError):
    """A single classification request failed."""


class ClassifierUnreachable(ClassifierError):
    """Network failure or timeout while talking to the classifier."""


class ClassifierBadResponse(ClassifierError):
    """The classifier answered with an error status or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ClassificationFailed(SpamShieldError):
    """At least one message in a batch could not be classified."""
