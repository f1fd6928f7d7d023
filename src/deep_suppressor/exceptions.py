# deep_suppressor/exceptions.py
"""
Error taxonomy for the suppressor.

- ProbeError: an activity/screen probe could not produce a reading
- ActionError: a termination request failed
- PersistenceError: habits could not be written or parsed
- TargetListError: the initial target list is malformed or empty

Loop failures have no dedicated type; anything escaping a cycle is
caught at the scheduler boundary.
"""

from __future__ import annotations


class SuppressorError(Exception):
    """Base class for all suppressor errors."""


class ProbeError(SuppressorError):
    """An external probe was unavailable or its output unparsable."""


class ActionError(SuppressorError):
    """A termination request could not be carried out."""


class PersistenceError(SuppressorError):
    """Reading or writing the habits file failed."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class TargetListError(SuppressorError):
    """The target list could not be parsed, or is empty."""
