"""Exception hierarchy for ExtOrganizer."""
from __future__ import annotations

from pathlib import Path


class ExtOrganizerError(Exception):
    """Base class for all errors raised by the organizer."""


class StartupError(ExtOrganizerError):
    """Raised when a run cannot start; no worker is launched."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class ScanError(StartupError):
    """Raised when the root directory cannot be scanned at all."""


class PathError(ExtOrganizerError):
    """Raised when a destination path cannot be formed."""


__all__ = ["ExtOrganizerError", "PathError", "ScanError", "StartupError"]
