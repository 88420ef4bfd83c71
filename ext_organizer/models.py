"""Core dataclasses shared across ExtOrganizer modules."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Union


class OutcomeStatus(str, Enum):
    """Per-file result kinds."""

    MOVED = "moved"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class CandidateFile:
    """A file discovered by :mod:`file_scanner`."""

    path: Path
    name: str
    extension: str

    @classmethod
    def from_path(cls, path: Path) -> "CandidateFile":
        from .classifier import extension_of

        return cls(path=path, name=path.name, extension=extension_of(path.name))


@dataclass(frozen=True, slots=True)
class Destination:
    """Target location for a candidate: ``directory`` is ``root / category``."""

    directory: Path
    path: Path

    @property
    def category(self) -> str:
        return self.directory.name


@dataclass(frozen=True, slots=True)
class Moved:
    source: Path
    destination: Path
    category: str
    simulated: bool = False

    @property
    def status(self) -> OutcomeStatus:
        return OutcomeStatus.MOVED


@dataclass(frozen=True, slots=True)
class Skipped:
    source: Path
    reason: str
    category: str | None = None

    @property
    def status(self) -> OutcomeStatus:
        return OutcomeStatus.SKIPPED


@dataclass(frozen=True, slots=True)
class Failed:
    source: Path
    error: str
    category: str | None = None

    @property
    def status(self) -> OutcomeStatus:
        return OutcomeStatus.FAILED


OperationOutcome = Union[Moved, Skipped, Failed]


@dataclass(frozen=True, slots=True)
class ScanIssue:
    """A subdirectory the scanner could not read."""

    path: Path
    reason: str


@dataclass(slots=True)
class ScanResult:
    """Container for scan results."""

    root: Path
    candidates: list[CandidateFile]
    issues: list[ScanIssue] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.candidates)


@dataclass(frozen=True, slots=True)
class FileRecord:
    """A skipped or failed file together with its reason."""

    path: Path
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"path": str(self.path), "reason": self.reason}


@dataclass(frozen=True, slots=True)
class RunSummary:
    """Final, read-only view of a run produced by the aggregator."""

    total: int
    moved: int
    skipped: int
    failed: int
    categories: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    skipped_files: tuple[FileRecord, ...] = ()
    failed_files: tuple[FileRecord, ...] = ()
    scan_issues: tuple[ScanIssue, ...] = ()
    simulated: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def counts(self) -> dict[str, int]:
        return {
            "total": self.total,
            "moved": self.moved,
            "skipped": self.skipped,
            "failed": self.failed,
        }

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return max((self.finished_at - self.started_at).total_seconds(), 0.0)

    def to_dict(self) -> dict[str, object]:
        """Serialize the summary for JSON output."""

        return {
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "simulated": self.simulated,
            "totals": self.counts,
            "categories": dict(sorted(self.categories.items())),
            "skipped_files": [record.to_dict() for record in self.skipped_files],
            "failed_files": [record.to_dict() for record in self.failed_files],
            "scan_issues": [
                {"path": str(issue.path), "reason": issue.reason} for issue in self.scan_issues
            ],
        }
