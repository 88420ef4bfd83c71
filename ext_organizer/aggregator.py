"""Thread-safe aggregation of per-file outcomes."""
from __future__ import annotations

import threading
from collections import Counter
from datetime import datetime
from types import MappingProxyType

from .models import FileRecord, OperationOutcome, OutcomeStatus, RunSummary, ScanIssue


class ResultAggregator:
    """Collect outcomes from many workers into a single :class:`RunSummary`.

    The lock is only held while counters are updated, never while a file is
    being moved. After :meth:`snapshot` the aggregator is frozen.
    """

    def __init__(self, *, simulated: bool = False) -> None:
        self.simulated = simulated
        self._lock = threading.Lock()
        self._moved = 0
        self._categories: Counter[str] = Counter()
        self._skipped: list[FileRecord] = []
        self._failed: list[FileRecord] = []
        self._scan_issues: list[ScanIssue] = []
        self._started_at = datetime.now()
        self._summary: RunSummary | None = None

    def record(self, outcome: OperationOutcome) -> None:
        with self._lock:
            self._ensure_open()
            status = getattr(outcome, "status", None)
            if status is OutcomeStatus.MOVED:
                self._moved += 1
                self._categories[outcome.category] += 1
            elif status is OutcomeStatus.SKIPPED:
                self._skipped.append(FileRecord(outcome.source, outcome.reason))  # type: ignore[union-attr]
            elif status is OutcomeStatus.FAILED:
                self._failed.append(FileRecord(outcome.source, outcome.error))  # type: ignore[union-attr]
            else:
                raise TypeError(f"Unsupported outcome: {outcome!r}")

    def record_scan_issue(self, issue: ScanIssue) -> None:
        with self._lock:
            self._ensure_open()
            self._scan_issues.append(issue)

    def snapshot(self) -> RunSummary:
        """Freeze the aggregator and return the final summary."""

        with self._lock:
            if self._summary is None:
                skipped = tuple(sorted(self._skipped, key=lambda record: str(record.path)))
                failed = tuple(sorted(self._failed, key=lambda record: str(record.path)))
                self._summary = RunSummary(
                    total=self._moved + len(skipped) + len(failed),
                    moved=self._moved,
                    skipped=len(skipped),
                    failed=len(failed),
                    categories=MappingProxyType(dict(sorted(self._categories.items()))),
                    skipped_files=skipped,
                    failed_files=failed,
                    scan_issues=tuple(self._scan_issues),
                    simulated=self.simulated,
                    started_at=self._started_at,
                    finished_at=datetime.now(),
                )
            return self._summary

    def _ensure_open(self) -> None:
        if self._summary is not None:
            raise RuntimeError("ResultAggregator is frozen; snapshot() was already taken")


__all__ = ["ResultAggregator"]
