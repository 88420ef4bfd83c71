"""Fan candidates out across a thread pool and aggregate the outcomes."""
from __future__ import annotations

import logging
import os
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .aggregator import ResultAggregator
from .classifier import ExtensionClassifier
from .config import MAX_CONFLICT_RETRIES
from .errors import PathError
from .file_mover import DirectoryRegistry, FileOperation
from .logger import log_event
from .models import CandidateFile, Failed, OperationOutcome, RunSummary, ScanIssue
from .resolver import DestinationResolver

LOGGER_NAME = "ext_organizer.dispatcher"

OutcomeCallback = Callable[[OperationOutcome], None]


class ConcurrentDispatcher:
    """Run classify -> resolve -> apply for every candidate on a worker pool.

    A candidate is handled start to finish by a single worker. Errors raised
    while handling one candidate are turned into a :class:`Failed` outcome for
    that candidate only.
    """

    def __init__(
        self,
        classifier: ExtensionClassifier | None = None,
        *,
        on_outcome: OutcomeCallback | None = None,
        max_conflict_retries: int = MAX_CONFLICT_RETRIES,
        logger: logging.Logger | None = None,
    ) -> None:
        self.classifier = classifier or ExtensionClassifier()
        self.on_outcome = on_outcome
        self.max_conflict_retries = max_conflict_retries
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self._notify_lock = threading.Lock()

    def run(
        self,
        candidates: Sequence[CandidateFile],
        root: Path,
        simulate: bool,
        workers: int | None = None,
        *,
        scan_issues: Iterable[ScanIssue] = (),
    ) -> RunSummary:
        worker_count = workers if workers is not None else (os.cpu_count() or 1)
        if worker_count < 1:
            raise ValueError("workers must be at least 1")

        task_id = str(uuid.uuid4())
        resolver = DestinationResolver(self.classifier, check_writable=not simulate)
        operation = FileOperation(
            self.logger.getChild("mover"),
            resolver=resolver,
            directories=DirectoryRegistry(),
            max_conflict_retries=self.max_conflict_retries,
            task_id=task_id,
        )
        aggregator = ResultAggregator(simulated=simulate)
        for issue in scan_issues:
            aggregator.record_scan_issue(issue)

        log_event(
            self.logger,
            level=logging.INFO,
            action="run.start",
            message=f"Processing {len(candidates)} files with {worker_count} workers",
            task_id=task_id,
            extra={"simulate": simulate},
        )

        def process(candidate: CandidateFile) -> None:
            outcome = self._process(candidate, root, simulate, resolver, operation)
            aggregator.record(outcome)
            if self.on_outcome is not None:
                self._notify(outcome)

        with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="ext-organizer") as executor:
            for _ in executor.map(process, candidates):
                pass

        summary = aggregator.snapshot()
        if summary.total != len(candidates):
            raise RuntimeError(
                f"Outcome count mismatch: {summary.total} outcomes for {len(candidates)} candidates"
            )
        log_event(
            self.logger,
            level=logging.INFO,
            action="run.complete",
            message="Organization complete",
            task_id=task_id,
            duration_ms=round(summary.duration_seconds * 1000, 3),
            extra=summary.counts,
        )
        return summary

    def _process(
        self,
        candidate: CandidateFile,
        root: Path,
        simulate: bool,
        resolver: DestinationResolver,
        operation: FileOperation,
    ) -> OperationOutcome:
        category = None
        try:
            category = self.classifier.classify(candidate.name)
            destination = resolver.resolve(root, candidate)
            return operation.apply(candidate, destination, simulate)
        except PathError as exc:
            return self._failure(candidate, str(exc), category, operation.task_id)
        except Exception as exc:  # noqa: BLE001
            return self._failure(candidate, f"unexpected error: {exc}", category, operation.task_id)

    def _failure(
        self,
        candidate: CandidateFile,
        error: str,
        category: str | None,
        task_id: str | None,
    ) -> Failed:
        log_event(
            self.logger,
            level=logging.ERROR,
            action="move.failed",
            message=f"Failed to move {candidate.path}: {error}",
            task_id=task_id,
        )
        return Failed(candidate.path, error, category)

    def _notify(self, outcome: OperationOutcome) -> None:
        try:
            with self._notify_lock:
                self.on_outcome(outcome)  # type: ignore[misc]
        except Exception as exc:  # noqa: BLE001
            log_event(
                self.logger,
                level=logging.ERROR,
                action="run.callback_failed",
                message=f"Outcome callback failed for {outcome.source}: {exc}",
            )


__all__ = ["ConcurrentDispatcher", "OutcomeCallback"]
