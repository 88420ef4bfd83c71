"""File scanning module responsible for producing candidate files."""
from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterator, Sequence

from .classifier import ExtensionClassifier, extension_of
from .errors import ScanError
from .logger import log_event
from .models import CandidateFile, ScanIssue, ScanResult

LOGGER_NAME = "ext_organizer.scanner"


class ScanCollector:
    """Walk a root directory and collect :class:`CandidateFile` objects.

    Files sitting in ``root/<category>`` where ``<category>`` is their own
    classification are already organized and are not collected again.
    """

    def __init__(
        self,
        classifier: ExtensionClassifier | None = None,
        *,
        exclude_patterns: Sequence[str] = (),
        logger: logging.Logger | None = None,
    ) -> None:
        self.classifier = classifier or ExtensionClassifier()
        self.exclude_patterns = tuple(exclude_patterns)
        self.logger = logger or logging.getLogger(LOGGER_NAME)

    def scan(self, root: str | Path) -> ScanResult:
        """Scan *root* recursively and return a :class:`ScanResult`."""

        root_path = Path(root).expanduser()
        if not root_path.exists():
            raise ScanError(f"Root does not exist: {root_path}", root_path)
        if not root_path.is_dir():
            raise ScanError(f"Root is not a directory: {root_path}", root_path)
        try:
            entries = _sorted_entries(root_path)
        except OSError as exc:
            raise ScanError(f"Root is not readable: {root_path} ({exc})", root_path) from exc

        log_event(
            self.logger,
            level=logging.INFO,
            action="scan.start",
            message=f"Scanning directory: {root_path}",
        )
        result = ScanResult(root=root_path, candidates=[])
        result.candidates.extend(self._walk(root_path, entries, result.issues))
        log_event(
            self.logger,
            level=logging.INFO,
            action="scan.complete",
            message=f"Found {result.total_files} files",
            extra={"issues": len(result.issues)},
        )
        return result

    def _walk(
        self,
        root: Path,
        entries: list[os.DirEntry[str]],
        issues: list[ScanIssue],
    ) -> Iterator[CandidateFile]:
        subdirectories: list[Path] = []
        for entry in entries:
            if self._is_excluded(entry.name):
                continue
            if entry.is_symlink():
                continue
            if entry.is_dir(follow_symlinks=False):
                subdirectories.append(Path(entry.path))
            elif entry.is_file(follow_symlinks=False):
                path = Path(entry.path)
                if self._already_organized(root, path):
                    continue
                yield CandidateFile(path=path, name=entry.name, extension=extension_of(entry.name))

        for subdirectory in subdirectories:
            try:
                children = _sorted_entries(subdirectory)
            except OSError as exc:
                issues.append(ScanIssue(path=subdirectory, reason=exc.strerror or str(exc)))
                log_event(
                    self.logger,
                    level=logging.WARNING,
                    action="scan.permission_denied",
                    message=f"Cannot read directory: {subdirectory}",
                    extra={"path": str(subdirectory), "error": str(exc)},
                )
                continue
            yield from self._walk(root, children, issues)

    def _already_organized(self, root: Path, path: Path) -> bool:
        parent = path.parent
        return parent.parent == root and parent.name == self.classifier.classify(path.name)

    def _is_excluded(self, name: str) -> bool:
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.exclude_patterns)


def _sorted_entries(directory: Path) -> list[os.DirEntry[str]]:
    with os.scandir(directory) as entries:
        return sorted(entries, key=lambda entry: entry.name)


__all__ = ["ScanCollector"]
