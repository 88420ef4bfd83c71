"""Main ExtOrganizer orchestration."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from .classifier import ExtensionClassifier
from .config import OrganizeOptions
from .dispatcher import ConcurrentDispatcher, OutcomeCallback
from .errors import StartupError
from .file_scanner import ScanCollector
from .logger import LOGGER_NAME
from .models import RunSummary


def validate_root(root: str | Path) -> Path:
    """Return the absolute root path or raise :class:`StartupError`."""

    root_path = Path(root).expanduser()
    if not root_path.exists():
        raise StartupError(f"Root does not exist: {root_path}", root_path)
    if not root_path.is_dir():
        raise StartupError(f"Root is not a directory: {root_path}", root_path)
    if not os.access(root_path, os.R_OK | os.X_OK):
        raise StartupError(f"Root is not readable: {root_path}", root_path)
    return root_path.resolve()


class ExtOrganizer:
    """Coordinate scanning, classification and concurrent moving."""

    def __init__(
        self,
        options: Optional[OrganizeOptions] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.options = options or OrganizeOptions()
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.classifier = ExtensionClassifier(
            self.options.category_aliases,
            fallback=self.options.fallback_category,
        )
        self.scanner = ScanCollector(
            self.classifier,
            exclude_patterns=self.options.exclude_patterns,
            logger=self.logger.getChild("scanner"),
        )

    def organize(
        self,
        root: str | Path,
        *,
        on_outcome: Optional[OutcomeCallback] = None,
    ) -> RunSummary:
        """Organize *root* in place and return the frozen :class:`RunSummary`.

        Raises :class:`StartupError` before any file is touched when *root*
        cannot be used.
        """

        root_path = validate_root(root)
        workers = self.options.resolved_workers()
        scan = self.scanner.scan(root_path)

        dispatcher = ConcurrentDispatcher(
            self.classifier,
            on_outcome=on_outcome,
            max_conflict_retries=self.options.max_conflict_retries,
            logger=self.logger.getChild("dispatcher"),
        )
        return dispatcher.run(
            scan.candidates,
            root_path,
            self.options.simulate,
            workers,
            scan_issues=scan.issues,
        )


def organize_directory(
    root: str | Path,
    *,
    simulate: bool = False,
    workers: Optional[int] = None,
    on_outcome: Optional[OutcomeCallback] = None,
) -> RunSummary:
    """Convenience wrapper around :class:`ExtOrganizer` with default options."""

    options = OrganizeOptions(simulate=simulate, workers=workers)
    return ExtOrganizer(options).organize(root, on_outcome=on_outcome)


__all__ = ["ExtOrganizer", "organize_directory", "validate_root"]
