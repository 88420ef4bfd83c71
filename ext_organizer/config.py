"""Configuration for ExtOrganizer runs."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

FALLBACK_CATEGORY = "unsorted"
MAX_CONFLICT_RETRIES = 5

DEFAULT_CATEGORY_ALIASES: Mapping[str, str] = {
    "py": "python",
    "pyw": "python",
    "js": "javascript",
    "mjs": "javascript",
    "ts": "typescript",
    "rs": "rust",
    "md": "markdown",
    "yml": "yaml",
    "htm": "html",
    "jpeg": "jpg",
    "tif": "tiff",
}


@dataclass
class OrganizeOptions:
    """Options that control how the organizer behaves."""

    simulate: bool = False
    workers: Optional[int] = None
    fallback_category: str = FALLBACK_CATEGORY
    category_aliases: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_ALIASES)
    )
    exclude_patterns: Sequence[str] = field(default_factory=tuple)
    max_conflict_retries: int = MAX_CONFLICT_RETRIES

    def resolved_workers(self) -> int:
        """Return the worker count, defaulting to the number of CPUs."""

        if self.workers is None:
            return os.cpu_count() or 1
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        return self.workers
