"""Destination path construction with collision-safe naming."""
from __future__ import annotations

import os
import threading
from pathlib import Path

from .classifier import ExtensionClassifier, extension_of
from .errors import PathError
from .models import CandidateFile, Destination


def disambiguated_name(file_name: str, counter: int) -> str:
    """Return *file_name* with ``_<counter>`` inserted before its extension.

    The extension is the one :func:`extension_of` sees, so the new name
    classifies exactly like the old one:

    ``report.pdf`` -> ``report_1.pdf``, ``archive.tar.gz`` -> ``archive.tar_1.gz``,
    ``.bashrc`` -> ``.bashrc_1``, ``notes.`` -> ``notes_1.``, ``..cache`` -> ``..cache_1``.
    """

    extension = extension_of(file_name)
    if extension:
        cut = len(file_name) - len(extension) - 1
        return f"{file_name[:cut]}_{counter}{file_name[cut:]}"
    stem = file_name.rstrip(".")
    if stem.strip("."):
        return f"{stem}_{counter}{file_name[len(stem):]}"
    return f"{file_name}_{counter}"


def _validate_segment(category: str) -> None:
    if not category or category in {".", ".."}:
        raise PathError(f"Invalid category name: {category!r}")
    separators = {os.sep, "/", "\0"}
    if os.altsep:
        separators.add(os.altsep)
    if any(sep in category for sep in separators):
        raise PathError(f"Category is not a single path segment: {category!r}")


class DestinationResolver:
    """Compute ``root/category/name`` targets, reserving names across workers.

    A name handed out by :meth:`resolve` stays reserved for the rest of the run,
    so two workers never receive the same free name even before either file has
    been moved.
    """

    def __init__(
        self,
        classifier: ExtensionClassifier | None = None,
        *,
        check_writable: bool = True,
    ) -> None:
        self.classifier = classifier or ExtensionClassifier()
        self.check_writable = check_writable
        self._reserved: set[Path] = set()
        self._lock = threading.Lock()

    def resolve(self, root: Path, candidate: CandidateFile) -> Destination:
        category = self.classifier.classify(candidate.name)
        _validate_segment(category)
        if self.check_writable and not os.access(root, os.W_OK):
            raise PathError(f"Root is not writable: {root}")

        directory = root / category
        target = directory / candidate.name
        counter = 1
        # The filesystem check runs unlocked; a file appearing afterwards is
        # caught by FileOperation as FileExistsError and re-resolved.
        while not self._reserve(target, candidate.path):
            target = directory / disambiguated_name(candidate.name, counter)
            counter += 1
        return Destination(directory=directory, path=target)

    def _reserve(self, target: Path, source: Path) -> bool:
        with self._lock:
            if target in self._reserved:
                return False
        if target != source and _occupied(target):
            return False
        with self._lock:
            if target in self._reserved:
                return False
            self._reserved.add(target)
        return True

    def release(self, path: Path) -> None:
        """Drop the reservation for *path* after a move did not take place."""

        with self._lock:
            self._reserved.discard(path)


def _occupied(path: Path) -> bool:
    return os.path.lexists(path)


__all__ = ["DestinationResolver", "disambiguated_name"]
