"""Safe per-file relocation returning typed outcomes."""
from __future__ import annotations

import errno
import hashlib
import logging
import os
import shutil
import threading
from pathlib import Path

try:  # pragma: no cover - POSIX only
    import fcntl
except ImportError:  # pragma: no cover - Windows reports locks through winerror
    fcntl = None  # type: ignore[assignment]

from .config import MAX_CONFLICT_RETRIES
from .errors import PathError
from .logger import log_event
from .models import CandidateFile, Destination, Failed, Moved, OperationOutcome, Skipped
from .resolver import DestinationResolver

LOGGER_NAME = "ext_organizer.mover"

_LOCKED_ERRNOS = {
    code
    for code in (
        errno.EAGAIN,
        errno.EWOULDBLOCK,
        errno.EBUSY,
        getattr(errno, "ETXTBSY", None),
    )
    if code is not None
}
_WINDOWS_SHARING_VIOLATIONS = {32, 33}
_DISK_FULL_ERRNOS = {
    code for code in (errno.ENOSPC, getattr(errno, "EDQUOT", None)) if code is not None
}
_INVALID_DESTINATION_ERRNOS = {
    errno.ENAMETOOLONG,
    errno.EINVAL,
    errno.ENOTDIR,
    errno.EISDIR,
    errno.EROFS,
}
_LINK_UNSUPPORTED_ERRNOS = {
    code
    for code in (
        errno.EPERM,
        errno.EMLINK,
        getattr(errno, "ENOTSUP", None),
        getattr(errno, "EOPNOTSUPP", None),
    )
    if code is not None
}


class MoveError(Exception):
    """Raised internally when a move cannot complete without losing track of data."""


def _calculate_sha256(file_path: Path) -> str:
    """Calculate the SHA256 hash of a file."""
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(8192):
            sha256.update(chunk)
    return sha256.hexdigest()


class DirectoryRegistry:
    """Create category directories once per run.

    Concurrent callers racing on the same directory both succeed because
    creation uses ``exist_ok``.
    """

    def __init__(self) -> None:
        self._created: set[Path] = set()
        self._lock = threading.Lock()

    def ensure(self, directory: Path) -> bool:
        """Make sure *directory* exists. Return ``True`` if this call created it."""

        with self._lock:
            if directory in self._created:
                return False
        existed = directory.is_dir()
        directory.mkdir(exist_ok=True)
        with self._lock:
            self._created.add(directory)
        return not existed

    @property
    def created(self) -> frozenset[Path]:
        with self._lock:
            return frozenset(self._created)


class FileOperation:
    """Relocate a single candidate and report what happened.

    Every per-file condition is converted into a :class:`Moved`,
    :class:`Skipped` or :class:`Failed` value; nothing raised by the
    filesystem escapes :meth:`apply`.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        resolver: DestinationResolver | None = None,
        directories: DirectoryRegistry | None = None,
        max_conflict_retries: int = MAX_CONFLICT_RETRIES,
        task_id: str | None = None,
    ) -> None:
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.task_id = task_id
        self.resolver = resolver
        self.directories = directories or DirectoryRegistry()
        self.max_conflict_retries = max_conflict_retries

    def apply(
        self,
        candidate: CandidateFile,
        destination: Destination,
        simulate: bool,
    ) -> OperationOutcome:
        category = destination.category
        if simulate:
            log_event(
                self.logger,
                level=logging.INFO,
                action="move.simulated",
                message=f"Would move {candidate.path} -> {destination.path}",
                task_id=self.task_id,
                bytes_processed=_size_of(candidate.path),
                extra={"category": category},
            )
            return Moved(candidate.path, destination.path, category, simulated=True)

        if destination.path == candidate.path:
            return self._skipped(candidate, "already organized", category)

        try:
            _probe_lock(candidate.path)
            self.directories.ensure(destination.directory)
        except FileExistsError:
            if self.resolver is not None:
                self.resolver.release(destination.path)
            return self._failed(
                candidate, f"category path is occupied by a file: {destination.directory}", category
            )
        except OSError as exc:
            if self.resolver is not None:
                self.resolver.release(destination.path)
            return self._outcome_for_error(candidate, exc, category)

        conflicts = 0
        while True:
            try:
                operation = self._relocate(candidate.path, destination.path)
            except FileExistsError:
                conflicts += 1
                log_event(
                    self.logger,
                    level=logging.INFO,
                    action="move.conflict",
                    message=f"Destination taken: {destination.path}",
                    task_id=self.task_id,
                    extra={"attempt": conflicts},
                )
                if self.resolver is None or conflicts > self.max_conflict_retries:
                    return self._skipped(
                        candidate,
                        f"destination name still in use after {conflicts} attempt(s): {destination.path}",
                        category,
                    )
                try:
                    destination = self.resolver.resolve(destination.directory.parent, candidate)
                except PathError as exc:
                    return self._failed(candidate, str(exc), category)
                continue
            except MoveError as exc:
                return self._failed(candidate, str(exc), category)
            except OSError as exc:
                if self.resolver is not None:
                    self.resolver.release(destination.path)
                return self._outcome_for_error(candidate, exc, category)
            break

        log_event(
            self.logger,
            level=logging.INFO,
            action=f"move.{operation}",
            message=f"Moved {candidate.path} -> {destination.path}",
            task_id=self.task_id,
            bytes_processed=_size_of(destination.path),
            extra={"category": category},
        )
        return Moved(candidate.path, destination.path, category)

    # ------------------------------------------------------------------
    # Relocation strategies
    def _relocate(self, source: Path, target: Path) -> str:
        """Move *source* to *target* without ever replacing an existing file."""

        try:
            os.link(source, target)
        except OSError as exc:
            if exc.errno == errno.EXDEV:
                return self._copy_across_volumes(source, target)
            if exc.errno in _LINK_UNSUPPORTED_ERRNOS:
                return self._rename_if_free(source, target)
            raise

        try:
            source.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            target.unlink(missing_ok=True)
            raise
        return "rename"

    def _rename_if_free(self, source: Path, target: Path) -> str:
        if os.path.lexists(target):
            raise FileExistsError(errno.EEXIST, "Destination exists", str(target))
        source.rename(target)
        return "rename"

    def _copy_across_volumes(self, source: Path, target: Path) -> str:
        """Copy to an exclusively created *target*, verify it, then delete *source*."""

        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0)
        fd = os.open(target, flags, 0o666)
        try:
            with os.fdopen(fd, "wb") as dst, source.open("rb") as src:
                shutil.copyfileobj(src, dst)
            shutil.copystat(source, target)
        except OSError:
            target.unlink(missing_ok=True)
            raise

        if _calculate_sha256(source) != _calculate_sha256(target):
            target.unlink(missing_ok=True)
            raise MoveError(f"SHA-256 verification failed for {source}; copy removed")

        try:
            source.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise MoveError(
                f"partial move: copied to {target} but could not remove source ({exc}); "
                f"duplicate left at {target}"
            ) from exc
        return "copy_and_verify"

    # ------------------------------------------------------------------
    # Outcome helpers
    def _outcome_for_error(
        self, candidate: CandidateFile, exc: OSError, category: str
    ) -> OperationOutcome:
        code = exc.errno
        if isinstance(exc, FileNotFoundError) and not os.path.lexists(candidate.path):
            return self._skipped(candidate, "source disappeared before move", category)
        if getattr(exc, "winerror", None) in _WINDOWS_SHARING_VIOLATIONS or code in _LOCKED_ERRNOS:
            return self._skipped(candidate, "file locked or in use", category)
        if isinstance(exc, PermissionError):
            return self._skipped(candidate, f"permission denied: {exc}", category)
        if code in _DISK_FULL_ERRNOS:
            return self._failed(candidate, f"disk full: {exc}", category)
        if code in _INVALID_DESTINATION_ERRNOS or isinstance(exc, FileExistsError):
            return self._failed(candidate, f"destination invalid: {exc}", category)
        return self._failed(candidate, str(exc), category)

    def _skipped(self, candidate: CandidateFile, reason: str, category: str) -> Skipped:
        log_event(
            self.logger,
            level=logging.WARNING,
            action="move.skipped",
            message=f"Skipped {candidate.path}: {reason}",
            task_id=self.task_id,
            extra={"category": category},
        )
        return Skipped(candidate.path, reason, category)

    def _failed(self, candidate: CandidateFile, error: str, category: str) -> Failed:
        log_event(
            self.logger,
            level=logging.ERROR,
            action="move.failed",
            message=f"Failed to move {candidate.path}: {error}",
            task_id=self.task_id,
            extra={"category": category},
        )
        return Failed(candidate.path, error, category)


def _size_of(path: Path) -> int | None:
    try:
        return path.stat().st_size
    except OSError:
        return None


def _probe_lock(path: Path) -> None:
    """Raise ``BlockingIOError`` when another handle holds a lock on *path*."""

    if fcntl is None:
        return
    try:
        handle = path.open("rb")
    except PermissionError:
        return
    with handle:
        try:
            fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            raise
        except OSError:
            return
        fcntl.flock(handle, fcntl.LOCK_UN)


__all__ = ["DirectoryRegistry", "FileOperation", "MoveError"]
