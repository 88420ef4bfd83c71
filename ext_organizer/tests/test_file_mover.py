from __future__ import annotations

import errno
import json
import logging
import os
import threading
from pathlib import Path

import pytest

from ext_organizer.file_mover import DirectoryRegistry, FileOperation
from ext_organizer.models import CandidateFile, Destination, Failed, Moved, Skipped
from ext_organizer.resolver import DestinationResolver

fcntl = pytest.importorskip("fcntl") if os.name == "posix" else None


def make_file(path: Path, content: str = "data") -> CandidateFile:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return CandidateFile.from_path(path)


def destination_for(root: Path, category: str, name: str) -> Destination:
    return Destination(directory=root / category, path=root / category / name)


def test_apply_moves_file_and_creates_directory(tmp_path: Path) -> None:
    candidate = make_file(tmp_path / "report.pdf", "pdf-bytes")
    destination = destination_for(tmp_path, "pdf", "report.pdf")

    outcome = FileOperation().apply(candidate, destination, simulate=False)

    assert outcome == Moved(candidate.path, destination.path, "pdf")
    assert destination.path.read_text(encoding="utf-8") == "pdf-bytes"
    assert not candidate.path.exists()


def test_apply_simulate_does_not_touch_filesystem(tmp_path: Path) -> None:
    candidate = make_file(tmp_path / "report.pdf")
    destination = destination_for(tmp_path, "pdf", "report.pdf")

    outcome = FileOperation().apply(candidate, destination, simulate=True)

    assert isinstance(outcome, Moved)
    assert outcome.simulated is True
    assert outcome.destination == destination.path
    assert candidate.path.exists()
    assert not destination.directory.exists()


def test_apply_skips_vanished_source(tmp_path: Path) -> None:
    candidate = make_file(tmp_path / "gone.txt")
    candidate.path.unlink()

    outcome = FileOperation().apply(candidate, destination_for(tmp_path, "txt", "gone.txt"), simulate=False)

    assert isinstance(outcome, Skipped)
    assert "disappeared" in outcome.reason


@pytest.mark.skipif(os.name != "posix", reason="flock based locking is POSIX only")
def test_apply_skips_locked_file(tmp_path: Path) -> None:
    candidate = make_file(tmp_path / "system.log")
    destination = destination_for(tmp_path, "log", "system.log")

    with candidate.path.open("rb") as holder:
        fcntl.flock(holder, fcntl.LOCK_EX | fcntl.LOCK_NB)
        outcome = FileOperation().apply(candidate, destination, simulate=False)
        fcntl.flock(holder, fcntl.LOCK_UN)

    assert isinstance(outcome, Skipped)
    assert "locked" in outcome.reason
    assert candidate.path.exists()
    assert not destination.path.exists()


def test_apply_skips_permission_denied(tmp_path: Path, monkeypatch) -> None:
    candidate = make_file(tmp_path / "secret.txt")

    def deny(src, dst, *args, **kwargs):
        raise PermissionError(errno.EACCES, "Permission denied", str(src))

    monkeypatch.setattr("ext_organizer.file_mover.os.link", deny)
    outcome = FileOperation().apply(candidate, destination_for(tmp_path, "txt", "secret.txt"), simulate=False)

    assert isinstance(outcome, Skipped)
    assert "permission denied" in outcome.reason
    assert candidate.path.exists()


def test_apply_fails_when_disk_is_full(tmp_path: Path, monkeypatch) -> None:
    candidate = make_file(tmp_path / "big.iso")

    def full(src, dst, *args, **kwargs):
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr("ext_organizer.file_mover.os.link", full)
    outcome = FileOperation().apply(candidate, destination_for(tmp_path, "iso", "big.iso"), simulate=False)

    assert isinstance(outcome, Failed)
    assert outcome.error.startswith("disk full")
    assert candidate.path.exists()


def test_apply_never_overwrites_and_re_resolves(tmp_path: Path) -> None:
    candidate = make_file(tmp_path / "inbox" / "notes.txt", "new")
    existing = make_file(tmp_path / "txt" / "notes.txt", "old")
    # Stale destination computed before another worker created notes.txt
    stale = destination_for(tmp_path, "txt", "notes.txt")

    operation = FileOperation(resolver=DestinationResolver())
    outcome = operation.apply(candidate, stale, simulate=False)

    assert isinstance(outcome, Moved)
    assert outcome.destination == tmp_path / "txt" / "notes_1.txt"
    assert existing.path.read_text(encoding="utf-8") == "old"
    assert outcome.destination.read_text(encoding="utf-8") == "new"


def test_apply_without_resolver_skips_on_conflict(tmp_path: Path) -> None:
    candidate = make_file(tmp_path / "notes.txt", "new")
    make_file(tmp_path / "txt" / "notes.txt", "old")

    outcome = FileOperation().apply(candidate, destination_for(tmp_path, "txt", "notes.txt"), simulate=False)

    assert isinstance(outcome, Skipped)
    assert "still in use" in outcome.reason
    assert candidate.path.exists()


def test_cross_volume_move_copies_verifies_and_deletes_source(tmp_path: Path, monkeypatch) -> None:
    candidate = make_file(tmp_path / "movie.mkv", "cross-volume data")
    destination = destination_for(tmp_path, "mkv", "movie.mkv")

    def cross_device(src, dst, *args, **kwargs):
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr("ext_organizer.file_mover.os.link", cross_device)
    outcome = FileOperation().apply(candidate, destination, simulate=False)

    assert isinstance(outcome, Moved)
    assert destination.path.read_text(encoding="utf-8") == "cross-volume data"
    assert not candidate.path.exists(), "Source file should be deleted after a verified copy"


def test_partial_cross_volume_move_is_reported_as_failure(tmp_path: Path, monkeypatch) -> None:
    candidate = make_file(tmp_path / "movie.mkv", "payload")
    destination = destination_for(tmp_path, "mkv", "movie.mkv")

    def cross_device(src, dst, *args, **kwargs):
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    original_unlink = Path.unlink

    def guarded_unlink(self, missing_ok=False):
        if self == candidate.path:
            raise OSError(errno.EIO, "I/O error")
        return original_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr("ext_organizer.file_mover.os.link", cross_device)
    monkeypatch.setattr(Path, "unlink", guarded_unlink)
    outcome = FileOperation().apply(candidate, destination, simulate=False)

    assert isinstance(outcome, Failed)
    assert "partial move" in outcome.error
    assert str(destination.path) in outcome.error
    assert candidate.path.exists()
    assert destination.path.exists()


def test_directory_registry_is_idempotent_under_races(tmp_path: Path) -> None:
    registry = DirectoryRegistry()
    target = tmp_path / "pdf"
    (tmp_path / "pre").mkdir()
    errors: list[BaseException] = []
    barrier = threading.Barrier(6)

    def worker() -> None:
        barrier.wait()
        try:
            registry.ensure(target)
            registry.ensure(tmp_path / "pre")
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert target.is_dir()
    assert registry.created == frozenset({target, tmp_path / "pre"})
    assert registry.ensure(target) is False


def test_apply_fails_clearly_when_category_path_is_a_file(tmp_path: Path) -> None:
    (tmp_path / "pdf").write_text("an extensionless file named pdf", encoding="utf-8")
    candidate = make_file(tmp_path / "report.pdf")
    resolver = DestinationResolver()
    destination = resolver.resolve(tmp_path, candidate)

    outcome = FileOperation(resolver=resolver).apply(candidate, destination, simulate=False)

    assert isinstance(outcome, Failed)
    assert outcome.error.startswith("category path is occupied by a file")
    assert candidate.path.exists()
    assert (tmp_path / "pdf").is_file()


def test_move_events_carry_task_id_and_size(tmp_path: Path, caplog) -> None:
    candidate = make_file(tmp_path / "report.pdf", "twelve bytes")
    destination = destination_for(tmp_path, "pdf", "report.pdf")
    operation = FileOperation(logging.getLogger("mover-events"), task_id="run-1")

    with caplog.at_level(logging.INFO, logger="mover-events"):
        operation.apply(candidate, destination, simulate=False)

    payloads = [json.loads(record.getMessage()) for record in caplog.records]
    assert payloads[-1]["action"] == "move.rename"
    assert payloads[-1]["taskId"] == "run-1"
    assert payloads[-1]["bytes"] == 12
