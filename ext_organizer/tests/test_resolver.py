from __future__ import annotations

import threading
from pathlib import Path

import pytest

from ext_organizer import resolver as resolver_module
from ext_organizer.classifier import ExtensionClassifier, classify
from ext_organizer.errors import PathError
from ext_organizer.models import CandidateFile
from ext_organizer.resolver import DestinationResolver, disambiguated_name


def make_candidate(path: Path) -> CandidateFile:
    return CandidateFile.from_path(path)


def test_disambiguated_name_scheme() -> None:
    assert disambiguated_name("report.pdf", 1) == "report_1.pdf"
    assert disambiguated_name("archive.tar.gz", 2) == "archive.tar_2.gz"
    assert disambiguated_name(".bashrc", 1) == ".bashrc_1"
    assert disambiguated_name("README", 3) == "README_3"


def test_resolve_builds_category_path(tmp_path: Path) -> None:
    resolver = DestinationResolver()
    destination = resolver.resolve(tmp_path, make_candidate(tmp_path / "nested" / "script.py"))
    assert destination.directory == tmp_path / "python"
    assert destination.path == tmp_path / "python" / "script.py"
    assert destination.category == "python"


def test_resolve_appends_counter_on_collision(tmp_path: Path) -> None:
    (tmp_path / "pdf").mkdir()
    (tmp_path / "pdf" / "report.pdf").write_text("existing", encoding="utf-8")
    (tmp_path / "pdf" / "report_1.pdf").write_text("existing", encoding="utf-8")

    resolver = DestinationResolver()
    destination = resolver.resolve(tmp_path, make_candidate(tmp_path / "report.pdf"))
    assert destination.path.name == "report_2.pdf"


def test_resolve_reserves_names_between_calls(tmp_path: Path) -> None:
    resolver = DestinationResolver()
    first = resolver.resolve(tmp_path, make_candidate(tmp_path / "a" / "data.csv"))
    second = resolver.resolve(tmp_path, make_candidate(tmp_path / "b" / "data.csv"))
    assert first.path.name == "data.csv"
    assert second.path.name == "data_1.csv"

    resolver.release(first.path)
    third = resolver.resolve(tmp_path, make_candidate(tmp_path / "c" / "data.csv"))
    assert third.path.name == "data.csv"


def test_concurrent_resolution_never_hands_out_the_same_name(tmp_path: Path) -> None:
    resolver = DestinationResolver()
    results: list[Path] = []
    lock = threading.Lock()
    barrier = threading.Barrier(8)

    def worker(index: int) -> None:
        barrier.wait()
        destination = resolver.resolve(tmp_path, make_candidate(tmp_path / f"d{index}" / "same.txt"))
        with lock:
            results.append(destination.path)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 8
    assert len(set(results)) == 8


def test_resolve_rejects_unsafe_category(tmp_path: Path) -> None:
    class BadClassifier(ExtensionClassifier):
        def classify(self, file_name: str) -> str:
            return "../escape"

    resolver = DestinationResolver(BadClassifier())
    with pytest.raises(PathError):
        resolver.resolve(tmp_path, make_candidate(tmp_path / "x.txt"))


def test_resolve_rejects_unwritable_root(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr("ext_organizer.resolver.os.access", lambda path, mode: False)
    resolver = DestinationResolver()
    with pytest.raises(PathError):
        resolver.resolve(tmp_path, make_candidate(tmp_path / "x.txt"))

    dry_resolver = DestinationResolver(check_writable=False)
    assert dry_resolver.resolve(tmp_path, make_candidate(tmp_path / "x.txt")).category == "txt"


@pytest.mark.parametrize("name", ["notes.", "..cache", ".bashrc", "README", "a.tar.gz", "photo.JPEG", "..."])
@pytest.mark.parametrize("counter", [1, 7])
def test_disambiguated_name_keeps_category(name: str, counter: int) -> None:
    renamed = disambiguated_name(name, counter)
    assert renamed != name
    assert classify(renamed) == classify(name)


def test_disambiguated_name_without_extension() -> None:
    assert disambiguated_name("notes.", 1) == "notes_1."
    assert disambiguated_name("..cache", 1) == "..cache_1"
    assert disambiguated_name("photo.JPEG", 2) == "photo_2.JPEG"


def test_filesystem_check_runs_outside_the_lock(tmp_path: Path, monkeypatch) -> None:
    resolver = DestinationResolver()
    original = resolver_module._occupied
    held: list[bool] = []

    def recording_occupied(path: Path) -> bool:
        held.append(resolver._lock.locked())
        return original(path)

    monkeypatch.setattr(resolver_module, "_occupied", recording_occupied)
    (tmp_path / "txt").mkdir()
    (tmp_path / "txt" / "x.txt").write_text("taken", encoding="utf-8")

    destination = resolver.resolve(tmp_path, make_candidate(tmp_path / "x.txt"))
    assert destination.path.name == "x_1.txt"
    assert held and not any(held)
