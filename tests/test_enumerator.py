from pathlib import Path

import pytest

from datedbackup.enumerator import SourceEnumerator, build_work_items, file_extension, iter_matching_files
from datedbackup.errors import EmptyDiscoveryError
from datedbackup.models import WorkItem


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_build_work_items_is_cross_product(tmp_path: Path) -> None:
    roots = [tmp_path / "Documents", tmp_path / "Desktop"]

    items = build_work_items(roots, ["pdf", "docx", "xlsx"])

    assert len(items) == 6
    assert WorkItem(source_root=tmp_path / "Desktop", extension="docx") in items


def test_file_extension_is_lowercase_without_dot() -> None:
    assert file_extension("Report.PDF") == "pdf"
    assert file_extension("archive.tar.gz") == "gz"
    assert file_extension("Makefile") == ""
    assert file_extension(".bashrc") == ""


def test_iter_matching_files_is_recursive_and_case_insensitive(tmp_path: Path) -> None:
    _write(tmp_path / "a.pdf", "1")
    _write(tmp_path / "nested" / "deeper" / "B.PDF", "22")
    _write(tmp_path / "nested" / "c.pdf.txt", "3")
    _write(tmp_path / "d.docx", "4")

    found = list(iter_matching_files(WorkItem(tmp_path, "pdf"), on_error=lambda diag: None))

    assert sorted(item.name for item in found) == ["B.PDF", "a.pdf"]
    by_name = {item.name: item for item in found}
    assert by_name["B.PDF"].extension == "pdf"
    assert by_name["B.PDF"].size_bytes == 2
    assert by_name["B.PDF"].path == tmp_path / "nested" / "deeper" / "B.PDF"
    assert by_name["a.pdf"].modified_ns == (tmp_path / "a.pdf").stat().st_mtime_ns


def test_listing_error_is_reported_not_raised(tmp_path: Path) -> None:
    diagnostics = []

    found = list(iter_matching_files(WorkItem(tmp_path / "missing", "pdf"), on_error=diagnostics.append))

    assert found == []
    assert len(diagnostics) == 1
    assert diagnostics[0].path == tmp_path / "missing"


def test_discover_keeps_sibling_listings_after_a_failure(tmp_path: Path) -> None:
    good = tmp_path / "good"
    _write(good / "one.pdf", "1")
    _write(good / "two.txt", "2")
    enumerator = SourceEnumerator(max_parallel=2)

    descriptors = enumerator.discover([tmp_path / "vanished", good], ["pdf", "txt"])

    assert sorted(item.name for item in descriptors) == ["one.pdf", "two.txt"]
    assert len(enumerator.diagnostics) == 2


def test_overlapping_roots_may_yield_duplicates(tmp_path: Path) -> None:
    _write(tmp_path / "inner" / "x.pdf", "1")

    descriptors = SourceEnumerator().discover([tmp_path, tmp_path / "inner"], ["pdf"])

    assert [item.name for item in descriptors] == ["x.pdf", "x.pdf"]


def test_empty_discovery_raises(tmp_path: Path) -> None:
    _write(tmp_path / "notes.txt", "1")

    with pytest.raises(EmptyDiscoveryError):
        SourceEnumerator().discover([tmp_path], ["pdf"])


def test_backup_root_inside_source_is_pruned(tmp_path: Path) -> None:
    docs = tmp_path / "Documents"
    _write(docs / "a.pdf", "1")
    _write(docs / "Backups" / "2026-10-19" / "pdf" / "a.pdf", "1")
    enumerator = SourceEnumerator(excluded_dirs=[docs / "Backups"])

    descriptors = enumerator.discover([docs], ["pdf"])

    assert [item.path for item in descriptors] == [docs / "a.pdf"]
    assert enumerator.diagnostics == []


def test_source_root_inside_backup_root_is_skipped(tmp_path: Path) -> None:
    backup_root = tmp_path / "backup"
    _write(backup_root / "2026-10-19" / "pdf" / "old.pdf", "1")
    diagnostics = []

    found = list(
        iter_matching_files(
            WorkItem(backup_root / "2026-10-19", "pdf"),
            on_error=diagnostics.append,
            excluded_dirs=[backup_root],
        )
    )

    assert found == []
    assert "inside the backup root" in diagnostics[0].message
