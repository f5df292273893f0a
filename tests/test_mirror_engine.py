import os
from pathlib import Path

from datedbackup.aggregator import ResultAggregator
from datedbackup.mirror_engine import FolderMirrorEngine
from datedbackup.models import FolderStatus


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _three_file_folder(root: Path) -> Path:
    folder = root / "Projects"
    _write(folder / "readme.md", "hello")
    _write(folder / "src" / "main.py", "print('ok')")
    _write(folder / "src" / "data" / "table.csv", "a,b\n1,2\n")
    return folder


def test_mirror_scenario_copy_skip_overwrite(tmp_path: Path) -> None:
    folder = _three_file_folder(tmp_path / "home")
    date_folder = tmp_path / "backup" / "2026-10-19"
    engine = FolderMirrorEngine(date_folder, ResultAggregator(), excludes=[])

    first = engine.mirror_folder(folder)

    assert (first.files_copied, first.files_skipped, first.status) == (3, 0, FolderStatus.SUCCESS)
    mirrored = date_folder / "Projects" / "src" / "data" / "table.csv"
    assert mirrored.read_text(encoding="utf-8") == "a,b\n1,2\n"
    assert mirrored.stat().st_mtime_ns == (folder / "src" / "data" / "table.csv").stat().st_mtime_ns

    second = engine.mirror_folder(folder)

    assert (second.files_copied, second.files_skipped) == (0, 3)

    _write(folder / "src" / "main.py", "print('changed')")
    os.utime(folder / "src" / "main.py", ns=(1_800_000_000_000_000_000, 1_800_000_000_000_000_000))
    third = engine.mirror_folder(folder)

    assert (third.files_copied, third.files_skipped) == (1, 2)
    assert (date_folder / "Projects" / "src" / "main.py").read_text(encoding="utf-8") == "print('changed')"
    assert sorted(p.name for p in (date_folder / "Projects" / "src").iterdir()) == ["data", "main.py"]


def test_missing_folder_is_skipped_with_failed_summary(tmp_path: Path) -> None:
    aggregator = ResultAggregator()
    engine = FolderMirrorEngine(tmp_path / "backup", aggregator)

    summaries = engine.run([tmp_path / "nope", _three_file_folder(tmp_path)])

    assert summaries[0].status is FolderStatus.FAILED
    assert summaries[0].reason == "Source folder not found"
    assert summaries[1].status is FolderStatus.SUCCESS
    assert summaries[1].files_copied == 3
    assert len(aggregator.snapshot().folders) == 2


def test_excludes_are_not_mirrored(tmp_path: Path) -> None:
    folder = tmp_path / "Work"
    _write(folder / "keep.txt", "1")
    _write(folder / "scratch.tmp", "2")
    _write(folder / "node_modules" / "pkg" / "index.js", "3")
    date_folder = tmp_path / "backup" / "day"
    engine = FolderMirrorEngine(date_folder, ResultAggregator(), excludes=["*.tmp", "node_modules/"])

    summary = engine.mirror_folder(folder)

    assert summary.files_copied == 1
    assert (date_folder / "Work" / "keep.txt").exists()
    assert not (date_folder / "Work" / "scratch.tmp").exists()
    assert not (date_folder / "Work" / "node_modules").exists()


def test_destination_inside_source_fails_folder(tmp_path: Path) -> None:
    folder = tmp_path / "Everything"
    _write(folder / "a.txt", "1")
    engine = FolderMirrorEngine(folder / "backup" / "day", ResultAggregator())

    summary = engine.mirror_folder(folder)

    assert summary.status is FolderStatus.FAILED
    assert "inside source" in (summary.reason or "")
    assert not (folder / "backup").exists()


def test_per_file_failure_does_not_stop_folder(tmp_path: Path, monkeypatch) -> None:
    folder = _three_file_folder(tmp_path)
    date_folder = tmp_path / "backup" / "day"
    engine = FolderMirrorEngine(date_folder, ResultAggregator())

    import datedbackup.mirror_engine as mirror_module

    real_copy = mirror_module.copy_with_timestamp

    def flaky_copy(source: Path, destination: Path, modified_ns: int) -> None:
        if source.name == "main.py":
            raise OSError("disk hiccup")
        real_copy(source, destination, modified_ns)

    monkeypatch.setattr(mirror_module, "copy_with_timestamp", flaky_copy)

    summary = engine.mirror_folder(folder)

    assert summary.status is FolderStatus.SUCCESS
    assert (summary.files_copied, summary.files_failed) == (2, 1)
    assert not (date_folder / "Projects" / "src" / "main.py").exists()
    assert [p.name for p in (date_folder / "Projects" / "src").iterdir() if p.is_file()] == []


def test_rounded_destination_mtime_is_skipped_on_rerun(tmp_path: Path, monkeypatch) -> None:
    folder = _three_file_folder(tmp_path)
    for path in folder.rglob("*"):
        if path.is_file():
            os.utime(path, ns=(1_700_000_001_300_000_000, 1_700_000_001_300_000_000))
    engine = FolderMirrorEngine(tmp_path / "backup" / "day", ResultAggregator())

    real_utime = os.utime

    def utime_in_two_seconds(path, ns):
        atime, mtime = ns
        real_utime(path, ns=(atime, mtime - mtime % 2_000_000_000))

    monkeypatch.setattr(os, "utime", utime_in_two_seconds)

    first = engine.mirror_folder(folder)
    second = engine.mirror_folder(folder)

    assert (first.files_copied, first.files_skipped) == (3, 0)
    assert (second.files_copied, second.files_skipped) == (0, 3)
