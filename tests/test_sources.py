from pathlib import Path

from datedbackup.sources import StaticSourceRootProvider, WellKnownFolderProvider, dedupe_existing_dirs


def test_dedupe_drops_missing_and_repeated_dirs(tmp_path: Path) -> None:
    docs = tmp_path / "docs"
    docs.mkdir()
    (tmp_path / "file.txt").write_text("x", encoding="utf-8")

    roots = dedupe_existing_dirs([docs, tmp_path / "missing", docs / ".." / "docs", tmp_path / "file.txt"])

    assert roots == [docs.resolve()]


def test_static_provider_returns_existing_dirs(tmp_path: Path) -> None:
    (tmp_path / "a").mkdir()

    provider = StaticSourceRootProvider([tmp_path / "a", tmp_path / "b"])

    assert provider.source_roots() == [(tmp_path / "a").resolve()]


def test_well_known_provider_matches_names_case_insensitively(tmp_path: Path) -> None:
    (tmp_path / "Documents").mkdir()
    (tmp_path / "pictures").mkdir()

    provider = WellKnownFolderProvider(["Documents", "Pictures", "Videos"], home=tmp_path)

    assert provider.source_roots() == [(tmp_path / "Documents").resolve(), (tmp_path / "pictures").resolve()]
