from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from audiohls.transcoder import ArchiveAssembler, ArchiveFailure


def _make_package(job_dir: Path, folder: str) -> None:
    variant = job_dir / folder / "64k"
    variant.mkdir(parents=True)
    (job_dir / folder / "master.m3u8").write_text("#EXTM3U\n", encoding="utf-8")
    (variant / "playlist.m3u8").write_text("#EXTM3U\n", encoding="utf-8")
    (variant / "segment_000.ts").write_bytes(b"\x47" * 188)


def test_archive_skips_uploads_and_excluded(tmp_path: Path) -> None:
    job_dir = tmp_path / "job"
    _make_package(job_dir, "alpha")
    _make_package(job_dir, "beta")
    (job_dir / "uploads").mkdir()
    (job_dir / "uploads" / "alpha.mp3").write_bytes(b"ID3")

    archive = ArchiveAssembler().assemble(job_dir, exclude={"beta"})

    assert archive == job_dir / "hls-output.zip"
    with zipfile.ZipFile(archive) as bundle:
        names = bundle.namelist()
        assert bundle.getinfo("alpha/64k/segment_000.ts").compress_type == zipfile.ZIP_DEFLATED
    assert "alpha/master.m3u8" in names
    assert "alpha/64k/playlist.m3u8" in names
    assert not any(name.startswith("beta/") for name in names)
    assert not any(name.startswith("uploads/") for name in names)
    assert not any(name.endswith(".zip") for name in names)


def test_archive_failure_removes_partial_output(tmp_path: Path) -> None:
    missing = tmp_path / "does-not-exist"

    with pytest.raises(ArchiveFailure):
        ArchiveAssembler().assemble(missing)

    assert not (missing / "hls-output.zip").exists()
