from __future__ import annotations

import base64
from pathlib import Path

import pytest

from audiohls.transcoder import (
    PackageBuildFailure,
    PackageBuilder,
    assign_package_folders,
    package_folder_name,
)


@pytest.mark.parametrize(
    ("original", "expected"),
    [
        ("track.mp3", "track"),
        ("My Song.final.mp3", "My Song.final"),
        ("nested/dir/song.mp3", "song"),
        ("..", "track"),
        ("uploads.mp3", "uploads_package"),
    ],
)
def test_package_folder_name(original: str, expected: str) -> None:
    assert package_folder_name(original) == expected


def test_assign_package_folders_suffixes_collisions() -> None:
    names = ["song.mp3", "song.MP3", "Song.wav", "song_2.mp3", "Uploads.mp3", "other.mp3"]

    assert assign_package_folders(names) == ["song", "song_2", "Song_3", "song_2_2", "Uploads_2", "other"]


def test_build_uses_explicit_folder(builder: PackageBuilder, tmp_path: Path) -> None:
    source = _write_source(tmp_path, "song.MP3")

    result = builder.build(source, "song.MP3", tmp_path / "job", folder="song_2")

    assert result.folder == "song_2"
    assert (tmp_path / "job" / "song_2" / "master.m3u8").is_file()


def _write_source(tmp_path: Path, name: str) -> Path:
    source = tmp_path / name
    source.write_bytes(b"ID3")
    return source


def _master_references(master: Path) -> list[str]:
    return [
        line
        for line in master.read_text(encoding="utf-8").splitlines()
        if line and not line.startswith("#")
    ]


def test_build_writes_master_and_variants(builder: PackageBuilder, tmp_path: Path) -> None:
    source = _write_source(tmp_path, "track.mp3")
    job_dir = tmp_path / "job"

    result = builder.build(source, "track.mp3", job_dir)

    assert result.folder == "track"
    assert result.path == job_dir / "track"
    assert [variant.label for variant in result.variants] == ["64k", "128k", "256k"]
    assert result.segment_count == 9

    master = result.path / "master.m3u8"
    text = master.read_text(encoding="utf-8")
    assert text.startswith("#EXTM3U\n")
    assert "BANDWIDTH=70400,AVERAGE-BANDWIDTH=64000" in text
    assert 'CODECS="mp4a.40.2"' in text

    references = _master_references(master)
    assert references == ["64k/playlist.m3u8", "128k/playlist.m3u8", "256k/playlist.m3u8"]
    for reference in references:
        assert (result.path / reference).is_file()


def test_failed_variant_removes_package(builder: PackageBuilder, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("FAKE_FFMPEG_FAIL_BITRATES", "128k")
    source = _write_source(tmp_path, "track.mp3")
    job_dir = tmp_path / "job"

    with pytest.raises(PackageBuildFailure) as excinfo:
        builder.build(source, "track.mp3", job_dir)

    assert excinfo.value.variant == "128k"
    assert "track.mp3" in str(excinfo.value)
    assert not (job_dir / "track").exists()


def test_collect_files_orders_master_first(builder: PackageBuilder, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("FAKE_FFMPEG_SEGMENTS", "2")
    source = _write_source(tmp_path, "track.mp3")
    result = builder.build(source, "track.mp3", tmp_path / "job")

    files = builder.collect_files(result.path)
    names = [item.name for item in files]

    assert names[0] == "master.m3u8"
    assert names[1:4] == ["64k/playlist.m3u8", "64k/segment_000.ts", "64k/segment_001.ts"]
    assert len(files) == 1 + 3 * (1 + 2)

    by_name = {item.name: item for item in files}
    assert by_name["master.m3u8"].content_type == "application/vnd.apple.mpegurl"
    segment = by_name["256k/segment_001.ts"]
    assert segment.content_type == "video/mp2t"
    decoded = base64.b64decode(segment.data)
    assert decoded == (result.path / "256k" / "segment_001.ts").read_bytes()
    assert segment.size == len(decoded)
