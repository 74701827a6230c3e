from __future__ import annotations

import os
import stat
import sys
import textwrap
from pathlib import Path

import pytest

HERE = Path(__file__).resolve()
SRC_ROOT = HERE.parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from audiohls.engine import JobOrchestrator, JobStore, SourceFile  # noqa: E402
from audiohls.transcoder import (  # noqa: E402
    ArchiveAssembler,
    EncoderSettings,
    PackageBuilder,
    parse_quality_ladder,
)

FAKE_FFMPEG_SCRIPT = textwrap.dedent(
    """
    import os
    import sys

    args = sys.argv[1:]


    def value(flag):
        return args[args.index(flag) + 1] if flag in args else None


    source = value("-i") or ""
    bitrate = value("-b:a") or ""
    pattern = value("-hls_segment_filename")
    playlist = args[-1]

    failing = {item for item in os.environ.get("FAKE_FFMPEG_FAIL_BITRATES", "").split(",") if item}
    if "corrupt" in os.path.basename(source) or bitrate in failing:
        sys.stderr.write("Input #0, mp3, from '%s':\\n" % source)
        sys.stderr.write("Invalid data found when processing input\\n")
        sys.exit(1)

    count = int(os.environ.get("FAKE_FFMPEG_SEGMENTS", "3"))
    lines = ["#EXTM3U", "#EXT-X-VERSION:3", "#EXT-X-TARGETDURATION:10"]
    for index in range(count):
        segment = pattern % index
        with open(segment, "wb") as handle:
            handle.write(("%s-%d" % (bitrate, index)).encode("ascii") * 16)
        lines.append("#EXTINF:10.0,")
        lines.append(os.path.basename(segment))
    lines.append("#EXT-X-ENDLIST")
    with open(playlist, "w") as handle:
        handle.write("\\n".join(lines) + "\\n")
    """
)


@pytest.fixture()
def fake_ffmpeg(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Install an executable that mimics the FFmpeg HLS muxer."""

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "fake_ffmpeg.py"
    script.write_text(FAKE_FFMPEG_SCRIPT, encoding="utf-8")
    wrapper = bin_dir / "ffmpeg"
    wrapper.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n', encoding="utf-8")
    wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    monkeypatch.delenv("FAKE_FFMPEG_FAIL_BITRATES", raising=False)
    monkeypatch.delenv("FAKE_FFMPEG_SEGMENTS", raising=False)
    return wrapper


@pytest.fixture()
def settings(fake_ffmpeg: Path) -> EncoderSettings:
    return EncoderSettings(ffmpeg_binary=str(fake_ffmpeg), ladder=parse_quality_ladder("64k,128k,256k"))


@pytest.fixture()
def builder(settings: EncoderSettings) -> PackageBuilder:
    return PackageBuilder(settings)


@pytest.fixture()
def job_root(tmp_path: Path) -> Path:
    root = tmp_path / "jobs"
    root.mkdir()
    return root


@pytest.fixture()
def store(job_root: Path) -> JobStore:
    return JobStore(job_root)


@pytest.fixture()
def orchestrator(store: JobStore, builder: PackageBuilder):
    engine = JobOrchestrator(store=store, builder=builder, archiver=ArchiveAssembler())
    yield engine
    engine.shutdown()


def stage_sources(job_dir: Path, names: list[str]) -> list[SourceFile]:
    """Write placeholder MP3 uploads into ``job_dir/uploads``."""

    uploads = job_dir / "uploads"
    uploads.mkdir(parents=True, exist_ok=True)
    sources: list[SourceFile] = []
    for name in names:
        path = uploads / name
        path.write_bytes(b"ID3" + os.urandom(32))
        sources.append(SourceFile(original_name=name, path=path, size=path.stat().st_size))
    return sources
