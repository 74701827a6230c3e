"""FFmpeg-based HLS encoder for a single quality variant."""
from __future__ import annotations

import logging
import shlex
import subprocess
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import List

from .config import EncoderSettings, QualityLevel
from .exceptions import EncodeFailure, EncodeLaunchFailure

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VariantResult:
    """Artifacts produced for one quality level of one source file."""

    label: str
    bitrate: int
    bandwidth: int
    segment_count: int
    playlist: Path

    def describe(self) -> dict[str, object]:
        return {
            "label": self.label,
            "bitrate": self.bitrate,
            "bandwidth": self.bandwidth,
            "segment_count": self.segment_count,
        }


class VariantEncoder:
    """Build and run the FFmpeg command that produces one HLS variant."""

    def __init__(self, settings: EncoderSettings) -> None:
        self.settings = settings

    def build_command(self, source: Path, output_dir: Path, level: QualityLevel) -> List[str]:
        """Construct the FFmpeg CLI command for ``level``."""

        settings = self.settings
        audio = settings.audio
        hls = settings.hls
        cmd: List[str] = [settings.ffmpeg_binary, "-hide_banner", "-y"]
        cmd.extend(["-i", str(source), "-vn"])
        cmd.extend(["-c:a", audio.codec, "-b:a", level.bitrate])
        cmd.extend(["-ar", str(audio.sample_rate), "-ac", str(audio.channels)])
        cmd.extend(str(arg) for arg in audio.extra_args)
        cmd.extend([
            "-f",
            "hls",
            "-hls_time",
            str(hls.segment_duration),
            "-hls_list_size",
            str(hls.list_size),
            "-hls_segment_filename",
            str(output_dir / hls.segment_pattern),
        ])
        if hls.flags:
            cmd.extend(["-hls_flags", hls.flags])
        cmd.append(str(output_dir / hls.playlist_name))
        return cmd

    def encode(self, source: Path, output_dir: Path, level: QualityLevel) -> VariantResult:
        """Run FFmpeg to completion and return the produced variant metadata."""

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        command = self.build_command(Path(source), output_dir, level)
        LOGGER.info("Running FFmpeg: %s", shlex.join(command))

        tail: deque[str] = deque(maxlen=self.settings.stderr_tail_lines)
        try:
            process = subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            LOGGER.error("Unable to launch FFmpeg binary '%s': %s", self.settings.ffmpeg_binary, exc)
            raise EncodeLaunchFailure(
                f"Unable to launch {self.settings.ffmpeg_binary}: {exc}"
            ) from exc

        with process:
            assert process.stderr is not None
            for line in process.stderr:
                stripped = line.rstrip()
                if stripped:
                    tail.append(stripped)
            returncode = process.wait()

        if returncode != 0:
            LOGGER.error(
                "FFmpeg failed for %s at %s (exit=%s): %s",
                source,
                level.label,
                returncode,
                "\n".join(tail)[-500:],
            )
            raise EncodeFailure(returncode, tail)

        segment_count = self.count_segments(output_dir)
        LOGGER.info("Encoded %s at %s (%d segments)", Path(source).name, level.label, segment_count)
        return VariantResult(
            label=level.label,
            bitrate=level.bitrate_bps,
            bandwidth=level.bandwidth,
            segment_count=segment_count,
            playlist=output_dir / self.settings.hls.playlist_name,
        )

    def count_segments(self, output_dir: Path) -> int:
        extension = self.settings.hls.segment_extension
        return sum(1 for path in Path(output_dir).glob(f"*{extension}") if path.is_file())

    def dry_run(self, source: Path, output_dir: Path, level: QualityLevel) -> str:
        """Return a shell-escaped command string without executing it."""

        return shlex.join(self.build_command(Path(source), Path(output_dir), level))


__all__ = ["VariantEncoder", "VariantResult"]
