"""Configuration objects for the HLS audio transcoder."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Tuple

_BITRATE_PATTERN = re.compile(r"^\s*(\d+)\s*([kKmM]?)\s*$")

# Advertised bandwidth covers MPEG-TS container overhead on top of the audio bitrate.
BANDWIDTH_OVERHEAD = 1.10


def parse_bitrate(value: str) -> int:
    """Return the numeric bits-per-second value for an ffmpeg bitrate string."""

    match = _BITRATE_PATTERN.match(str(value))
    if not match:
        raise ValueError(f"Invalid bitrate: {value!r}")
    number, unit = match.groups()
    multiplier = {"": 1, "k": 1000, "m": 1_000_000}[unit.lower()]
    bps = int(number) * multiplier
    if bps <= 0:
        raise ValueError(f"Bitrate must be positive: {value!r}")
    return bps


@dataclass(frozen=True, slots=True)
class QualityLevel:
    """One rung of the quality ladder."""

    label: str
    bitrate: str
    bandwidth: int

    @property
    def bitrate_bps(self) -> int:
        return parse_bitrate(self.bitrate)

    @classmethod
    def from_bitrate(cls, bitrate: str, label: Optional[str] = None) -> "QualityLevel":
        bps = parse_bitrate(bitrate)
        normalized = f"{bps // 1000}k" if bps % 1000 == 0 else str(bps)
        return cls(
            label=label or normalized,
            bitrate=normalized,
            bandwidth=int(round(bps * BANDWIDTH_OVERHEAD)),
        )

    def describe(self) -> dict[str, object]:
        return {
            "label": self.label,
            "bitrate": self.bitrate_bps,
            "bandwidth": self.bandwidth,
        }


DEFAULT_QUALITY_LADDER: Tuple[QualityLevel, ...] = (
    QualityLevel.from_bitrate("64k"),
    QualityLevel.from_bitrate("128k"),
    QualityLevel.from_bitrate("256k"),
)


def parse_quality_ladder(raw: str | Iterable[str]) -> Tuple[QualityLevel, ...]:
    """Build a ladder from ``"64k,128k,256k"`` (or an iterable of bitrates).

    Levels are ordered from the lowest to the highest bitrate.
    """

    if isinstance(raw, str):
        entries = [piece.strip() for piece in raw.split(",") if piece.strip()]
    else:
        entries = [str(piece).strip() for piece in raw if str(piece).strip()]
    if not entries:
        raise ValueError("Quality ladder must contain at least one bitrate")

    levels = [QualityLevel.from_bitrate(entry) for entry in entries]
    seen: set[int] = set()
    for level in levels:
        if level.bitrate_bps in seen:
            raise ValueError(f"Duplicate bitrate in quality ladder: {level.bitrate}")
        seen.add(level.bitrate_bps)
    return tuple(sorted(levels, key=lambda level: level.bitrate_bps))


@dataclass(slots=True)
class AudioEncodingOptions:
    """Settings for how the audio stream of every variant is encoded."""

    codec: str = "aac"
    sample_rate: int = 44100
    channels: int = 2
    codec_tag: str = "mp4a.40.2"
    extra_args: Sequence[str] = field(default_factory=tuple)


@dataclass(slots=True)
class HlsOptions:
    """Settings that control the HLS segmenter and playlist layout."""

    segment_duration: int = 10
    list_size: int = 0
    flags: Optional[str] = "independent_segments"
    segment_pattern: str = "segment_%03d.ts"
    segment_extension: str = ".ts"
    playlist_name: str = "playlist.m3u8"
    master_name: str = "master.m3u8"
    version: int = 3


@dataclass(slots=True)
class EncoderSettings:
    """High level configuration shared by every encode in the service."""

    ffmpeg_binary: str = "ffmpeg"
    audio: AudioEncodingOptions = field(default_factory=AudioEncodingOptions)
    hls: HlsOptions = field(default_factory=HlsOptions)
    ladder: Tuple[QualityLevel, ...] = DEFAULT_QUALITY_LADDER
    stderr_tail_lines: int = 20

    def __post_init__(self) -> None:
        self.ladder = tuple(self.ladder)
        if not self.ladder:
            raise ValueError("Quality ladder must contain at least one level")
        self.stderr_tail_lines = max(1, int(self.stderr_tail_lines))
        self.hls.segment_duration = max(1, int(self.hls.segment_duration))

    def describe(self) -> dict[str, object]:
        """Return the public HLS configuration advertised by ``/api/info``."""

        return {
            "segment_duration": self.hls.segment_duration,
            "audio_codec": self.audio.codec,
            "sample_rate": self.audio.sample_rate,
            "channels": self.audio.channels,
            "quality_ladder": [level.describe() for level in self.ladder],
        }


__all__ = [
    "AudioEncodingOptions",
    "DEFAULT_QUALITY_LADDER",
    "EncoderSettings",
    "HlsOptions",
    "QualityLevel",
    "parse_bitrate",
    "parse_quality_ladder",
]
