"""Build multi-rate HLS packages from a single source file."""
from __future__ import annotations

import base64
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .archive import UPLOADS_DIRNAME
from .config import AudioEncodingOptions, EncoderSettings, HlsOptions, QualityLevel
from .encoder import VariantEncoder, VariantResult
from .exceptions import EncodeFailure, EncodeLaunchFailure, PackageBuildFailure

LOGGER = logging.getLogger(__name__)

PLAYLIST_CONTENT_TYPE = "application/vnd.apple.mpegurl"
SEGMENT_CONTENT_TYPE = "video/mp2t"


def package_folder_name(original_name: str) -> str:
    """Return the package folder for ``original_name`` (extension stripped)."""

    base = Path(str(original_name).replace("\\", "/")).name
    stem = Path(base).stem
    if stem in {"", ".", ".."}:
        return "track"
    if stem == UPLOADS_DIRNAME:
        return f"{UPLOADS_DIRNAME}_package"
    return stem


def assign_package_folders(original_names: Sequence[str]) -> List[str]:
    """Pick one package folder per name, unique within a job.

    Names that reduce to the same folder (``song.mp3`` and ``song.MP3``) get
    ``_2``, ``_3``... suffixes in submission order. Comparison ignores case so
    archives extract cleanly on case-insensitive filesystems.
    """

    taken: set[str] = {UPLOADS_DIRNAME.casefold()}
    folders: List[str] = []
    for name in original_names:
        base = package_folder_name(name)
        candidate = base
        suffix = 2
        while candidate.casefold() in taken:
            candidate = f"{base}_{suffix}"
            suffix += 1
        taken.add(candidate.casefold())
        folders.append(candidate)
    return folders


@dataclass(slots=True)
class PackageResult:
    """Outcome of a successful package build."""

    folder: str
    path: Path
    segment_count: int
    variants: List[VariantResult] = field(default_factory=list)

    def variant_metadata(self) -> list[dict[str, object]]:
        return [variant.describe() for variant in self.variants]


@dataclass(frozen=True, slots=True)
class PackageFile:
    """A package file read into memory and base64 encoded."""

    name: str
    size: int
    content_type: str
    data: str

    def to_payload(self) -> dict[str, object]:
        return {
            "name": self.name,
            "size": self.size,
            "content_type": self.content_type,
            "data": self.data,
        }


def render_master_playlist(
    variants: Sequence[VariantResult],
    hls: HlsOptions,
    audio: AudioEncodingOptions,
) -> str:
    """Render the master playlist referencing each variant playlist."""

    lines = ["#EXTM3U", f"#EXT-X-VERSION:{hls.version}", "#EXT-X-INDEPENDENT-SEGMENTS"]
    for variant in variants:
        lines.append(
            f"#EXT-X-STREAM-INF:BANDWIDTH={variant.bandwidth},"
            f"AVERAGE-BANDWIDTH={variant.bitrate},"
            f'CODECS="{audio.codec_tag}"'
        )
        lines.append(f"{variant.label}/{hls.playlist_name}")
    return "\n".join(lines) + "\n"


class PackageBuilder:
    """Drive the variant encoder across the quality ladder for one file."""

    def __init__(self, settings: EncoderSettings, encoder: Optional[VariantEncoder] = None) -> None:
        self.settings = settings
        self.encoder = encoder or VariantEncoder(settings)

    @property
    def ladder(self) -> Sequence[QualityLevel]:
        return self.settings.ladder

    def build(
        self,
        source: Path,
        original_name: str,
        destination: Path,
        *,
        folder: Optional[str] = None,
    ) -> PackageResult:
        """Encode every ladder level and write the master playlist.

        The ladder is all-or-nothing: the first variant failure removes the
        partially written package directory and raises
        :class:`PackageBuildFailure`. ``folder`` overrides the folder derived
        from ``original_name``.
        """

        folder = folder or package_folder_name(original_name)
        package_dir = Path(destination) / folder
        package_dir.mkdir(parents=True, exist_ok=True)

        variants: List[VariantResult] = []
        for level in self.ladder:
            try:
                variants.append(self.encoder.encode(Path(source), package_dir / level.label, level))
            except (EncodeFailure, EncodeLaunchFailure) as exc:
                self._discard(package_dir)
                raise PackageBuildFailure(original_name, level.label, exc) from exc

        master_path = package_dir / self.settings.hls.master_name
        master_path.write_text(
            render_master_playlist(variants, self.settings.hls, self.settings.audio),
            encoding="utf-8",
        )
        total_segments = sum(variant.segment_count for variant in variants)
        LOGGER.info(
            "Packaged %s into %s (%d variants, %d segments)",
            original_name,
            package_dir,
            len(variants),
            total_segments,
        )
        return PackageResult(
            folder=folder,
            path=package_dir,
            segment_count=total_segments,
            variants=variants,
        )

    def collect_files(self, package_dir: Path) -> List[PackageFile]:
        """Read a finished package into memory, master playlist first."""

        package_dir = Path(package_dir)
        hls = self.settings.hls
        ordered: List[Path] = [package_dir / hls.master_name]
        for level in self.ladder:
            variant_dir = package_dir / level.label
            ordered.append(variant_dir / hls.playlist_name)
            ordered.extend(sorted(variant_dir.glob(f"*{hls.segment_extension}")))

        files: List[PackageFile] = []
        for path in ordered:
            payload = path.read_bytes()
            files.append(
                PackageFile(
                    name=path.relative_to(package_dir).as_posix(),
                    size=len(payload),
                    content_type=PLAYLIST_CONTENT_TYPE if path.suffix == ".m3u8" else SEGMENT_CONTENT_TYPE,
                    data=base64.b64encode(payload).decode("ascii"),
                )
            )
        return files

    @staticmethod
    def _discard(package_dir: Path) -> None:
        try:
            shutil.rmtree(package_dir)
        except FileNotFoundError:
            return
        except OSError as exc:
            LOGGER.warning("Failed to remove partial package %s: %s", package_dir, exc)
        else:
            LOGGER.info("Removed partial package %s", package_dir)


__all__ = [
    "PackageBuilder",
    "PackageFile",
    "PackageResult",
    "assign_package_folders",
    "package_folder_name",
    "render_master_playlist",
]
