"""ZIP archive assembly for finished transcode jobs."""
from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Iterable

from .exceptions import ArchiveFailure

LOGGER = logging.getLogger(__name__)

UPLOADS_DIRNAME = "uploads"
DEFAULT_ARCHIVE_NAME = "hls-output.zip"


class ArchiveAssembler:
    """Bundle every package folder of a job directory into one archive."""

    def __init__(self, archive_name: str = DEFAULT_ARCHIVE_NAME, *, compresslevel: int = 5) -> None:
        self.archive_name = archive_name
        self.compresslevel = compresslevel

    def package_dirs(self, job_dir: Path, exclude: Iterable[str] = ()) -> list[Path]:
        skipped = {UPLOADS_DIRNAME, *exclude}
        return sorted(
            child
            for child in Path(job_dir).iterdir()
            if child.is_dir() and child.name not in skipped
        )

    def assemble(self, job_dir: Path, exclude: Iterable[str] = ()) -> Path:
        """Write the archive into ``job_dir`` and return its path."""

        job_dir = Path(job_dir)
        archive_path = job_dir / self.archive_name
        try:
            folders = self.package_dirs(job_dir, exclude)
            with zipfile.ZipFile(
                archive_path,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self.compresslevel,
            ) as bundle:
                for folder in folders:
                    bundle.write(folder, folder.name)
                    for path in sorted(folder.rglob("*")):
                        bundle.write(path, path.relative_to(job_dir).as_posix())
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
            LOGGER.error("Failed to create archive %s: %s", archive_path, exc)
            try:
                archive_path.unlink(missing_ok=True)
            except OSError:
                LOGGER.debug("Unable to remove partial archive %s", archive_path, exc_info=True)
            raise ArchiveFailure(f"Failed to create archive: {exc}") from exc

        LOGGER.info(
            "Created archive %s (%d package(s), %d bytes)",
            archive_path,
            len(folders),
            archive_path.stat().st_size,
        )
        return archive_path


__all__ = ["ArchiveAssembler", "DEFAULT_ARCHIVE_NAME", "UPLOADS_DIRNAME"]
