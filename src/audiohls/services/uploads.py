"""Stage multipart uploads on disk before they are handed to the engine."""
from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Iterable, List, Sequence

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..engine import SourceFile

LOGGER = logging.getLogger(__name__)

ALLOWED_MIMETYPES = frozenset({"audio/mpeg", "audio/mp3"})
DEFAULT_ALLOWED_EXTENSIONS = (".mp3",)


class UploadRejected(ValueError):
    """Raised when an upload cannot be accepted."""


def original_filename(storage: FileStorage) -> str:
    """Return the client-supplied name without any directory components."""

    raw = (storage.filename or "").strip()
    name = PureWindowsPath(PurePosixPath(raw).name).name
    return name


def is_allowed(storage: FileStorage, allowed_extensions: Sequence[str] = DEFAULT_ALLOWED_EXTENSIONS) -> bool:
    name = original_filename(storage).lower()
    if any(name.endswith(ext.lower()) for ext in allowed_extensions):
        return True
    return (storage.mimetype or "").lower() in ALLOWED_MIMETYPES


def stage_uploads(
    storages: Iterable[FileStorage],
    destination: Path,
    *,
    max_file_size: int,
    allowed_extensions: Sequence[str] = DEFAULT_ALLOWED_EXTENSIONS,
) -> List[SourceFile]:
    """Save each upload under ``destination`` and describe it as a source file.

    Files are written under sanitised names; the client name is preserved on
    the returned :class:`SourceFile`. Callers own cleanup of ``destination``
    when this raises.
    """

    uploads = [storage for storage in storages if storage is not None and storage.filename]
    if not uploads:
        raise UploadRejected("No files uploaded")

    seen: set[str] = set()
    for storage in uploads:
        name = original_filename(storage)
        if not name:
            raise UploadRejected("Uploaded file has no name")
        if not is_allowed(storage, allowed_extensions):
            raise UploadRejected(f"Only MP3 files are allowed: {name}")
        if name in seen:
            raise UploadRejected(f"Duplicate file name: {name}")
        seen.add(name)

    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)

    staged: List[SourceFile] = []
    used: set[str] = set()
    for index, storage in enumerate(uploads):
        name = original_filename(storage)
        stored_name = secure_filename(name) or f"upload-{index}.mp3"
        if stored_name in used:
            stored_name = f"{index}-{stored_name}"
        used.add(stored_name)

        target = destination / stored_name
        storage.save(target)
        size = target.stat().st_size
        if size == 0:
            raise UploadRejected(f"Uploaded file is empty: {name}")
        if max_file_size and size > max_file_size:
            raise UploadRejected(f"File too large: {name} ({size} bytes, limit {max_file_size} bytes)")
        staged.append(SourceFile(original_name=name, path=target, size=size))

    LOGGER.info("Staged %d upload(s) in %s", len(staged), destination)
    return staged


__all__ = [
    "ALLOWED_MIMETYPES",
    "DEFAULT_ALLOWED_EXTENSIONS",
    "UploadRejected",
    "is_allowed",
    "original_filename",
    "stage_uploads",
]
