"""Custom exceptions raised by the transcoder package."""
from __future__ import annotations

from typing import Optional, Sequence


class TranscoderError(RuntimeError):
    """Base error for the transcoder package."""


class EncodeLaunchFailure(TranscoderError):
    """Raised when the FFmpeg process cannot be started at all."""


class EncodeFailure(TranscoderError):
    """Raised when FFmpeg runs but exits with a non-zero status."""

    def __init__(self, returncode: int, stderr_tail: Sequence[str] = ()) -> None:
        self.returncode = returncode
        self.stderr_tail = tuple(stderr_tail)
        detail = "\n".join(self.stderr_tail).strip()
        message = f"FFmpeg exited with code {returncode}"
        if detail:
            message = f"{message}: {detail[-200:]}"
        super().__init__(message)


class PackageBuildFailure(TranscoderError):
    """Raised when any variant of a source file fails to encode."""

    def __init__(self, file_name: str, variant: Optional[str], cause: BaseException) -> None:
        self.file_name = file_name
        self.variant = variant
        where = f" (variant {variant})" if variant else ""
        super().__init__(f"Failed to package {file_name}{where}: {cause}")


class ArchiveFailure(TranscoderError):
    """Raised when the job archive cannot be written."""


__all__ = [
    "ArchiveFailure",
    "EncodeFailure",
    "EncodeLaunchFailure",
    "PackageBuildFailure",
    "TranscoderError",
]
