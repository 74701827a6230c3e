"""Public package interface for the transcoder."""
from .archive import DEFAULT_ARCHIVE_NAME, UPLOADS_DIRNAME, ArchiveAssembler
from .config import (
    AudioEncodingOptions,
    DEFAULT_QUALITY_LADDER,
    EncoderSettings,
    HlsOptions,
    QualityLevel,
    parse_quality_ladder,
)
from .encoder import VariantEncoder, VariantResult
from .exceptions import (
    ArchiveFailure,
    EncodeFailure,
    EncodeLaunchFailure,
    PackageBuildFailure,
    TranscoderError,
)
from .packager import (
    PackageBuilder,
    PackageFile,
    PackageResult,
    assign_package_folders,
    package_folder_name,
)

__all__ = [
    "ArchiveAssembler",
    "ArchiveFailure",
    "AudioEncodingOptions",
    "DEFAULT_ARCHIVE_NAME",
    "DEFAULT_QUALITY_LADDER",
    "EncodeFailure",
    "EncodeLaunchFailure",
    "EncoderSettings",
    "HlsOptions",
    "PackageBuildFailure",
    "PackageBuilder",
    "PackageFile",
    "PackageResult",
    "QualityLevel",
    "TranscoderError",
    "UPLOADS_DIRNAME",
    "VariantEncoder",
    "VariantResult",
    "assign_package_folders",
    "package_folder_name",
    "parse_quality_ladder",
]
