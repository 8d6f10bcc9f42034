from __future__ import annotations

import re
from pathlib import Path

from version_uploader.domain.errors import ValidationError
from version_uploader.domain.upload import PLATFORM_EXTENSIONS, Platform, UploadMetadata

_SEMVER_PATTERN = re.compile(r"^\d+\.\d+\.\d+$")


def validate_version_string(version: str) -> None:
    if not _SEMVER_PATTERN.match(version or ""):
        raise ValidationError("version must use the MAJOR.MINOR.PATCH format", version=version)


def validate_upload(
    *,
    file_name: str,
    file_size: int,
    chunk_size: int,
    metadata: UploadMetadata,
    max_file_size: int,
) -> None:
    """Reject bad input before anything is sent over the wire."""
    if file_size <= 0:
        raise ValidationError("file is empty", file_name=file_name)
    if chunk_size <= 0:
        raise ValidationError("chunk size must be positive", chunk_size=chunk_size)
    if file_size > max_file_size:
        raise ValidationError(
            "file exceeds the maximum upload size",
            file_name=file_name,
            file_size=file_size,
            max_file_size=max_file_size,
        )

    try:
        platform = Platform(metadata.platform)
    except ValueError as exc:
        raise ValidationError(
            "unsupported platform", platform=str(metadata.platform)
        ) from exc

    expected = PLATFORM_EXTENSIONS[platform]
    if Path(file_name).suffix.lower() != expected:
        raise ValidationError(
            f"{platform.value} uploads require a {expected} file", file_name=file_name
        )

    if not metadata.app_identifier:
        raise ValidationError("app identifier is required")
    validate_version_string(metadata.version)
    if metadata.version_code < 1:
        raise ValidationError(
            "version code must be >= 1", version_code=metadata.version_code
        )
