"""Business logic services."""

from songfetch.services.archive_service import Archiver, BundlingError, ZipArchiver
from songfetch.services.conversion_service import (
    ConversionError,
    Converter,
    YtDlpConverter,
)
from songfetch.services.file_service import FileService, safe_filename
from songfetch.services.identity import new_id
from songfetch.services.job_runner import (
    BatchJobRunner,
    UrlValidationError,
    validate_url,
)

__all__ = [
    "Archiver",
    "BatchJobRunner",
    "BundlingError",
    "ConversionError",
    "Converter",
    "FileService",
    "UrlValidationError",
    "YtDlpConverter",
    "ZipArchiver",
    "new_id",
    "safe_filename",
    "validate_url",
]
