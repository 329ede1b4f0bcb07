"""yt-dlp backed extraction engine."""

from mediagrab.providers.commands import CommandBuilder, Operation
from mediagrab.providers.direct import DirectFetcher
from mediagrab.providers.domains import DomainClassifier
from mediagrab.providers.downloader import DownloadOrchestrator
from mediagrab.providers.exceptions import (
    AvailabilityError,
    EmptyOrMissingFileError,
    ExtractionError,
    ExtractorNotFoundError,
    InvalidAudioFormatError,
    InvalidRequestError,
    InvalidURLError,
    MalformedOutputError,
    MediaError,
    MediaFetchError,
    NonZeroExitError,
    OperationTimeoutError,
)
from mediagrab.providers.formats import select_formats
from mediagrab.providers.metadata import MetadataExtractor

__all__ = [
    "CommandBuilder",
    "DirectFetcher",
    "DomainClassifier",
    "DownloadOrchestrator",
    "MetadataExtractor",
    "Operation",
    "select_formats",
    "MediaError",
    "AvailabilityError",
    "InvalidRequestError",
    "InvalidURLError",
    "InvalidAudioFormatError",
    "ExtractionError",
    "ExtractorNotFoundError",
    "MalformedOutputError",
    "NonZeroExitError",
    "EmptyOrMissingFileError",
    "OperationTimeoutError",
    "MediaFetchError",
]
