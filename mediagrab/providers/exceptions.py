"""Media extraction exceptions."""

from typing import List, Optional, Sequence


class MediaError(Exception):
    """Base exception for extraction and download errors."""

    pass


class AvailabilityError(MediaError):
    """Raised at startup when a required external tool is missing or broken."""

    def __init__(self, tool: str, message: str):
        self.tool = tool
        super().__init__(f"{tool}: {message}")


class InvalidRequestError(MediaError):
    """Raised when request input is malformed."""

    pass


class InvalidURLError(InvalidRequestError):
    """Raised when the URL is invalid or unsupported."""

    pass


class InvalidAudioFormatError(InvalidRequestError):
    """Raised when the requested audio format is not supported."""

    pass


class ExtractionError(MediaError):
    """Raised when the extractor tool fails to produce a usable result.

    Carries the tail of the captured tool output for diagnosis.
    """

    def __init__(self, message: str, output: Optional[Sequence[str]] = None):
        self.output: List[str] = list(output or [])
        if self.output:
            message = f"{message}\n" + "\n".join(self.output)
        super().__init__(message)


class ExtractorNotFoundError(ExtractionError):
    """Raised when the extractor tool cannot be started."""

    pass


class MalformedOutputError(ExtractionError):
    """Raised when extractor metadata output cannot be parsed."""

    def __init__(self, message: str, excerpt: str = ""):
        self.excerpt = excerpt
        super().__init__(f"{message}: {excerpt}" if excerpt else message)


class NonZeroExitError(ExtractionError):
    """Raised when the extractor exits with a failure status."""

    def __init__(self, exit_status: Optional[int], output: Optional[Sequence[str]] = None):
        self.exit_status = exit_status
        super().__init__(f"Extractor exited with status {exit_status}", output)


class EmptyOrMissingFileError(ExtractionError):
    """Raised when a download finished but produced no usable file."""

    pass


class OperationTimeoutError(MediaError):
    """Raised when a subprocess or a direct fetch exceeds its time bound."""

    def __init__(self, message: str, output: Optional[Sequence[str]] = None):
        self.output: List[str] = list(output or [])
        if self.output:
            message = f"{message}\n" + "\n".join(self.output)
        super().__init__(message)


class MediaFetchError(MediaError):
    """Raised when a direct HTTP fetch fails with a network or disk error."""

    pass
