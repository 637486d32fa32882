"""Error types raised by the extraction pipeline.

Only source-level problems (unsupported input, unreachable document) reach
the caller. Everything downstream degrades to partial results instead.
"""


class DochancerError(Exception):
    """Base class for all api-dochancer errors."""


class UnsupportedFormatError(DochancerError):
    """The input's extension, content type or format hint is not supported."""

    def __init__(self, fmt: str):
        self.format = fmt
        super().__init__(f"Unsupported file type: {fmt or '<none>'}")


class DocumentFetchError(DochancerError):
    """The documentation URL could not be fetched."""

    def __init__(self, url: str, message: str = "Failed to fetch documentation from URL"):
        self.url = url
        super().__init__(message)


class EnhancementError(DochancerError):
    """An AI enhancement call failed (transport, quota, malformed answer)."""
