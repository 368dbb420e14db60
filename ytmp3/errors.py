"""
Error taxonomy for conversion jobs.

Each error carries the HTTP status it maps to at the request boundary and a
short client-safe message. Paths and extractor stderr stay in the logs.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(ServiceError):
    """Bad or missing URL in the request."""
    status_code = 400


class MetadataError(ServiceError):
    """Metadata call failed, or returned nothing usable."""

    def __init__(self, message: str, details: str | None = None, empty: bool = False):
        super().__init__(message, details)
        self.empty = empty
        self.status_code = 404 if empty else 500


class ExtractionError(ServiceError):
    """One extractor invocation failed."""


class NoOutputError(ExtractionError):
    """The extractor exited cleanly but no audio file appeared."""
    status_code = 404


class PackagingError(ServiceError):
    pass


class MissingFileError(ServiceError):
    """An archive entry vanished before it could be packaged."""

    def __init__(self, path: str):
        super().__init__("File missing at packaging time")
        self.path = path


class StreamingError(ServiceError):
    """Transmission failed after headers were sent; logged only."""


class FilesystemError(ServiceError):
    pass


class BusyError(ServiceError):
    status_code = 429
