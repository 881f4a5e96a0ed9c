from typing import Optional


class UploadError(Exception):
    """Base class for every error raised by the uploader."""


class InvalidConfigurationError(UploadError):
    pass


ConfigurationError = InvalidConfigurationError


class TransportError(UploadError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(UploadError):
    pass


class PartUploadError(UploadError):
    """A single part kept failing after every attempt."""

    def __init__(self, part_number: int, attempts: int, cause: Optional[Exception] = None):
        super().__init__(f"Part {part_number} failed after {attempts} attempts: {cause}")
        self.part_number = part_number
        self.attempts = attempts
        self.cause = cause


class InvalidStateError(UploadError):
    pass


class UploadFailedError(UploadError):
    """Surfaced to the caller when a session cannot be completed."""
