"""Domain exceptions raised by services and mapped to HTTP responses in main."""

from typing import Any


class EmdrError(Exception):
    """Base class for application errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidProtocolTypeError(EmdrError, ValueError):
    """Unknown protocol type tag. Indicates a programming error."""

    status_code = 400

    def __init__(self, value: Any):
        super().__init__(f"Unknown protocol type: {value!r}")
        self.value = value


class ProtocolValidationError(EmdrError):
    """Draft failed validation before persistence."""

    status_code = 422

    def __init__(
        self,
        errors: dict[str, str],
        missing_fields: list[str],
        message: str = "Protokoll ist unvollständig",
    ):
        super().__init__(message)
        self.errors = errors
        self.missing_fields = missing_fields


class StorageError(EmdrError):
    """Underlying storage could not be read or written."""

    status_code = 500


class StaleIndexError(StorageError):
    """Record was written but the summary index update failed.

    The caller should re-list to reconcile.
    """


class ExportError(EmdrError):
    """PDF or JSON export could not be produced."""

    status_code = 500


class DurchgangLimitError(EmdrError):
    """A CIPOS protocol already holds the maximum number of passes."""

    status_code = 400
