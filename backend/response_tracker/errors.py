from enum import Enum
from typing import Any, NamedTuple, Optional


class DataError(str, Enum):
    ALREADY_EXISTS = "already_exists"
    READ_FAILED = "read_failed"
    WRITE_FAILED = "write_failed"
    CLEAR_FAILED = "clear_failed"
    EXPORT_FAILED = "export_failed"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    DataError.ALREADY_EXISTS: "Emergency type already exists",
    DataError.READ_FAILED: "Error reading data",
    DataError.WRITE_FAILED: "Data could not be saved!",
    DataError.CLEAR_FAILED: "Data could not be cleared",
    DataError.EXPORT_FAILED: "Error exporting data",
}


class DataStoreError(Exception):
    """Raised by read paths when the store cannot be read."""

    def __init__(self, kind: DataError, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        super().__init__(detail or kind.message)


class DataResult(NamedTuple):
    """
    Outcome of a store mutation or export.

    `value` carries the created/updated entity (or export path) on success.
    """

    success: bool
    error: Optional[DataError] = None
    value: Any = None

    @classmethod
    def ok(cls, value: Any = None) -> "DataResult":
        return cls(True, None, value)

    @classmethod
    def fail(cls, error: DataError) -> "DataResult":
        return cls(False, error, None)

    def __bool__(self) -> bool:
        return self.success
