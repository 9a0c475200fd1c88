from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    SETTINGS_INVALID = "settings_invalid"
    RESOURCE_VALIDATION_FAILED = "resource_validation_failed"
    MISSING_MANIFEST = "missing_manifest"
    MISSING_HASH = "missing_hash"
    INTEGRITY_FAILED = "integrity_failed"
    IO_FAILURE = "io_failure"

    @property
    def is_package_corrupt(self) -> bool:
        return self in (ErrorKind.MISSING_MANIFEST, ErrorKind.MISSING_HASH, ErrorKind.INTEGRITY_FAILED)


class StridePackError(Exception):
    def __init__(self, kind: ErrorKind, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = list(details or [])

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, "details": list(self.details)}


@dataclass
class Outcome(Generic[T]):
    """
    Result of an export/import call: either a value, or an error kind with
    every violated condition listed in details.
    """

    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    summary: str = ""
    details: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        if self.ok:
            return ""
        if not self.details:
            return self.summary
        body = "\n".join(f"  - {d}" for d in self.details)
        return f"{self.summary}\n{body}" if self.summary else body

    @classmethod
    def success(cls, value: Any) -> "Outcome":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, summary: str, details: Optional[List[str]] = None) -> "Outcome":
        return cls(error=kind, summary=summary, details=list(details or []))

    def unwrap(self) -> T:
        if self.error is not None:
            raise StridePackError(self.error, self.message, self.details)
        return self.value  # type: ignore[return-value]
