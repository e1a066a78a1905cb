"""
Discriminated operation results for UI-facing calls.

Every ImportService method returns a Result instead of raising, so a caller
(desktop shell, CLI) can branch on ``ok`` and ``error_kind`` without knowing
the exception hierarchy.

    res = service.get_progress(job_id)
    if res.ok:
        show(res.data)
    elif res.error_kind == ErrorKind.NOT_FOUND:
        forget(job_id)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_SETTINGS = "invalid_settings"
    FILE_ERROR = "file_error"
    INTERNAL = "internal"


@dataclass(frozen=True)
class Result(Generic[T]):
    ok: bool
    data: Optional[T] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, data: Optional[T] = None, message: Optional[str] = None) -> "Result[T]":
        return cls(ok=True, data=data, message=message)

    @classmethod
    def failure(cls, error_kind: ErrorKind, message: str) -> "Result[T]":
        return cls(ok=False, error_kind=error_kind, message=message)

    def unwrap(self) -> T:
        """Return ``data`` or raise RuntimeError carrying the failure message."""
        if not self.ok:
            raise RuntimeError(f"{self.error_kind.value}: {self.message}")
        return self.data

    def to_dict(self) -> Dict[str, Any]:
        data = self.data.to_dict() if hasattr(self.data, "to_dict") else self.data
        if self.ok:
            return {"ok": True, "data": data, "message": self.message}
        return {"ok": False, "error_kind": self.error_kind.value, "message": self.message}
