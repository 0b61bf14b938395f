# Overview: Tagged result type returned by the order core's public operations.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

from .errors import PosError

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    data: T
    message: str | None = None
    success = True

    def to_dict(self, serialize=None) -> dict:
        payload = self.data
        if serialize is not None:
            payload = serialize(payload)
        out = {"success": True, "data": payload}
        if self.message:
            out["message"] = self.message
        return out

    def to_response(self, serialize=None, status: int = 200) -> tuple[dict, int]:
        return self.to_dict(serialize), status


@dataclass(frozen=True)
class Failure:
    error: str
    message: str
    details: dict = field(default_factory=dict)
    http_status: int = 400
    success = False

    @classmethod
    def from_exception(cls, exc: PosError) -> "Failure":
        return cls(
            error=exc.code,
            message=exc.message,
            details=dict(exc.details),
            http_status=exc.http_status,
        )

    def to_dict(self, serialize=None) -> dict:
        out: dict[str, Any] = {"success": False, "error": self.error, "message": self.message}
        if self.details:
            out["details"] = self.details
        return out

    def to_response(self, serialize=None, status: int | None = None) -> tuple[dict, int]:
        return self.to_dict(), self.http_status


Result = Union[Success[T], Failure]
