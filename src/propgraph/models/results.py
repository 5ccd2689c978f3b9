"""Discriminated result returned across the service boundary."""

from dataclasses import dataclass
from typing import Generic, TypeVar

from propgraph.errors import PropGraphError

T = TypeVar("T")


@dataclass
class ActionResult(Generic[T]):
    """Either ``data`` (success) or ``error`` + ``code`` (failure)."""

    data: T | None = None
    error: str | None = None
    code: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T) -> "ActionResult[T]":
        return cls(data=data)

    @classmethod
    def failure(cls, exc: PropGraphError) -> "ActionResult[T]":
        return cls(error=exc.message, code=exc.code)
