from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ErrorBody(BaseModel):
    kind: str
    message: str
    details: Any = None
    trace: str | None = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: ErrorBody
    correlation_id: str | None = None
