from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ResultStatus(str, Enum):
    OK = "ok"
    PARSE_ERROR = "parse_error"
    UNAVAILABLE = "unavailable"
    RATE_LIMITED = "rate_limited"


class CollaboratorResult(BaseModel, Generic[T]):
    """Decoded collaborator answer. `payload` is only set when status is OK."""

    collaborator: str
    status: ResultStatus
    payload: T | None = None
    error: str | None = None
    attempts: int = 1
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.OK and self.payload is not None
