import asyncio
import json
import time
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from neurofeed.core.config import settings
from neurofeed.core.exceptions import CollaboratorUnavailable, MalformedResponse, RateLimited
from neurofeed.models.result import CollaboratorResult, ResultStatus

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class Collaborator(ABC, Generic[ResponseT]):
    """
    Boundary around one fallible external reasoning step.

    Subclasses implement `request`, which returns the raw answer (JSON text or
    an already-parsed dict) or raises one of the collaborator errors. `call`
    adds retry with exponential backoff for rate limits and decodes the answer
    into a tagged result. It never raises.
    """

    name: str = "collaborator"
    response_model: type[ResponseT]

    def __init__(
        self,
        max_attempts: int = settings.COLLABORATOR_MAX_ATTEMPTS,
        backoff_seconds: float = settings.COLLABORATOR_BACKOFF_SECONDS,
    ):
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds

    @abstractmethod
    async def request(self, payload: dict[str, Any]) -> str | dict[str, Any]:
        """Perform the call and return the raw answer."""

    async def call(self, payload: dict[str, Any]) -> CollaboratorResult:
        start = time.perf_counter()
        raw: str | dict[str, Any] | None = None
        attempt = 0

        for attempt in range(1, self.max_attempts + 1):
            try:
                raw = await self.request(payload)
                break
            except RateLimited as e:
                if attempt < self.max_attempts:
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))  # Exponential backoff
                    logger.warning(
                        f"{self.name} rate limited: {e}. Retrying in {wait_time}s... "
                        f"(Attempt {attempt}/{self.max_attempts})"
                    )
                    await asyncio.sleep(wait_time)
                    continue
                logger.error(f"{self.name} still rate limited after {attempt} attempts")
                return self._result(ResultStatus.RATE_LIMITED, start, attempt, error=str(e))
            except MalformedResponse as e:
                logger.warning(f"{self.name} returned a malformed response: {e}")
                return self._result(ResultStatus.PARSE_ERROR, start, attempt, error=str(e))
            except CollaboratorUnavailable as e:
                logger.warning(f"{self.name} unavailable: {e}")
                return self._result(ResultStatus.UNAVAILABLE, start, attempt, error=str(e))
            except Exception as e:
                logger.exception(f"{self.name} failed unexpectedly: {e}")
                return self._result(ResultStatus.UNAVAILABLE, start, attempt, error=str(e))

        try:
            payload_model = self.decode(raw)
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"{self.name} response did not match schema: {e}")
            return self._result(ResultStatus.PARSE_ERROR, start, attempt, error=str(e))

        return self._result(ResultStatus.OK, start, attempt, payload=payload_model)

    def decode(self, raw: str | dict[str, Any] | None) -> ResponseT:
        if isinstance(raw, (str, bytes)):
            raw = json.loads(raw)
        if not isinstance(raw, dict):
            raise TypeError(f"expected a JSON object, got {type(raw).__name__}")
        return self.response_model.model_validate(raw)

    def _result(
        self,
        status: ResultStatus,
        start: float,
        attempts: int,
        payload: ResponseT | None = None,
        error: str | None = None,
    ) -> CollaboratorResult:
        return CollaboratorResult(
            collaborator=self.name,
            status=status,
            payload=payload,
            error=error,
            attempts=attempts,
            elapsed_ms=round((time.perf_counter() - start) * 1000, 1),
        )
