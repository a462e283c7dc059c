from collections import deque
from typing import Any

from loguru import logger

from neurofeed.core.config import settings
from neurofeed.models.pipeline import LogType, SystemLog


class EventLog:
    """Bounded, append-only audit trail of pipeline activity for one session."""

    def __init__(self, session_id: str, limit: int = settings.EVENT_LOG_LIMIT):
        self.session_id = session_id
        self._entries: deque[SystemLog] = deque(maxlen=limit)

    def add(self, type_: LogType, title: str, details: dict[str, Any] | None = None) -> SystemLog:
        entry = SystemLog(type=type_, title=title, details=details or {})
        self._entries.append(entry)
        logger.info(f"[{self.session_id}] {type_.value}: {title}")
        return entry

    def entries(self, limit: int | None = None) -> list[SystemLog]:
        items = list(self._entries)
        return items[-limit:] if limit else items

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
