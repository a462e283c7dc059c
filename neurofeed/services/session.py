from collections import deque
from collections.abc import MutableMapping
from dataclasses import dataclass, field

from cachetools import LRUCache

from neurofeed.core.config import settings
from neurofeed.models.pipeline import PipelineRun
from neurofeed.models.post import Post
from neurofeed.models.profile import UserProfile
from neurofeed.services.event_log import EventLog


@dataclass
class SessionState:
    """
    Everything one session's pipeline reads and writes, owned by its orchestrator.

    `profile` is replaced wholesale on every mutation, never edited in place.
    `runs` keeps only the most recent RUN_HISTORY_LIMIT runs.
    """

    session_id: str
    profile: UserProfile
    displayed: list[Post] = field(default_factory=list)
    feedback_count: int = 0
    feedback_history: deque[str] = field(default_factory=lambda: deque(maxlen=settings.FEEDBACK_HISTORY_LIMIT))
    runs: MutableMapping[str, PipelineRun] = field(default_factory=lambda: LRUCache(maxsize=settings.RUN_HISTORY_LIMIT))
    held: dict[str, list[Post]] = field(default_factory=dict)
    log: EventLog = field(init=False)

    def __post_init__(self):
        self.log = EventLog(self.session_id)

    @property
    def version(self) -> int:
        return self.profile.version

    def record_feedback(self, text: str) -> None:
        self.feedback_count += 1
        self.feedback_history.append(text)

    def recent_feedback(self, size: int) -> list[str]:
        return list(self.feedback_history)[-size:]
