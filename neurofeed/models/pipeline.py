from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from neurofeed.models.adjustment import TagAdjustment


class PipelineStage(str, Enum):
    IDLE = "idle"
    INTENT_PENDING = "intent_pending"
    PROFILE_UPDATED = "profile_updated"
    HYBRID_BUILT = "hybrid_built"
    RERANK_PENDING = "rerank_pending"
    AUTO_APPLIED = "auto_applied"
    HELD_PENDING = "held_pending"
    CLEANUP_PENDING = "cleanup_pending"


class ApplyState(str, Enum):
    DISPLAYED = "displayed"
    PENDING = "pending"
    APPLIED = "applied"
    STALE = "stale"


class PipelineRun(BaseModel):
    """One feedback-triggered cycle."""

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    feedback: str
    post_id: str
    adjustments: list[TagAdjustment] = Field(default_factory=list)
    note: str = ""
    search_query: str | None = None
    candidate_ids: list[str] = Field(default_factory=list)
    reranked_ids: list[str] | None = None
    base_version: int = 0
    stage: PipelineStage = PipelineStage.IDLE
    apply_state: ApplyState = ApplyState.DISPLAYED
    rerank_elapsed_ms: float | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class LogType(str, Enum):
    FEEDBACK = "FEEDBACK"
    LLM_ANALYSIS = "LLM_ANALYSIS"
    PROFILE_UPDATE = "PROFILE_UPDATE"
    RE_RANK = "RE_RANK"
    CLEANUP = "CLEANUP"


class SystemLog(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    type: LogType
    title: str
    details: dict[str, Any] = Field(default_factory=dict)
