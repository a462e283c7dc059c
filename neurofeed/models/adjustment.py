from enum import Enum

from pydantic import BaseModel, Field, field_validator

from neurofeed.core.constants import ADJUSTMENT_DELTA_LIMIT


class TagCategory(str, Enum):
    INTEREST = "interest"
    DISLIKE = "dislike"


class TagAdjustment(BaseModel):
    tag: str = Field(description="The tag name to adjust.")
    category: TagCategory = Field(description="Whether this modifies the interest list or the dislike list.")
    delta: float = Field(description="Amount to add or subtract, between -10 and 10.")

    @field_validator("delta")
    @classmethod
    def _clamp_delta(cls, v: float) -> float:
        return max(-ADJUSTMENT_DELTA_LIMIT, min(ADJUSTMENT_DELTA_LIMIT, float(v)))


class DecaySuggestion(BaseModel):
    tag: str
    # Sign is advisory; callers re-derive it
    delta: float


class IntentAnalysis(BaseModel):
    adjustments: list[TagAdjustment] = Field(default_factory=list)
    note: str = Field(default="", description="Brief analysis of the user's intent.")
    search_query: str | None = Field(
        default=None, description="Explicit search phrase if the user asked for something specific."
    )


class RerankResponse(BaseModel):
    ordered_ids: list[str] = Field(default_factory=list, description="Every candidate id exactly once.")
    rationale: str = ""


class CleanupResponse(BaseModel):
    suggestions: list[DecaySuggestion] = Field(default_factory=list)
    rationale: str = ""
