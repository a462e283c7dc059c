from pydantic import BaseModel, Field


class WeightedTag(BaseModel):
    tag: str
    weight: float = Field(ge=0.0)


class UserProfile(BaseModel):
    """
    Weighted interests and dislikes for one session.

    `version` moves forward on every effective mutation so in-flight pipeline
    stages can tell whether the profile changed underneath them.
    """

    id: str = "user_001"
    name: str = ""
    bio: str = ""
    interests: list[WeightedTag] = Field(default_factory=list)
    dislikes: list[WeightedTag] = Field(default_factory=list)
    version: int = 0

    def top_interests(self, limit: int = 5) -> list[WeightedTag]:
        """Return top N interests by weight, stable for equal weights."""
        return sorted(self.interests, key=lambda t: t.weight, reverse=True)[:limit]

    def same_tags(self, other: "UserProfile") -> bool:
        return self.interests == other.interests and self.dislikes == other.dislikes

    def serialize_tags(self) -> dict[str, list[dict]]:
        """Two weighted-tag lists, the shape collaborators receive."""
        return {
            "interests": [t.model_dump() for t in self.interests],
            "dislikes": [t.model_dump() for t in self.dislikes],
        }


def default_profile() -> UserProfile:
    return UserProfile(
        id="user_001",
        name="Alex Chen",
        bio="Community college student aiming for a CS transfer. Interested in AI and research.",
        interests=[
            WeightedTag(tag="Community College", weight=10.0),
            WeightedTag(tag="Transfer", weight=10.0),
            WeightedTag(tag="Research", weight=8.0),
            WeightedTag(tag="AI", weight=8.0),
            WeightedTag(tag="Computer Science", weight=6.0),
        ],
    )
