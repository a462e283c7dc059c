from pydantic import BaseModel, ConfigDict, Field


class LocalizedText(BaseModel):
    en: str = ""
    zh: str = ""

    def text(self, language: str = "en") -> str:
        """Return the requested language, falling back to whichever side is filled."""
        value = self.zh if language.lower().startswith("zh") else self.en
        return value or self.en or self.zh


class Post(BaseModel):
    """
    A catalog item. Everything except `score` and `reason` is fixed at load time;
    those two are recomputed on every ranking pass and live only on copies.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: LocalizedText
    content: LocalizedText = Field(default_factory=LocalizedText)
    author: str = ""
    tags: list[str] = Field(default_factory=list)
    # How central each topic is to this specific post
    tag_weights: dict[str, float] = Field(default_factory=dict, alias="tagWeights")
    likes: int = 0
    image_url: str = Field(default="", alias="imageUrl")

    score: float | None = None
    reason: list[str] = Field(default_factory=list)

    def relevance(self, tag: str) -> float:
        return float(self.tag_weights.get(tag, 1.0))
