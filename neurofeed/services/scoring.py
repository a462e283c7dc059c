import math

from pydantic import BaseModel

from neurofeed.core.config import settings
from neurofeed.core.constants import NEUTRAL_REASON
from neurofeed.models.post import Post
from neurofeed.models.profile import UserProfile
from neurofeed.services.tags import ProfileMatcher


class ScoringWeights(BaseModel):
    """Tuned heuristics. Exposed so tests and deployments can override them."""

    popularity_weight: float = settings.POPULARITY_WEIGHT
    interest_multiplier: float = settings.INTEREST_MULTIPLIER
    synergy_bonus: float = settings.SYNERGY_BONUS
    dislike_penalty_multiplier: float = settings.DISLIKE_PENALTY_MULTIPLIER
    veto_threshold: float = settings.VETO_THRESHOLD
    veto_base: float = settings.VETO_BASE
    veto_scale: float = settings.VETO_SCALE


class ScoringEngine:
    """
    Scores posts against a profile.

    Additive and deterministic: popularity, weighted interest reward, synergy for
    multi-interest hits, dislike penalty. A dislike whose impact (user dislike
    weight times how central the topic is to the post) crosses the veto
    threshold replaces the score with a large negative sentinel.
    """

    def __init__(self, weights: ScoringWeights | None = None):
        self.weights = weights or ScoringWeights()

    def score(self, post: Post, profile: UserProfile) -> tuple[float, list[str]]:
        value, reasons, _, _ = self._score(post, ProfileMatcher(profile.interests), ProfileMatcher(profile.dislikes))
        return value, reasons

    def rank(self, posts: list[Post], profile: UserProfile) -> list[Post]:
        """
        Score every post and sort descending.

        Vetoed posts always sort after non-vetoed ones and keep their pre-veto
        order among themselves. The sort is stable, so equal scores keep catalog
        order.
        """
        interests = ProfileMatcher(profile.interests)
        dislikes = ProfileMatcher(profile.dislikes)
        keyed = []
        for post in posts:
            value, reasons, vetoed, pre_veto = self._score(post, interests, dislikes)
            keyed.append((vetoed, -pre_veto, post.model_copy(update={"score": value, "reason": reasons})))
        keyed.sort(key=lambda item: (item[0], item[1]))
        return [post for _, _, post in keyed]

    def _score(
        self, post: Post, interests: ProfileMatcher, dislikes: ProfileMatcher
    ) -> tuple[float, list[str], bool, float]:
        w = self.weights
        reasons: list[str] = []

        # 1. Popularity, logarithmic so viral posts don't drown personalization
        score = math.log10(max(post.likes, 0) + 1) * w.popularity_weight

        # 2. Interests
        matched_total = 0.0
        hit_count = 0
        for tag in post.tags:
            interest = interests.best_match(tag)
            if interest is None:
                continue
            relevance = post.relevance(tag)
            matched_total += interest.weight * relevance
            hit_count += 1
            reasons.append(f"interest: {tag} x{relevance:g}")
        score += matched_total * w.interest_multiplier

        # 3. Synergy
        if hit_count > 1:
            bonus = (hit_count - 1) * w.synergy_bonus
            score += bonus
            reasons.append(f"synergy +{bonus:g}")

        # 4. Dislikes
        veto_tag: str | None = None
        veto_impact = 0.0
        for tag in post.tags:
            dislike = dislikes.best_match(tag)
            if dislike is None:
                continue
            impact = dislike.weight * post.relevance(tag)
            score -= impact * w.dislike_penalty_multiplier
            reasons.append(f"dislike: {tag}")
            if impact >= w.veto_threshold and impact > veto_impact:
                veto_tag, veto_impact = tag, impact

        # 5. Veto. The sentinel never rises above veto_base; rank orders vetoed
        # posts by their pre-veto score.
        if veto_tag is not None:
            sentinel = w.veto_base - max(-score, 0.0) * w.veto_scale
            reasons.insert(0, f"blocked by {veto_tag}")
            return sentinel, reasons, True, score

        return score, reasons or [NEUTRAL_REASON], False, score


scoring_engine = ScoringEngine()
