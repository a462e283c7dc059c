from loguru import logger

from neurofeed.core.config import settings
from neurofeed.core.constants import DECAY_DELTA_FLOOR, MAX_TAG_WEIGHT, PRUNE_THRESHOLD
from neurofeed.models.adjustment import DecaySuggestion, TagAdjustment, TagCategory
from neurofeed.models.profile import UserProfile, WeightedTag
from neurofeed.services.tags import canonicalize


def _find(entries: list[WeightedTag], key: str) -> WeightedTag | None:
    for entry in entries:
        if canonicalize(entry.tag) == key:
            return entry
    return None


def _remove(entries: list[WeightedTag], key: str) -> list[WeightedTag]:
    return [entry for entry in entries if canonicalize(entry.tag) != key]


def _prune(entries: list[WeightedTag]) -> list[WeightedTag]:
    return [entry for entry in entries if entry.weight > PRUNE_THRESHOLD]


def _add(entries: list[WeightedTag], tag: str, key: str, delta: float) -> list[WeightedTag]:
    """Add delta to the matching entry, or create one when the delta is positive."""
    existing = _find(entries, key)
    if existing is None:
        if delta > 0:
            entries.append(WeightedTag(tag=tag, weight=min(delta, MAX_TAG_WEIGHT)))
        return entries
    # Floored at zero here; pruning drops it at the end of the batch
    existing.weight = max(0.0, min(existing.weight + delta, MAX_TAG_WEIGHT))
    return entries


class ProfileStateManager:
    """
    The only writer of UserProfile tag lists.

    Every operation returns a new profile and leaves the input untouched. Two
    invariants hold on every returned profile: a canonical tag is in at most one
    of interests/dislikes, and every weight is in (PRUNE_THRESHOLD, MAX_TAG_WEIGHT].
    """

    def __init__(
        self,
        min_feedback_events: int = settings.DECAY_MIN_FEEDBACK_EVENTS,
        min_interests: int = settings.DECAY_MIN_INTERESTS,
    ):
        self.min_feedback_events = min_feedback_events
        self.min_interests = min_interests

    def apply_adjustments(self, profile: UserProfile, adjustments: list[TagAdjustment]) -> UserProfile:
        updated = profile.model_copy(deep=True)
        interests = updated.interests
        dislikes = updated.dislikes

        for adj in adjustments:
            key = canonicalize(adj.tag)
            if not key:
                logger.debug(f"Skipping adjustment with empty tag key: {adj.tag!r}")
                continue
            if adj.category == TagCategory.INTEREST:
                # Something just declared likable cannot stay disliked
                dislikes = _remove(dislikes, key)
                interests = _add(interests, adj.tag, key, adj.delta)
            else:
                interests = _remove(interests, key)
                dislikes = _add(dislikes, adj.tag, key, abs(adj.delta))

        updated.interests = _prune(interests)
        updated.dislikes = _prune(dislikes)
        return self._finalize(profile, updated)

    def can_decay(self, profile: UserProfile, feedback_count: int) -> bool:
        return feedback_count >= self.min_feedback_events and len(profile.interests) >= self.min_interests

    def apply_decay(
        self, profile: UserProfile, suggestions: list[DecaySuggestion], feedback_count: int
    ) -> UserProfile:
        if not self.can_decay(profile, feedback_count):
            logger.debug(
                f"Decay gated: feedback_count={feedback_count}, interests={len(profile.interests)}"
            )
            return profile

        updated = profile.model_copy(deep=True)
        for suggestion in suggestions:
            key = canonicalize(suggestion.tag)
            entry = _find(updated.interests, key) if key else None
            if entry is None:
                continue
            delta = max(DECAY_DELTA_FLOOR, min(0.0, -abs(suggestion.delta)))
            entry.weight = max(entry.weight + delta, 0.0)

        updated.interests = _prune(updated.interests)
        return self._finalize(profile, updated)

    def reset(self, profile: UserProfile, default: UserProfile) -> UserProfile:
        fresh = default.model_copy(deep=True)
        fresh.version = profile.version + 1
        return fresh

    @staticmethod
    def _finalize(before: UserProfile, after: UserProfile) -> UserProfile:
        if after.same_tags(before):
            return before
        after.version = before.version + 1
        return after


profile_state_manager = ProfileStateManager()
