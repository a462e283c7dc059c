import re
import unicodedata
from collections import Counter
from collections.abc import Iterable

from neurofeed.models.post import Post
from neurofeed.models.profile import WeightedTag

_WHITESPACE = re.compile(r"\s+")
# Letters, marks, numbers. Everything else (emoji, dingbats, punctuation) is decoration.
_KEPT_CATEGORIES = ("L", "M", "N")


def canonicalize(tag) -> str:
    """
    Map a tag to its comparison key.

    "🎮 Gaming!", "gaming" and " GAMING " all become "gaming". Script characters
    (CJK etc.) are preserved. Never raises; unusable input gives "".
    """
    if not isinstance(tag, str) or not tag:
        return ""
    text = unicodedata.normalize("NFKC", tag)
    chars = []
    for ch in text:
        if ch.isspace():
            chars.append(" ")
        elif unicodedata.category(ch)[0] in _KEPT_CATEGORIES:
            chars.append(ch)
        else:
            chars.append(" ")
    return _WHITESPACE.sub(" ", "".join(chars)).casefold().strip()


def same_tag(a: str, b: str) -> bool:
    """Exact canonical equality. Used for duplicate detection inside a profile."""
    key = canonicalize(a)
    return bool(key) and key == canonicalize(b)


def keys_match(a_key: str, b_key: str) -> bool:
    """Loose match between a profile key and a post key: equal or one contains the other."""
    if not a_key or not b_key:
        return False
    return a_key == b_key or a_key in b_key or b_key in a_key


class TagIndex:
    """
    Canonical key -> original spellings, built once from the catalog.
    """

    def __init__(self, posts: Iterable[Post] = ()):
        self._spellings: dict[str, list[str]] = {}
        self._counts: Counter[str] = Counter()
        for post in posts:
            self.add(post.tags)

    def add(self, tags: Iterable[str]) -> None:
        for tag in tags:
            key = canonicalize(tag)
            if not key:
                continue
            spellings = self._spellings.setdefault(key, [])
            if tag not in spellings:
                spellings.append(tag)
            self._counts[key] += 1

    def __contains__(self, key: str) -> bool:
        return key in self._spellings

    def __len__(self) -> int:
        return len(self._spellings)

    def spellings(self, key: str) -> list[str]:
        return list(self._spellings.get(key, []))

    def vocabulary(self, limit: int = 300) -> list[str]:
        """Canonical tag keys, most frequent first (first-seen order on ties)."""
        # Counter.most_common is stable for equal counts (insertion order)
        return [key for key, _ in self._counts.most_common(limit)]


class ProfileMatcher:
    """
    Resolves post tags against one side of a profile (interests or dislikes).

    Answers are memoized by canonical key, so a ranking pass over the whole
    catalog scans the profile once per distinct post tag instead of once per
    (post, tag) pair.
    """

    def __init__(self, entries: Iterable[WeightedTag]):
        self._entries: list[tuple[str, WeightedTag]] = []
        self._exact: dict[str, WeightedTag] = {}
        for entry in entries:
            key = canonicalize(entry.tag)
            if not key:
                continue
            self._entries.append((key, entry))
            self._exact.setdefault(key, entry)
        self._memo: dict[str, WeightedTag | None] = {}

    def best_match(self, post_tag: str) -> WeightedTag | None:
        key = canonicalize(post_tag)
        if not key:
            return None
        if key in self._memo:
            return self._memo[key]

        match = self._exact.get(key)
        if match is None:
            # Containment fallback: strongest loose match wins, first listed on ties
            for entry_key, entry in self._entries:
                if keys_match(entry_key, key) and (match is None or entry.weight > match.weight):
                    match = entry
        self._memo[key] = match
        return match
