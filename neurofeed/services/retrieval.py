from loguru import logger

from neurofeed.core.config import settings
from neurofeed.models.post import Post
from neurofeed.models.profile import UserProfile
from neurofeed.services.scoring import ScoringEngine, scoring_engine


def _tokenize(query: str | None) -> list[str]:
    if not query:
        return []
    return [token for token in query.lower().split() if token]


def keyword_hits(post: Post, tokens: list[str]) -> int:
    """Count (token, field) pairs where the token occurs in a title variant or tag."""
    fields = [text.lower() for text in (post.title.en, post.title.zh) if text]
    fields.extend(tag.lower() for tag in post.tags)
    return sum(1 for token in tokens for field in fields if token in field)


def keyword_search(catalog: list[Post], query: str | None) -> list[Post]:
    """
    Deterministic keyword search over titles and tags.

    Posts with at least one hit, most hits first, catalog order on ties.
    """
    tokens = _tokenize(query)
    if not tokens:
        return []
    hits = [(keyword_hits(post, tokens), post) for post in catalog]
    matched = [(count, post) for count, post in hits if count > 0]
    matched.sort(key=lambda item: item[0], reverse=True)
    return [post for _, post in matched]


class HybridRetriever:
    """
    Builds the candidate set shown right after feedback.

    Without an explicit request this is plain interest ranking. With one, the
    top interest-ranked posts are kept and search hits that interest ranking
    missed are appended, so the request is visible even when it contradicts
    long-term weights. Final ordering is left to the re-rank stage.
    """

    def __init__(
        self,
        engine: ScoringEngine | None = None,
        candidate_limit: int = settings.CANDIDATE_LIMIT,
        interest_pool_size: int = settings.INTEREST_POOL_SIZE,
        search_pool_size: int = settings.SEARCH_POOL_SIZE,
    ):
        self.engine = engine or scoring_engine
        self.candidate_limit = candidate_limit
        self.interest_pool_size = interest_pool_size
        self.search_pool_size = search_pool_size

    def retrieve(self, catalog: list[Post], profile: UserProfile, explicit_query: str | None = None) -> list[Post]:
        ranked = self.engine.rank(catalog, profile)
        if not _tokenize(explicit_query):
            return ranked[: self.candidate_limit]

        pool_a = ranked[: self.interest_pool_size]
        seen = {post.id for post in pool_a}

        # Search results carry the same transient score/reason as the ranked copies
        ranked_by_id = {post.id: post for post in ranked}
        pool_b: list[Post] = []
        for post in keyword_search(catalog, explicit_query):
            if len(pool_b) >= self.search_pool_size:
                break
            if post.id in seen:
                continue
            seen.add(post.id)
            pool_b.append(ranked_by_id.get(post.id, post))

        logger.debug(
            f"Hybrid retrieval for '{explicit_query}': {len(pool_a)} interest + {len(pool_b)} search candidates"
        )
        return (pool_a + pool_b)[: self.candidate_limit]


hybrid_retriever = HybridRetriever()
