import json
from pathlib import Path

from loguru import logger
from pydantic import TypeAdapter

from neurofeed.core.config import settings
from neurofeed.models.post import Post

_posts_adapter = TypeAdapter(list[Post])


def load_catalog(path: str | Path | None = None) -> list[Post]:
    """
    Load the immutable post catalog. Called once at startup; the core never
    re-queries it mid-session.
    """
    source = Path(path or settings.CATALOG_PATH)
    with source.open(encoding="utf-8") as fh:
        raw = json.load(fh)
    posts = _posts_adapter.validate_python(raw)

    seen: set[str] = set()
    unique = []
    for post in posts:
        if post.id in seen:
            logger.warning(f"Duplicate post id {post.id} in {source.name}; keeping the first one")
            continue
        seen.add(post.id)
        unique.append(post)
    logger.info(f"Loaded {len(unique)} posts from {source}")
    return unique
