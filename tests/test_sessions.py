# tests/test_sessions.py
import asyncio

import pytest

from neurofeed.models.pipeline import LogType
from neurofeed.services.corpus import load_catalog
from neurofeed.services.profile_store import ProfileStore
from neurofeed.services.sessions import SessionRegistry

from .conftest import FakeCleanupAdvisor, FakeIntentAnalyzer, FakeReranker, make_profile


def test_packaged_catalog_loads():
    catalog = load_catalog()
    assert len(catalog) == 24
    assert len({p.id for p in catalog}) == 24
    post = next(p for p in catalog if p.id == "9")
    assert post.title.zh
    assert post.relevance("🥾 Hiking") == 1.0
    assert post.relevance("Bay Area") == 0.5
    assert post.relevance("Unlisted") == 1.0


def test_duplicate_ids_keep_first(tmp_path):
    path = tmp_path / "posts.json"
    path.write_text(
        '[{"id": "1", "title": {"en": "a"}, "tags": ["AI"]},'
        ' {"id": "1", "title": {"en": "b"}},'
        ' {"id": "2", "title": {"zh": "丙"}, "likes": 3}]',
        encoding="utf-8",
    )
    catalog = load_catalog(path)
    assert [p.title.text() for p in catalog] == ["a", "丙"]


@pytest.fixture()
def registry(redis_backend):
    registry = SessionRegistry(
        store=ProfileStore(redis_backend),
        intent_analyzer=FakeIntentAnalyzer({"adjustments": [{"tag": "Jazz", "category": "interest", "delta": 4}]}),
        reranker=FakeReranker({"ordered_ids": []}),
        cleanup_advisor=FakeCleanupAdvisor({"suggestions": []}),
    )
    registry.load(load_catalog())
    return registry


def test_new_session_starts_from_default_and_ranks(registry):
    orch = asyncio.run(registry.get_or_create("s1"))
    assert orch.state.profile.name == "Alex Chen"
    assert len(orch.state.displayed) == 24
    assert orch.state.log.entries()[0].title == "Initial content load"
    assert orch.state.log.entries()[0].type == LogType.RE_RANK
    assert registry.get("s1") is orch
    assert registry.get("s2") is None
    assert len(registry) == 1


def test_session_resumes_saved_snapshot_and_persists_changes(registry):
    saved = make_profile(interests={"Hiking": 12.0}, version=5)

    async def scenario():
        await registry.store.save("s1", saved)
        orch = await registry.get_or_create("s1")
        assert await registry.get_or_create("s1") is orch
        await orch.submit_feedback("jazz is nice", orch.post("12"))
        await registry.wait_idle()
        return orch, await registry.store.load("s1")

    orch, stored = asyncio.run(scenario())
    assert orch.state.profile.version == 6
    assert stored == orch.state.profile
    assert {t.tag for t in stored.interests} == {"Hiking", "Jazz"}


def test_least_recent_session_is_evicted_and_resumes_from_snapshot(redis_backend):
    registry = SessionRegistry(
        store=ProfileStore(redis_backend),
        intent_analyzer=FakeIntentAnalyzer({"adjustments": [{"tag": "Jazz", "category": "interest", "delta": 4}]}),
        reranker=FakeReranker({"ordered_ids": []}),
        cleanup_advisor=FakeCleanupAdvisor({"suggestions": []}),
        max_sessions=2,
    )
    registry.load(load_catalog())

    async def scenario():
        s1 = await registry.get_or_create("s1")
        await s1.submit_feedback("jazz please", s1.post("12"))
        await registry.wait_idle()
        await registry.get_or_create("s2")
        await registry.get_or_create("s3")
        assert registry.get("s1") is None
        assert len(registry) == 2
        return s1, await registry.get_or_create("s1")

    evicted, resumed = asyncio.run(scenario())
    assert resumed is not evicted
    assert resumed.state.profile == evicted.state.profile
    assert registry.get("s2") is None
