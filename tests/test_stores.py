# tests/test_stores.py
import asyncio

import pytest

from neurofeed.core.security import mask_secret
from neurofeed.services.credential_store import CredentialStore
from neurofeed.services.profile_store import ProfileStore

from .conftest import make_profile


def test_redis_service_swallows_outages(redis_backend, fake_redis):
    async def scenario():
        assert await redis_backend.set("k", "v") is True
        assert await redis_backend.get("k") == "v"
        assert await redis_backend.ping()
        fake_redis.fail = True
        assert not await redis_backend.ping()
        assert await redis_backend.set("k", "w") is False
        assert await redis_backend.get("k") is None
        assert await redis_backend.delete("k") is False
        await redis_backend.close()

    asyncio.run(scenario())
    assert fake_redis.closed
    assert redis_backend._client is None


def test_profile_snapshot_roundtrip(redis_backend, fake_redis):
    store = ProfileStore(redis_backend)
    profile = make_profile(interests={"AI": 8.0}, dislikes={"Gossip": 4.0}, version=3)

    async def scenario():
        assert await store.load("s1") is None
        assert await store.save("s1", profile)
        loaded = await store.load("s1")
        await store.clear("s1")
        return loaded, await store.load("s1")

    loaded, cleared = asyncio.run(scenario())
    assert loaded == profile
    assert cleared is None
    assert fake_redis.keys() == []


def test_unreadable_snapshot_is_ignored(redis_backend, fake_redis):
    store = ProfileStore(redis_backend)
    fake_redis._strings[f"{store.KEY_PREFIX}s1"] = '{"interests": "nope"}'
    assert asyncio.run(store.load("s1")) is None


def test_credentials_are_encrypted_at_rest(redis_backend, fake_redis):
    store = CredentialStore(redis_backend, salt="a-real-secret-salt")

    async def scenario():
        assert await store.set("gemini", "AIzaSyExampleKey123")
        return await store.get("gemini")

    assert asyncio.run(scenario()) == "AIzaSyExampleKey123"
    stored = fake_redis._strings[f"{store.KEY_PREFIX}gemini"]
    assert "AIzaSy" not in stored

    other = CredentialStore(redis_backend, salt="another-salt")
    assert asyncio.run(other.get("gemini")) is None


def test_credentials_refuse_default_salt(redis_backend):
    store = CredentialStore(redis_backend, salt="change-me")
    with pytest.raises(RuntimeError):
        asyncio.run(store.set("gemini", "AIzaSyExampleKey123"))


def test_credentials_report_storage_failure(redis_backend, fake_redis):
    store = CredentialStore(redis_backend, salt="a-real-secret-salt")
    fake_redis.fail = True
    assert asyncio.run(store.set("gemini", "AIzaSyExampleKey123")) is False


def test_mask_secret_shows_only_the_tail():
    assert mask_secret("AIzaSyExampleKey123") == "****y123"
    assert mask_secret("  AIzaSyExampleKey123\n") == "****y123"
    assert mask_secret("short-k") == "****"
    assert mask_secret("") is None
    assert mask_secret(None) is None
