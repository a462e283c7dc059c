# tests/test_collaborators.py
import asyncio
import json

import pytest
from google.genai import errors

from neurofeed.core.exceptions import CollaboratorUnavailable, MalformedResponse, RateLimited
from neurofeed.models.adjustment import IntentAnalysis
from neurofeed.models.result import ResultStatus
from neurofeed.services.collaborators import GeminiCleanupAdvisor, GeminiIntentAnalyzer, GeminiReranker
from neurofeed.services.collaborators.cleanup import build_cleanup_request
from neurofeed.services.collaborators.intent import build_intent_request
from neurofeed.services.collaborators.reranker import build_rerank_request, reconcile_order
from neurofeed.services.gemini import GeminiService

from .conftest import FakeCleanupAdvisor, FakeIntentAnalyzer, FakeReranker, make_post, make_profile

INTENT_OK = {
    "adjustments": [{"tag": "Gaming", "category": "dislike", "delta": 9}],
    "note": "user is tired of gaming",
    "search_query": "hiking",
}


def test_ok_result_from_dict_and_json_text():
    result = asyncio.run(FakeIntentAnalyzer(INTENT_OK).call({}))
    assert result.ok
    assert result.status == ResultStatus.OK
    assert result.payload.adjustments[0].delta == 9
    assert result.payload.search_query == "hiking"

    result = asyncio.run(FakeIntentAnalyzer(json.dumps(INTENT_OK)).call({}))
    assert result.ok and result.attempts == 1


def test_rate_limit_retries_with_exponential_backoff(mocker):
    sleep = mocker.patch("neurofeed.services.collaborators.base.asyncio.sleep", new_callable=mocker.AsyncMock)
    analyzer = FakeIntentAnalyzer(RateLimited("intent", "429"), RateLimited("intent", "429"), INTENT_OK, backoff_seconds=0.5)
    result = asyncio.run(analyzer.call({}))
    assert result.ok
    assert result.attempts == 3
    assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]


def test_rate_limit_escalates_after_last_attempt(rate_limited):
    analyzer = FakeIntentAnalyzer(rate_limited)
    result = asyncio.run(analyzer.call({}))
    assert result.status == ResultStatus.RATE_LIMITED
    assert not result.ok
    assert result.attempts == 3
    assert len(analyzer.calls) == 3


@pytest.mark.parametrize(
    "answer, status",
    [
        (MalformedResponse("intent", "empty"), ResultStatus.PARSE_ERROR),
        ("not json at all", ResultStatus.PARSE_ERROR),
        ("[1, 2, 3]", ResultStatus.PARSE_ERROR),
        ({"adjustments": "Gaming"}, ResultStatus.PARSE_ERROR),
        ({"adjustments": [{"tag": "Gaming", "category": "meh", "delta": 1}]}, ResultStatus.PARSE_ERROR),
        (CollaboratorUnavailable("intent", "no key"), ResultStatus.UNAVAILABLE),
        (RuntimeError("boom"), ResultStatus.UNAVAILABLE),
    ],
)
def test_failures_become_tagged_results(answer, status):
    analyzer = FakeIntentAnalyzer(answer)
    result = asyncio.run(analyzer.call({}))
    assert result.status == status
    assert result.payload is None
    assert result.error
    assert len(analyzer.calls) == 1


def test_reranker_and_cleanup_decode_their_schemas():
    rerank = asyncio.run(FakeReranker({"ordered_ids": ["b", "a"], "rationale": "hiking first"}).call({}))
    assert rerank.payload.ordered_ids == ["b", "a"]
    cleanup = asyncio.run(FakeCleanupAdvisor({"suggestions": [{"tag": "AI", "delta": -4}]}).call({}))
    assert cleanup.payload.suggestions[0].delta == -4
    assert cleanup.payload.rationale == ""


def test_reconcile_order():
    candidates = ["a", "b", "c", "d"]
    assert reconcile_order(candidates, ["d", "c", "b", "a"]) == ["d", "c", "b", "a"]
    assert reconcile_order(candidates, ["c", "x", "c", "a"]) == ["c", "a", "b", "d"]
    assert reconcile_order(candidates, []) == candidates
    assert reconcile_order(candidates, None) == candidates


def test_request_builders():
    post = make_post("p", ["🎮 Gaming", "Gear"], title="Gaming laptops")
    profile = make_profile(interests={"AI": 8.0, "Research": 6.0}, dislikes={"Gossip": 3.0})

    intent = build_intent_request("too much gaming", post, profile, ["AI", "Gaming"], "zh")
    assert intent["item_context"] == "Title: 帖子 p, Tags: 🎮 Gaming, Gear"
    assert intent["profile"]["dislikes"] == [{"tag": "Gossip", "weight": 3.0}]
    assert intent["vocabulary"] == ["AI", "Gaming"]

    many = make_profile(interests={f"T{i}": float(i) for i in range(8)})
    rerank = build_rerank_request([post], many, "hiking", interest_count=5)
    assert rerank["candidates"] == [{"id": "p", "title": "Gaming laptops"}]
    assert rerank["interests"] == ["T7", "T6", "T5", "T4", "T3"]
    assert rerank["intent"] == "hiking"

    history = [f"feedback {i}" for i in range(12)]
    cleanup = build_cleanup_request(history, profile, history_size=8)
    assert cleanup["feedback_history"] == history[-8:]
    assert cleanup["interests"][0] == {"tag": "AI", "weight": 8.0}


def test_gemini_collaborators_send_prompts_through_the_service(mocker):
    service = mocker.Mock(spec=GeminiService)
    service.generate_json_async = mocker.AsyncMock(return_value=json.dumps(INTENT_OK))
    analyzer = GeminiIntentAnalyzer(service=service, backoff_seconds=0)
    post = make_post("p", ["Gaming"])
    payload = build_intent_request("no more gaming please", post, make_profile(interests={"AI": 8.0}), ["Gaming"])

    result = asyncio.run(analyzer.call(payload))
    assert result.ok
    prompt, schema, name = service.generate_json_async.await_args.args
    assert "no more gaming please" in prompt
    assert "AI (8.0)" in prompt
    assert name == "intent_analyzer"

    assert "hiking" in GeminiReranker.get_prompt(build_rerank_request([post], make_profile(), "hiking"))
    cleanup_prompt = GeminiCleanupAdvisor.get_prompt(build_cleanup_request(["meh"], make_profile(interests={"AI": 2.0})))
    assert "- meh" in cleanup_prompt


def test_gemini_service_maps_errors(mocker):
    service = GeminiService(api_key=None)
    assert not service.enabled
    with pytest.raises(CollaboratorUnavailable):
        service.generate_json("prompt", dict, "intent")

    service.client = mocker.Mock()
    service.client.models.generate_content.side_effect = errors.ClientError(
        429, {"error": {"code": 429, "message": "quota", "status": "RESOURCE_EXHAUSTED"}}
    )
    with pytest.raises(RateLimited):
        service.generate_json("prompt", IntentAnalysis, "intent")

    service.client.models.generate_content.side_effect = None
    service.client.models.generate_content.return_value = mocker.Mock(text="  ")
    with pytest.raises(MalformedResponse):
        service.generate_json("prompt", IntentAnalysis, "intent")
