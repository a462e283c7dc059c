import asyncio
import time
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from loguru import logger

from neurofeed.core.config import settings
from neurofeed.core.constants import ANALYSIS_FAILED_NOTE
from neurofeed.core.exceptions import StaleResult
from neurofeed.models.adjustment import CleanupResponse, IntentAnalysis
from neurofeed.models.pipeline import ApplyState, LogType, PipelineRun, PipelineStage
from neurofeed.models.post import Post
from neurofeed.models.profile import UserProfile, default_profile
from neurofeed.services.collaborators import CleanupAdvisor, IntentAnalyzer, Reranker
from neurofeed.services.collaborators.cleanup import build_cleanup_request
from neurofeed.services.collaborators.intent import build_intent_request
from neurofeed.services.collaborators.reranker import build_rerank_request, reconcile_order
from neurofeed.services.profile_state import ProfileStateManager, profile_state_manager
from neurofeed.services.retrieval import HybridRetriever, hybrid_retriever
from neurofeed.services.session import SessionState
from neurofeed.services.tags import TagIndex

ProfileListener = Callable[[str, UserProfile], Awaitable[Any]]


class PipelineOrchestrator:
    """
    Sequences one feedback cycle for a session.

    Intent analysis is the only blocking stage: its adjustments are applied
    before retrieval reads the profile. The candidate order is displayed at
    once; re-ranking and the cleanup/decay call then run as background tasks.

    Concurrency discipline is optimistic: every effective profile mutation bumps
    `UserProfile.version`, background stages remember the version they started
    from, and their results are discarded when it has moved on.
    """

    def __init__(
        self,
        state: SessionState,
        catalog: list[Post],
        intent_analyzer: IntentAnalyzer,
        reranker: Reranker,
        cleanup_advisor: CleanupAdvisor,
        tag_index: TagIndex | None = None,
        retriever: HybridRetriever | None = None,
        manager: ProfileStateManager | None = None,
        initial_profile: UserProfile | None = None,
        on_profile_change: ProfileListener | None = None,
        auto_apply_threshold_ms: float = settings.AUTO_APPLY_THRESHOLD_MS,
    ):
        self.state = state
        self.catalog = catalog
        self.intent_analyzer = intent_analyzer
        self.reranker = reranker
        self.cleanup_advisor = cleanup_advisor
        self.tag_index = tag_index or TagIndex(catalog)
        self.retriever = retriever or hybrid_retriever
        self.manager = manager or profile_state_manager
        self.initial_profile = initial_profile or default_profile()
        self.on_profile_change = on_profile_change
        self.auto_apply_threshold_ms = auto_apply_threshold_ms

        self._posts_by_id = {post.id: post for post in catalog}
        self._tasks: set[asyncio.Task] = set()
        self._latest_run_id: str | None = None

    @property
    def session_id(self) -> str:
        return self.state.session_id

    def post(self, post_id: str) -> Post | None:
        return self._posts_by_id.get(post_id)

    # Display

    def refresh(self, title: str = "Feed refreshed") -> list[Post]:
        """Rank the full catalog against the current profile and display it."""
        ranked = self.retriever.engine.rank(self.catalog, self.state.profile)
        self.state.displayed = ranked
        self.state.log.add(
            LogType.RE_RANK,
            title,
            {
                "top_posts": [p.title.text("en") for p in ranked[:3]],
                "demoted_count": sum(1 for p in ranked if (p.score or 0.0) < 0),
            },
        )
        return ranked

    def page(self, number: int, per_page: int = settings.POSTS_PER_PAGE) -> list[Post]:
        number = max(1, number)
        start = (number - 1) * per_page
        return self.state.displayed[start : start + per_page]

    def page_count(self, per_page: int = settings.POSTS_PER_PAGE) -> int:
        return max(1, -(-len(self.state.displayed) // per_page))

    # Feedback cycle

    async def submit_feedback(self, text: str, post: Post, language: str = "en") -> PipelineRun:
        state = self.state
        run = PipelineRun(feedback=text, post_id=post.id, stage=PipelineStage.INTENT_PENDING)
        state.runs[run.id] = run
        self._latest_run_id = run.id
        self._discard_held(run.id)
        state.log.add(
            LogType.FEEDBACK,
            "User provided natural language feedback",
            {"feedback": text, "target_post": post.title.text(language), "run_id": run.id},
        )

        # IntentPending: blocks everything after it
        payload = build_intent_request(
            text, post, state.profile, self.tag_index.vocabulary(settings.VOCABULARY_LIMIT), language
        )
        result = await self.intent_analyzer.call(payload)
        if result.ok:
            analysis: IntentAnalysis = result.payload
        else:
            analysis = IntentAnalysis(adjustments=[], note=ANALYSIS_FAILED_NOTE)
        state.log.add(
            LogType.LLM_ANALYSIS,
            "Intent analysis finished",
            {
                "status": result.status.value,
                "adjustments": [a.model_dump(mode="json") for a in analysis.adjustments],
                "note": analysis.note,
                "search_query": analysis.search_query,
                "elapsed_ms": result.elapsed_ms,
            },
        )

        # ProfileUpdated
        run.adjustments = analysis.adjustments
        run.note = analysis.note
        run.search_query = (analysis.search_query or "").strip() or None
        state.record_feedback(text)
        before = state.profile
        state.profile = self.manager.apply_adjustments(before, analysis.adjustments)
        run.stage = PipelineStage.PROFILE_UPDATED
        state.log.add(
            LogType.PROFILE_UPDATE,
            "Weights updated" if state.profile is not before else "No weight changes",
            {
                "changes": [f"{a.tag} [{a.category.value}] ({a.delta:+g})" for a in analysis.adjustments],
                "note": analysis.note,
                "version": state.version,
            },
        )

        # HybridBuilt: shown immediately so the user never waits on the network
        candidates = self.retriever.retrieve(self.catalog, state.profile, run.search_query)
        run.candidate_ids = [p.id for p in candidates]
        run.base_version = state.version
        run.stage = PipelineStage.HYBRID_BUILT
        run.apply_state = ApplyState.DISPLAYED
        state.displayed = candidates
        state.log.add(
            LogType.RE_RANK,
            "Hybrid candidates displayed",
            {
                "run_id": run.id,
                "candidates": len(candidates),
                "search_query": run.search_query,
                "top_recommendation": candidates[0].title.text(language) if candidates else None,
            },
        )

        if state.profile is not before:
            await self._persist_profile()

        # RerankPending: does not block the caller
        run.stage = PipelineStage.RERANK_PENDING
        self._spawn(self._rerank_stage(run, candidates))
        return run

    async def _rerank_stage(self, run: PipelineRun, candidates: list[Post]) -> None:
        state = self.state
        payload = build_rerank_request(candidates, state.profile, run.search_query, settings.RERANK_INTEREST_COUNT)
        start = time.perf_counter()
        result = await self.reranker.call(payload)
        elapsed_ms = (time.perf_counter() - start) * 1000
        run.rerank_elapsed_ms = round(elapsed_ms, 1)

        proposed = result.payload.ordered_ids if result.ok else None
        if proposed is not None and sorted(proposed) != sorted(run.candidate_ids):
            logger.warning(f"[{self.session_id}] Reranker returned an incomplete permutation for run {run.id}")
        run.reranked_ids = reconcile_order(run.candidate_ids, proposed)
        ordered = self._posts_in_order(run.reranked_ids, candidates)

        try:
            self._ensure_fresh(run)
        except StaleResult as e:
            run.apply_state = ApplyState.STALE
            run.stage = PipelineStage.IDLE
            state.log.add(LogType.RE_RANK, "Rerank discarded as stale", {"run_id": run.id, "reason": str(e)})
        else:
            if elapsed_ms < self.auto_apply_threshold_ms:
                state.displayed = ordered
                run.apply_state = ApplyState.APPLIED
                run.stage = PipelineStage.AUTO_APPLIED
                title = "Rerank applied automatically"
            else:
                state.held[run.id] = ordered
                run.apply_state = ApplyState.PENDING
                run.stage = PipelineStage.HELD_PENDING
                title = "Rerank held for confirmation"
            state.log.add(
                LogType.RE_RANK,
                title,
                {"run_id": run.id, "status": result.status.value, "elapsed_ms": run.rerank_elapsed_ms},
            )

        # Cleanup fires regardless of the apply decision
        self._spawn(self._cleanup_stage(run))

    async def _cleanup_stage(self, run: PipelineRun) -> None:
        state = self.state
        if not self.manager.can_decay(state.profile, state.feedback_count):
            logger.debug(f"[{self.session_id}] Cleanup skipped for run {run.id}: not enough signal yet")
            if run.stage != PipelineStage.HELD_PENDING:
                run.stage = PipelineStage.IDLE
            return

        held_stage = run.stage
        run.stage = PipelineStage.CLEANUP_PENDING
        started_version = state.version
        payload = build_cleanup_request(
            state.recent_feedback(settings.CLEANUP_HISTORY_SIZE), state.profile, settings.CLEANUP_HISTORY_SIZE
        )
        result = await self.cleanup_advisor.call(payload)
        run.stage = held_stage if held_stage == PipelineStage.HELD_PENDING else PipelineStage.IDLE

        if not result.ok:
            state.log.add(LogType.CLEANUP, "Cleanup skipped", {"status": result.status.value, "error": result.error})
            return
        if state.version != started_version:
            state.log.add(
                LogType.CLEANUP,
                "Cleanup discarded as stale",
                {"started_version": started_version, "current_version": state.version},
            )
            return

        response: CleanupResponse = result.payload
        before = state.profile
        state.profile = self.manager.apply_decay(before, response.suggestions, state.feedback_count)
        state.log.add(
            LogType.CLEANUP,
            "Decay applied" if state.profile is not before else "No decay needed",
            {
                "suggestions": [s.model_dump() for s in response.suggestions],
                "rationale": response.rationale,
                "version": state.version,
            },
        )
        if state.profile is not before:
            await self._persist_profile()

    def confirm(self, run_id: str) -> PipelineRun:
        """
        Apply a held rerank result. Raises KeyError for unknown runs and
        StaleResult when the profile changed since the candidates were built.
        """
        run = self.state.runs[run_id]
        if run.apply_state == ApplyState.STALE:
            raise StaleResult(run.base_version, self.state.version, f"run {run_id} was discarded as stale")
        ordered = self.state.held.pop(run_id, None)
        if ordered is None or run.apply_state != ApplyState.PENDING:
            return run
        try:
            self._ensure_fresh(run)
        except StaleResult:
            run.apply_state = ApplyState.STALE
            run.stage = PipelineStage.IDLE
            self.state.log.add(LogType.RE_RANK, "Held rerank discarded as stale", {"run_id": run.id})
            raise
        self.state.displayed = ordered
        run.apply_state = ApplyState.APPLIED
        run.stage = PipelineStage.IDLE
        self.state.log.add(LogType.RE_RANK, "Held rerank applied by user", {"run_id": run.id})
        return run

    async def reset(self) -> UserProfile:
        state = self.state
        state.profile = self.manager.reset(state.profile, self.initial_profile)
        state.feedback_count = 0
        state.feedback_history.clear()
        self._discard_held()
        state.log.clear()
        await self._persist_profile()
        self.refresh("Profile reset")
        return state.profile

    async def wait_idle(self) -> None:
        """Wait for background stages, including ones spawned while waiting."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # Helpers

    def _discard_held(self, keep_run_id: str | None = None) -> None:
        """A new cycle owns the screen, so older held reranks can never be confirmed."""
        for run_id in [r for r in self.state.held if r != keep_run_id]:
            del self.state.held[run_id]
            run = self.state.runs.get(run_id)
            if run is not None:
                run.apply_state = ApplyState.STALE
                run.stage = PipelineStage.IDLE
            self.state.log.add(LogType.RE_RANK, "Held rerank superseded", {"run_id": run_id})

    def _ensure_fresh(self, run: PipelineRun) -> None:
        if self.state.version != run.base_version:
            raise StaleResult(run.base_version, self.state.version)
        if self._latest_run_id != run.id:
            # A newer cycle owns the screen even if it left the profile untouched
            raise StaleResult(run.base_version, self.state.version, f"superseded by run {self._latest_run_id}")

    def _posts_in_order(self, ids: list[str], candidates: list[Post]) -> list[Post]:
        by_id = {post.id: post for post in candidates}
        return [by_id[post_id] for post_id in ids if post_id in by_id]

    async def _persist_profile(self) -> None:
        if self.on_profile_change is None:
            return
        try:
            await self.on_profile_change(self.session_id, self.state.profile)
        except Exception as e:
            logger.warning(f"[{self.session_id}] Failed to persist profile snapshot: {e}")

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(self._guard(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, coro: Coroutine) -> None:
        try:
            await coro
        except Exception as e:
            logger.exception(f"[{self.session_id}] Background pipeline stage failed: {e}")
