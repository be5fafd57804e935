"""Generation orchestration: full-intelligence runs and the AI impact loop.

Every run is detached from its caller and wrapped in a :class:`TaskHandle`
whose ``status`` can be observed and whose ``wait()`` can be awaited.

The AI impact loop is strictly sequential. Each step persists its own delta
to the owner's cache row with a read-modify-write upsert, so two concurrent
steps could lose an update; progress also assumes one industry in flight.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from vigyl.cache import AI_IMPACT_KEY, CacheStore
from vigyl.generator import IntelligenceProvider, ProfileIncompleteError
from vigyl.matching import is_match
from vigyl.merge import merge_industries, overlay_pipeline
from vigyl.schemas import AIImpactAnalysis, Industry, IndustryRef, Profile, Snapshot
from vigyl.seed import SEED_INDUSTRIES

log = logging.getLogger(__name__)

FULL_GENERATION_FAILED = "Failed to generate intelligence"
AI_IMPACT_FAILED = "Failed to generate AI impact analysis. Please try again."


class GenerationMode(str, Enum):
    FOREGROUND = "foreground"
    BACKGROUND = "background"


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


_FINAL = {TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.SKIPPED, TaskStatus.CANCELLED}


class TaskHandle:
    """Observable handle for a detached generation run."""

    def __init__(self, name: str):
        self.name = name
        self.status = TaskStatus.PENDING
        self.error: BaseException | None = None
        self._task: asyncio.Task | None = None

    @classmethod
    def finished(cls, name: str, status: TaskStatus) -> TaskHandle:
        handle = cls(name)
        handle.status = status
        return handle

    def start(self, coro: Coroutine[Any, Any, TaskStatus]) -> TaskHandle:
        self.status = TaskStatus.RUNNING
        self._task = asyncio.get_running_loop().create_task(self._run(coro), name=self.name)
        return self

    async def _run(self, coro: Coroutine[Any, Any, TaskStatus]) -> None:
        try:
            self.status = await coro
        except asyncio.CancelledError:
            self.status = TaskStatus.CANCELLED
            raise
        except Exception as exc:
            log.exception("Task %s failed", self.name)
            self.error = exc
            self.status = TaskStatus.FAILED

    @property
    def done(self) -> bool:
        return self.status in _FINAL

    async def wait(self) -> TaskStatus:
        if self._task is not None:
            await asyncio.wait({self._task})
            if self._task.cancelled() and not self.done:
                self.status = TaskStatus.CANCELLED
        return self.status

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def __repr__(self) -> str:
        return f"<TaskHandle {self.name} {self.status.value}>"


@dataclass
class AIImpactProgress:
    current: int
    total: int
    industry_name: str


@dataclass
class IntelligenceState:
    """Mutable session state read by the presentation layer."""
    data: Snapshot = field(default_factory=Snapshot)
    loading: bool = False
    error: str | None = None
    is_background_refreshing: bool = False
    is_using_seed_data: bool = False
    fresh: bool = False
    ai_impact_generating: bool = False
    ai_impact_progress: AIImpactProgress | None = None
    ai_impact_error: str | None = None


def upsert_analysis(results: list[AIImpactAnalysis], analysis: AIImpactAnalysis) -> list[AIImpactAnalysis]:
    for i, existing in enumerate(results):
        if existing.industry_id == analysis.industry_id:
            return results[:i] + [analysis] + results[i + 1:]
    return results + [analysis]


class GenerationOrchestrator:
    """Runs generation for one session and publishes results into ``state``.

    Read-only sessions (team members) never persist; the cache adapter
    rejects their writes regardless.
    """

    def __init__(
        self,
        *,
        user_id: str,
        owner_id: str,
        profile: Profile,
        provider: IntelligenceProvider,
        cache: CacheStore,
        state: IntelligenceState,
        seed_catalog: list[Industry] | None = None,
        read_only: bool = False,
    ):
        self.user_id = user_id
        self.owner_id = owner_id
        self.profile = profile
        self.provider = provider
        self.cache = cache
        self.state = state
        self.seed_catalog = SEED_INDUSTRIES if seed_catalog is None else seed_catalog
        self.read_only = read_only
        self._full_handle: TaskHandle | None = None
        self._ai_handle: TaskHandle | None = None
        self._cancel_ai = False

    # -- persistence -------------------------------------------------------

    def _persist(self, partial: dict[str, Any], replace_keys: tuple[str, ...] = ()) -> None:
        if self.read_only:
            return
        try:
            self.cache.persist_delta(
                self.owner_id, partial, writer_id=self.user_id, replace_keys=replace_keys,
            )
        except Exception as exc:
            log.warning("Failed to persist %s for %s: %s", sorted(partial), self.owner_id, exc)

    # -- full intelligence -------------------------------------------------

    @property
    def full_handle(self) -> TaskHandle | None:
        return self._full_handle

    def generate_full(self, mode: GenerationMode) -> TaskHandle:
        """Start a full-intelligence run unless one is already in flight."""
        if self._full_handle is not None and not self._full_handle.done:
            return self._full_handle
        if not self.profile.is_complete():
            log.info("Skipping intelligence generation for %s: profile incomplete", self.user_id)
            return TaskHandle.finished("full_intelligence", TaskStatus.SKIPPED)

        if mode is GenerationMode.FOREGROUND:
            self.state.loading = True
        else:
            self.state.is_background_refreshing = True
        self.state.error = None
        self._full_handle = TaskHandle(f"full_intelligence:{mode.value}").start(self._run_full(mode))
        return self._full_handle

    async def _run_full(self, mode: GenerationMode) -> TaskStatus:
        foreground = mode is GenerationMode.FOREGROUND
        try:
            intel = await self.provider.generate_full_intelligence(self.profile)
        except ProfileIncompleteError as exc:
            log.info("Skipping intelligence generation for %s: %s", self.user_id, exc)
            return TaskStatus.SKIPPED
        except Exception as exc:
            if foreground:
                self.state.error = str(exc) or FULL_GENERATION_FAILED
            log.warning("%s intelligence generation failed for %s: %s",
                        mode.value.capitalize(), self.user_id, exc)
            return TaskStatus.FAILED
        finally:
            if foreground:
                self.state.loading = False
            else:
                self.state.is_background_refreshing = False

        industries = merge_industries(self.seed_catalog, intel.industries)
        self._persist({
            "industries": [i.to_wire() for i in industries],
            "signals": [s.to_wire() for s in intel.signals],
            "prospects": [p.to_wire() for p in intel.prospects],
        })
        items = self.cache.load_pipeline_items(self.owner_id)
        self.state.data = Snapshot(
            industries=industries,
            signals=intel.signals,
            prospects=overlay_pipeline(intel.prospects, items),
            ai_impact=self.state.data.ai_impact,
            updated_at=datetime.now(UTC),
        )
        self.state.is_using_seed_data = False
        self.state.fresh = True
        log.info("Published fresh intelligence for %s (%s)", self.owner_id, mode.value)
        return TaskStatus.SUCCEEDED

    # -- AI impact ---------------------------------------------------------

    @property
    def ai_handle(self) -> TaskHandle | None:
        return self._ai_handle

    def missing_industries(self) -> list[IndustryRef]:
        done = {a.industry_id for a in self.state.data.ai_impact}
        return [IndustryRef(id=i.id, name=i.name) for i in self.state.data.industries if i.id not in done]

    def _work_list(self, subset: Iterable[str | Industry | IndustryRef] | None) -> list[IndustryRef]:
        industries = self.state.data.industries
        if subset is None:
            return [IndustryRef(id=i.id, name=i.name) for i in industries]

        refs: list[IndustryRef] = []
        seen: set[str] = set()
        for item in subset:
            if isinstance(item, (Industry, IndustryRef)):
                ref = IndustryRef(id=item.id, name=item.name)
            else:
                ind = (next((i for i in industries if i.id == item), None)
                       or next((i for i in industries if is_match(i.name, item)), None))
                if ind is None:
                    log.warning("AI impact requested for unknown industry %r; skipping", item)
                    continue
                ref = IndustryRef(id=ind.id, name=ind.name)
            if ref.id not in seen:
                seen.add(ref.id)
                refs.append(ref)
        return refs

    def generate_ai_impact(
        self, subset: Iterable[str | Industry | IndustryRef] | None = None,
    ) -> TaskHandle:
        """Analyse industries one at a time, publishing each result as it lands.

        With *subset* the run resumes from the existing analyses; without it
        every industry in the snapshot is regenerated from scratch and the live
        list is cleared until the first result lands. A call made
        while a run is in flight returns that run's handle and changes nothing.
        """
        if self.state.ai_impact_generating and self._ai_handle is not None:
            return self._ai_handle
        resume = subset is not None
        work = self._work_list(subset)
        if not work:
            return TaskHandle.finished("ai_impact", TaskStatus.SKIPPED)

        if not resume:
            self.state.data = self.state.data.model_copy(update={"ai_impact": []})
        self._cancel_ai = False
        self.state.ai_impact_generating = True
        self.state.ai_impact_error = None
        self.state.ai_impact_progress = AIImpactProgress(current=0, total=len(work), industry_name="")
        self._ai_handle = TaskHandle("ai_impact").start(self._run_ai_impact(work, resume))
        return self._ai_handle

    def cancel_ai_impact(self) -> bool:
        """Stop the loop before its next industry. Returns False if idle."""
        if not self.state.ai_impact_generating:
            return False
        self._cancel_ai = True
        return True

    async def _run_ai_impact(self, work: list[IndustryRef], resume: bool) -> TaskStatus:
        results = list(self.state.data.ai_impact) if resume else []
        total = len(work)
        completed = 0
        try:
            for idx, industry in enumerate(work, 1):
                if self._cancel_ai:
                    log.info("AI impact run for %s cancelled after %d/%d", self.owner_id, idx - 1, total)
                    return TaskStatus.CANCELLED
                self.state.ai_impact_progress = AIImpactProgress(
                    current=idx, total=total, industry_name=industry.name,
                )
                try:
                    analysis = await self.provider.generate_ai_impact_for_industry(industry, self.profile)
                except Exception as exc:
                    log.warning("AI impact failed for %s: %s", industry.name, exc)
                    continue

                results = upsert_analysis(results, analysis)
                self.state.data = self.state.data.model_copy(update={"ai_impact": list(results)})
                if not resume and completed == 0:
                    self._persist(
                        {AI_IMPACT_KEY: [a.to_wire() for a in results]}, replace_keys=(AI_IMPACT_KEY,),
                    )
                else:
                    self._persist({AI_IMPACT_KEY: [analysis.to_wire()]})
                completed += 1

            if not results:
                self.state.ai_impact_error = AI_IMPACT_FAILED
                return TaskStatus.FAILED
            if completed < total:
                log.info("AI impact for %s finished with %d/%d industries", self.owner_id, completed, total)
            return TaskStatus.SUCCEEDED
        finally:
            self.state.ai_impact_generating = False

    # -- teardown ----------------------------------------------------------

    async def shutdown(self) -> None:
        self._cancel_ai = True
        for handle in (self._full_handle, self._ai_handle):
            if handle is not None and not handle.done:
                handle.cancel()
                await handle.wait()
        self.state.loading = False
        self.state.is_background_refreshing = False
        self.state.ai_impact_generating = False
