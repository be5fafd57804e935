"""Per-session intelligence controller.

One controller is constructed when a user signs in and torn down on sign-out.
It decides what the UI sees at any moment (seed fallback, cached snapshot,
fresh data, or a blocking load) and exposes the refresh and AI impact
actions. Data is never hidden behind a spinner once anything, even seed data,
is available.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum
from typing import Any

from vigyl.cache import CacheStore
from vigyl.generator import IntelligenceProvider
from vigyl.matching import seed_snapshot
from vigyl.merge import merge_industries, overlay_pipeline
from vigyl.orchestrator import (
    AIImpactProgress,
    GenerationMode,
    GenerationOrchestrator,
    IntelligenceState,
    TaskHandle,
    TaskStatus,
)
from vigyl.personas import PersonaConfig, get_persona_config
from vigyl.schemas import Industry, IndustryRef, Profile, Snapshot
from vigyl.seed import SEED_INDUSTRIES

log = logging.getLogger(__name__)


class ViewState(str, Enum):
    EMPTY = "empty"
    LOADING_FOREGROUND = "loading_foreground"
    HAS_DATA_SEED = "has_data_seed"
    HAS_DATA_CACHED = "has_data_cached"
    HAS_DATA_FRESH = "has_data_fresh"


class IntelligenceController:
    def __init__(
        self,
        user_id: str,
        profile: Profile,
        *,
        provider: IntelligenceProvider,
        cache: CacheStore,
        seed_catalog: list[Industry] | None = None,
    ):
        self.user_id = user_id
        self.profile = profile
        self.provider = provider
        self.cache = cache
        self.seed_catalog = SEED_INDUSTRIES if seed_catalog is None else seed_catalog
        self.owner_id = user_id
        self.is_team_member = False
        self._state = IntelligenceState()
        self._orchestrator: GenerationOrchestrator | None = None
        self._started = False

    # -- lifecycle ---------------------------------------------------------

    @property
    def orchestrator(self) -> GenerationOrchestrator:
        if self._orchestrator is None:
            raise RuntimeError("Controller has not been started")
        return self._orchestrator

    async def start(self) -> TaskHandle:
        """Show the best data available now and kick off generation.

        Cached data is shown immediately and refreshed in the background; with
        no cache the seed catalog is shown while a foreground run executes.
        Team members only ever read the owner's cache.
        """
        if self._started:
            return self.orchestrator.full_handle or TaskHandle.finished("start", TaskStatus.SKIPPED)
        self._started = True

        resolution = self.cache.resolve_effective_owner(self.user_id)
        self.owner_id = resolution.owner_id
        self.is_team_member = resolution.is_team_member
        self._orchestrator = GenerationOrchestrator(
            user_id=self.user_id,
            owner_id=self.owner_id,
            profile=self.profile,
            provider=self.provider,
            cache=self.cache,
            state=self._state,
            seed_catalog=self.seed_catalog,
            read_only=self.is_team_member,
        )

        if self._load_cached():
            if self.is_team_member:
                return TaskHandle.finished("start", TaskStatus.SKIPPED)
            return self.orchestrator.generate_full(GenerationMode.BACKGROUND)

        self._state.data = seed_snapshot(self.profile.target_industries)
        self._state.is_using_seed_data = True
        if self.is_team_member:
            log.info("No cached intelligence for owner %s; team member %s sees seed data",
                     self.owner_id, self.user_id)
            return TaskHandle.finished("start", TaskStatus.SKIPPED)
        return self.orchestrator.generate_full(GenerationMode.FOREGROUND)

    def _load_cached(self) -> bool:
        try:
            cached = self.cache.load(self.owner_id)
        except Exception as exc:
            log.warning("Error loading cached intelligence for %s: %s", self.owner_id, exc)
            return False
        if cached is None:
            return False
        items = self.cache.load_pipeline_items(self.owner_id)
        self._state.data = Snapshot(
            industries=merge_industries(self.seed_catalog, cached.industries),
            signals=cached.signals,
            prospects=overlay_pipeline(cached.prospects, items),
            ai_impact=cached.ai_impact,
            updated_at=cached.updated_at,
        )
        self._state.is_using_seed_data = False
        self._state.fresh = False
        log.info("Loaded cached intelligence for %s from %s", self.owner_id, cached.updated_at)
        return True

    async def close(self) -> None:
        if self._orchestrator is not None:
            await self._orchestrator.shutdown()
        log.info("Closed intelligence session for %s", self.user_id)

    # -- actions -----------------------------------------------------------

    def refresh(self) -> TaskHandle:
        """Regenerate: foreground while nothing is shown yet, background otherwise.

        For team members this re-reads the owner's cache instead.
        """
        if self.is_team_member:
            status = TaskStatus.SUCCEEDED if self._load_cached() else TaskStatus.SKIPPED
            return TaskHandle.finished("refresh", status)
        mode = GenerationMode.BACKGROUND if self.has_data else GenerationMode.FOREGROUND
        return self.orchestrator.generate_full(mode)

    def generate_ai_impact(
        self, subset: Iterable[str | Industry | IndustryRef] | None = None,
    ) -> TaskHandle:
        if self.is_team_member:
            log.info("Team member %s cannot generate AI impact", self.user_id)
            return TaskHandle.finished("ai_impact", TaskStatus.SKIPPED)
        return self.orchestrator.generate_ai_impact(subset)

    def resume_ai_impact(self) -> TaskHandle:
        """Generate only the industries that have no analysis yet."""
        return self.generate_ai_impact(self.orchestrator.missing_industries())

    def cancel_ai_impact(self) -> bool:
        return self.orchestrator.cancel_ai_impact()

    def dismiss_error(self) -> None:
        self._state.error = None
        self._state.ai_impact_error = None

    def replace_prospects(self, prospects: list) -> None:
        self._state.data = self._state.data.model_copy(update={"prospects": prospects})

    # -- read access -------------------------------------------------------

    @property
    def data(self) -> Snapshot:
        return self._state.data

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def error(self) -> str | None:
        return self._state.error

    @property
    def has_data(self) -> bool:
        return self._state.data.has_data

    @property
    def is_background_refreshing(self) -> bool:
        return self._state.is_background_refreshing

    @property
    def is_using_seed_data(self) -> bool:
        return self._state.is_using_seed_data

    @property
    def ai_impact_generating(self) -> bool:
        return self._state.ai_impact_generating

    @property
    def ai_impact_progress(self) -> AIImpactProgress | None:
        return self._state.ai_impact_progress

    @property
    def ai_impact_error(self) -> str | None:
        return self._state.ai_impact_error

    @property
    def persona(self) -> PersonaConfig:
        return get_persona_config(self.profile.user_persona)

    @property
    def state(self) -> ViewState:
        if not self.has_data:
            return ViewState.LOADING_FOREGROUND if self._state.loading else ViewState.EMPTY
        if self._state.is_using_seed_data:
            return ViewState.HAS_DATA_SEED
        if self._state.fresh:
            return ViewState.HAS_DATA_FRESH
        return ViewState.HAS_DATA_CACHED

    def view(self) -> dict[str, Any]:
        progress = self._state.ai_impact_progress
        return {
            "user_id": self.user_id,
            "owner_id": self.owner_id,
            "is_team_member": self.is_team_member,
            "state": self.state.value,
            "data": self.data.to_wire(),
            "loading": self.loading,
            "error": self.error,
            "has_data": self.has_data,
            "is_background_refreshing": self.is_background_refreshing,
            "is_using_seed_data": self.is_using_seed_data,
            "ai_impact_generating": self.ai_impact_generating,
            "ai_impact_progress": None if progress is None else {
                "current": progress.current, "total": progress.total,
                "industry_name": progress.industry_name,
            },
            "ai_impact_error": self.ai_impact_error,
            "persona": self.persona.to_dict(),
        }
