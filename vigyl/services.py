"""Shared business logic for the Vigyl API and MCP server."""
from __future__ import annotations

import logging
from typing import Any

from vigyl.cache import CacheStore, ReadOnlyReplicaError
from vigyl.controller import IntelligenceController
from vigyl.generator import IntelligenceProvider, LLMIntelligenceProvider
from vigyl.matching import is_match, match_user_industries
from vigyl.merge import overlay_pipeline
from vigyl.models import PipelineItem
from vigyl.schemas import Profile, Prospect
from vigyl.seed import industry_by_id
from vigyl.utils import slugify

log = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    """No signed-in session exists for the user."""


# ---------------------------------------------------------------------------
# Session registry
# ---------------------------------------------------------------------------


class SessionRegistry:
    """Owns one :class:`IntelligenceController` per signed-in user.

    Controllers are constructed on sign-in and torn down on sign-out; nothing
    is created implicitly on read.
    """

    def __init__(
        self,
        provider: IntelligenceProvider | None = None,
        cache: CacheStore | None = None,
    ):
        self.provider = provider or LLMIntelligenceProvider()
        self.cache = cache or CacheStore()
        self._sessions: dict[str, IntelligenceController] = {}

    async def sign_in(self, user_id: str, profile: Profile) -> IntelligenceController:
        existing = self._sessions.get(user_id)
        if existing is not None:
            await existing.close()
        ctrl = IntelligenceController(user_id, profile, provider=self.provider, cache=self.cache)
        self._sessions[user_id] = ctrl
        await ctrl.start()
        log.info("Signed in %s (owner %s, team member: %s)",
                 user_id, ctrl.owner_id, ctrl.is_team_member)
        return ctrl

    def get(self, user_id: str) -> IntelligenceController:
        ctrl = self._sessions.get(user_id)
        if ctrl is None:
            raise SessionNotFoundError(f"No active session for {user_id}")
        return ctrl

    async def sign_out(self, user_id: str) -> bool:
        ctrl = self._sessions.pop(user_id, None)
        if ctrl is None:
            return False
        await ctrl.close()
        return True

    async def close_all(self) -> None:
        for user_id in list(self._sessions):
            await self.sign_out(user_id)

    def __len__(self) -> int:
        return len(self._sessions)


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def pipeline_item_summary(item: PipelineItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "prospect_id": item.prospect_id,
        "company_name": item.company_name,
        "industry_id": item.industry_id,
        "vigyl_score": item.vigyl_score,
        "pipeline_stage": item.pipeline_stage,
        "notes": item.notes,
        "last_contacted": item.last_contacted,
        "updated_at": item.updated_at.isoformat() if item.updated_at else None,
    }


def match_industries(target_industries: list[str]) -> list[dict[str, Any]]:
    return [
        {"id": ind.id, "slug": ind.slug, "name": ind.name}
        for ind in match_user_industries(target_industries)
    ]


# ---------------------------------------------------------------------------
# Pipeline edits
# ---------------------------------------------------------------------------


def update_pipeline_item(
    ctrl: IntelligenceController,
    prospect_id: str,
    *,
    company_name: str | None = None,
    pipeline_stage: str | None = None,
    notes: str | None = None,
    last_contacted: str | None = None,
) -> dict[str, Any]:
    """Save a pipeline edit for the owner and overlay it onto the live snapshot.

    Raises ``ReadOnlyReplicaError`` for team members and ``ValueError`` when
    the prospect is unknown and no company name is supplied.
    """
    prospect = next((p for p in ctrl.data.prospects if p.id == prospect_id), None)
    if prospect is None and not company_name:
        raise ValueError(f"Unknown prospect {prospect_id!r}; company_name is required")

    item = ctrl.cache.save_pipeline_item(
        ctrl.owner_id,
        prospect_id,
        writer_id=ctrl.user_id,
        company_name=company_name or prospect.company_name,
        industry_id=prospect.industry_id if prospect else "",
        vigyl_score=prospect.vigyl_score if prospect else 0,
        pipeline_stage=pipeline_stage,
        notes=notes,
        last_contacted=last_contacted,
    )
    ctrl.replace_prospects(overlay_pipeline(ctrl.data.prospects, [item]))
    log.info("Pipeline %s -> %s for %s", prospect_id, item.pipeline_stage, ctrl.owner_id)
    return pipeline_item_summary(item)


# ---------------------------------------------------------------------------
# Prospect expansion
# ---------------------------------------------------------------------------


def _dedupe_new(existing: list[Prospect], incoming: list[Prospect]) -> list[Prospect]:
    seen = {p.company_name.strip().lower() for p in existing}
    fresh = []
    for p in incoming:
        key = p.company_name.strip().lower()
        if key and key not in seen:
            seen.add(key)
            fresh.append(p)
    return fresh


async def expand_prospects(
    ctrl: IntelligenceController,
    vertical_name: str,
    vertical_id: str | None = None,
    scope: str = "all",
) -> list[Prospect]:
    """Ask the provider for more prospects in one vertical and keep the new ones.

    Companies already in the snapshot are passed as exclusions and filtered
    again on return. New prospects are appended to the live snapshot and
    persisted to the owner's cache.
    """
    if ctrl.is_team_member:
        raise ReadOnlyReplicaError(f"User {ctrl.user_id} cannot add prospects for {ctrl.owner_id}")
    if not vertical_id:
        match = next((i for i in ctrl.data.industries if is_match(i.name, vertical_name)), None)
        vertical_id = match.id if match is not None else slugify(vertical_name)
    elif industry_by_id(vertical_id) is None:
        log.debug("Expanding prospects for non-catalog vertical id %s", vertical_id)

    current = list(ctrl.data.prospects)
    incoming = await ctrl.provider.expand_prospects(
        ctrl.profile, vertical_name, vertical_id, scope,
        [p.company_name for p in current],
    )
    added = _dedupe_new(current, incoming)
    if not added:
        log.info("Prospect expansion for %s returned no new companies", vertical_name)
        return []

    prospects = current + added
    ctrl.replace_prospects(prospects)
    ctrl.cache.persist_delta(
        ctrl.owner_id, {"prospects": [p.to_wire() for p in prospects]}, writer_id=ctrl.user_id,
    )
    log.info("Added %d prospects in %s for %s", len(added), vertical_name, ctrl.owner_id)
    return added
