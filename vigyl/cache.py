"""Per-owner intelligence cache backed by the ``cached_intelligence`` table.

Each owner has exactly one row holding the latest reconciled snapshot as a
JSON blob. Team members resolve to their owner's row and only ever read it:
writes are rejected here, at the adapter boundary, unless the writer is the
owner.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from vigyl.db import get_session, session_scope
from vigyl.models import CachedIntelligence, PipelineItem, TeamMember
from vigyl.schemas import VALID_PIPELINE_STAGES, Snapshot
from vigyl.utils import json_parse

log = logging.getLogger(__name__)

AI_IMPACT_KEY = "aiImpact"
SNAPSHOT_KEYS = ("industries", "signals", "prospects", AI_IMPACT_KEY)


class ReadOnlyReplicaError(PermissionError):
    """A non-owner session attempted to write to an owner's cache."""


class StaleWriteError(RuntimeError):
    """Compare-and-set failed: the row changed since it was read."""


@dataclass(frozen=True)
class OwnerResolution:
    owner_id: str
    is_team_member: bool


def upsert_by_industry(existing: list[dict], incoming: list[dict]) -> list[dict]:
    """Replace entries sharing an ``industryId``, append the rest (in order)."""
    result = list(existing)
    index = {a.get("industryId"): i for i, a in enumerate(result)}
    for analysis in incoming:
        key = analysis.get("industryId")
        if key in index:
            result[index[key]] = analysis
        else:
            index[key] = len(result)
            result.append(analysis)
    return result


class CacheStore:
    """Read/write adapter for cached snapshots, team membership and pipeline edits."""

    def __init__(self, session_factory: Callable[[], Session] | None = None):
        self._session_factory = session_factory or get_session

    # -- owner resolution --------------------------------------------------

    def resolve_effective_owner(self, user_id: str) -> OwnerResolution:
        with session_scope(self._session_factory) as session:
            membership = session.execute(
                select(TeamMember).where(TeamMember.member_user_id == user_id)
            ).scalars().first()
        if membership is None or membership.owner_id == user_id:
            return OwnerResolution(owner_id=user_id, is_team_member=False)
        return OwnerResolution(owner_id=membership.owner_id, is_team_member=True)

    def add_team_member(self, owner_id: str, member_user_id: str, role: str = "member") -> None:
        with session_scope(self._session_factory) as session:
            session.add(TeamMember(owner_id=owner_id, member_user_id=member_user_id, role=role))
            session.commit()

    # -- snapshot ----------------------------------------------------------

    def load(self, owner_id: str) -> Snapshot | None:
        """Return the owner's cached snapshot, or ``None`` if absent or empty."""
        with session_scope(self._session_factory) as session:
            row = session.get(CachedIntelligence, owner_id)
            if row is None:
                return None
            blob = json_parse(row.intelligence_json, {})
            updated_at = row.updated_at
        if not isinstance(blob, dict) or not blob.get("industries"):
            return None
        try:
            return Snapshot.model_validate({**blob, "updatedAt": updated_at})
        except ValidationError as exc:
            log.warning("Discarding unreadable cached intelligence for %s: %s", owner_id, exc)
            return None

    def version(self, owner_id: str) -> int | None:
        with session_scope(self._session_factory) as session:
            row = session.get(CachedIntelligence, owner_id)
            return None if row is None else row.version

    def persist_delta(
        self,
        owner_id: str,
        partial: dict[str, Any],
        *,
        writer_id: str,
        replace_keys: tuple[str, ...] = (),
        expected_version: int | None = None,
    ) -> int:
        """Merge *partial* into the owner's blob and save it; return the new version.

        Top-level keys replace the stored ones, except ``aiImpact`` which is
        upserted by ``industryId`` unless listed in *replace_keys*. Passing
        *expected_version* turns the write into a compare-and-set.
        """
        if writer_id != owner_id:
            raise ReadOnlyReplicaError(f"User {writer_id} cannot write the cache of {owner_id}")
        unknown = set(partial) - set(SNAPSHOT_KEYS)
        if unknown:
            raise ValueError(f"Unknown snapshot keys: {sorted(unknown)}")

        with session_scope(self._session_factory) as session:
            row = session.get(CachedIntelligence, owner_id)
            current = 0 if row is None else row.version
            if expected_version is not None and expected_version != current:
                raise StaleWriteError(
                    f"Cache for {owner_id} is at version {current}, expected {expected_version}"
                )
            blob = {} if row is None else json_parse(row.intelligence_json, {})
            if not isinstance(blob, dict):
                blob = {}
            for key, value in partial.items():
                if key == AI_IMPACT_KEY and key not in replace_keys:
                    blob[key] = upsert_by_industry(blob.get(key) or [], value)
                else:
                    blob[key] = value
            if row is None:
                row = CachedIntelligence(owner_id=owner_id)
                session.add(row)
            row.intelligence_json = json.dumps(blob)
            row.version = current + 1
            row.updated_at = datetime.now(UTC)
            session.commit()
            return row.version

    # -- pipeline edits ----------------------------------------------------

    def load_pipeline_items(self, owner_id: str) -> list[PipelineItem]:
        with session_scope(self._session_factory) as session:
            return list(session.execute(
                select(PipelineItem)
                .where(PipelineItem.owner_id == owner_id)
                .order_by(PipelineItem.id)
            ).scalars().all())

    def save_pipeline_item(
        self,
        owner_id: str,
        prospect_id: str,
        *,
        writer_id: str,
        company_name: str,
        industry_id: str = "",
        vigyl_score: int = 0,
        pipeline_stage: str | None = None,
        notes: str | None = None,
        last_contacted: str | None = None,
    ) -> PipelineItem:
        """Create or update the user's pipeline state for one prospect."""
        if writer_id != owner_id:
            raise ReadOnlyReplicaError(f"User {writer_id} cannot edit the pipeline of {owner_id}")
        if pipeline_stage is not None and pipeline_stage not in VALID_PIPELINE_STAGES:
            raise ValueError(f"Invalid pipeline stage: {pipeline_stage!r}")

        with session_scope(self._session_factory) as session:
            item = session.execute(
                select(PipelineItem).where(
                    PipelineItem.owner_id == owner_id,
                    PipelineItem.prospect_id == prospect_id,
                )
            ).scalars().first()
            if item is None:
                item = PipelineItem(
                    owner_id=owner_id, prospect_id=prospect_id, company_name=company_name,
                    industry_id=industry_id, vigyl_score=vigyl_score,
                    pipeline_stage="researching", notes="",
                )
                session.add(item)
            if pipeline_stage is not None:
                item.pipeline_stage = pipeline_stage
            if notes is not None:
                item.notes = notes
            if last_contacted is not None:
                item.last_contacted = last_contacted
            session.commit()
            session.refresh(item)
            return item
