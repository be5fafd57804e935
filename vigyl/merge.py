"""Overlay AI-generated records onto the seed catalog and user pipeline edits."""
from __future__ import annotations

import logging
from collections.abc import Iterable

from vigyl.models import PipelineItem
from vigyl.schemas import Industry, Prospect

log = logging.getLogger(__name__)


def merge_industries(seed: list[Industry], ai: list[Industry]) -> list[Industry]:
    """Return one record per seed industry, in seed order.

    AI records are looked up by slug, then by lower-cased name (last write
    wins on key collision). A matched record keeps the seed identity
    (``id``, ``slug``, ``name``) and takes the AI ``health_score`` and
    ``trend_direction``; ``top_signals`` and ``score_history`` are taken only
    when the AI list is non-empty. AI industries with no seed counterpart are
    not carried into the output.
    """
    lookup: dict[str, Industry] = {}
    for ind in ai:
        if ind.slug:
            lookup[ind.slug] = ind
        if ind.name:
            lookup[ind.name.lower()] = ind

    merged: list[Industry] = []
    used: set[int] = set()
    for base in seed:
        hit = lookup.get(base.slug) or lookup.get(base.name.lower())
        if hit is None:
            merged.append(base)
            continue
        used.add(id(hit))
        update = {
            "health_score": hit.health_score,
            "trend_direction": hit.trend_direction,
        }
        if hit.top_signals:
            update["top_signals"] = list(hit.top_signals)
        if hit.score_history:
            update["score_history"] = list(hit.score_history)
        merged.append(base.model_copy(update=update))

    dropped = [ind.name for ind in ai if id(ind) not in used]
    if dropped:
        log.debug("Merge dropped %d AI industries with no seed match: %s", len(dropped), dropped)
    return merged


def overlay_pipeline(prospects: list[Prospect], items: Iterable[PipelineItem]) -> list[Prospect]:
    """Apply the user's pipeline edits on top of generated prospects.

    Items match a prospect by id, then by lower-cased company name. Items with
    no generated counterpart are listed first as standalone prospects.
    """
    items = list(items)
    if not items:
        return list(prospects)
    by_id = {it.prospect_id: it for it in items}
    by_name = {it.company_name.lower(): it for it in items}

    applied: set[int] = set()
    result: list[Prospect] = []
    for p in prospects:
        item = by_id.get(p.id) or by_name.get(p.company_name.lower())
        if item is None:
            result.append(p)
            continue
        applied.add(item.id)
        result.append(p.model_copy(update={
            "pipeline_stage": item.pipeline_stage,
            "notes": item.notes or "",
            "last_contacted": item.last_contacted,
        }))

    standalone = [
        Prospect(
            id=it.prospect_id or f"db-{it.id}",
            company_name=it.company_name,
            industry_id=it.industry_id or "",
            vigyl_score=it.vigyl_score or 0,
            pipeline_stage=it.pipeline_stage,
            notes=it.notes or "",
            last_contacted=it.last_contacted,
        )
        for it in items if it.id not in applied
    ]
    return standalone + result
