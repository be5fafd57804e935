from __future__ import annotations

import json
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from vigyl import services
from vigyl.cache import ReadOnlyReplicaError
from vigyl.db import current_db_path, init_db
from vigyl.schemas import Profile
from vigyl.services import SessionNotFoundError, SessionRegistry

log = logging.getLogger(__name__)

_registry: SessionRegistry | None = None


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def vigyl_lifespan(server: FastMCP) -> AsyncIterator[None]:
    global _registry
    init_db(os.environ.get("VIGYL_DB_PATH"))
    log.info("Using database %s", current_db_path())
    _registry = SessionRegistry()
    try:
        yield
    finally:
        await _registry.close_all()
        _registry = None


mcp = FastMCP(
    "Vigyl",
    instructions=(
        "Vigyl is a sales intelligence tool. Start with sign_in(user_id, ...) to "
        "load a user's snapshot, then get_intelligence(user_id) to read industries, "
        "signals and prospects. generate_ai_impact(user_id) analyses how AI "
        "reshapes each industry; update_pipeline() tracks prospects."
    ),
    lifespan=vigyl_lifespan,
    json_response=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_or_error(user_id: str):
    if _registry is None:
        return None, {"error": "Server is not initialised"}
    try:
        return _registry.get(user_id), None
    except SessionNotFoundError as exc:
        return None, {"error": str(exc)}


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@mcp.resource("vigyl://overview")
def vigyl_overview() -> str:
    """Overview of Vigyl: data model, workflow, and loading states."""
    return json.dumps({
        "system": "Vigyl: sales intelligence for B2B prospecting",
        "data_model": {
            "industry": "Tracked vertical with a health score (0-100), trend and 30-day score history.",
            "signal": "Market event tagged to industries, with type, sentiment and severity (1-5).",
            "prospect": "Company worth contacting now, with a VIGYL score and pipeline stage.",
            "ai_impact": "Per-industry split of AI-led, collaborative and human-led functions.",
        },
        "workflow": [
            "1. sign_in(user_id, target_industries=...) to show seed or cached data immediately.",
            "2. get_intelligence(user_id) to read the snapshot and loading flags.",
            "3. refresh_intelligence(user_id) to regenerate.",
            "4. generate_ai_impact(user_id) or generate_ai_impact(user_id, resume=True).",
            "5. update_pipeline(user_id, prospect_id, stage) to track outreach.",
        ],
        "states": {
            "has_data_seed": "Built-in sample data while the first generation runs.",
            "has_data_cached": "Last saved snapshot; a background refresh may be running.",
            "has_data_fresh": "Generated during this session.",
            "loading_foreground": "Nothing to show yet; generation is blocking.",
        },
    }, indent=2)


# ---------------------------------------------------------------------------
# Tools: Sessions
# ---------------------------------------------------------------------------


@mcp.tool()
async def sign_in(
    user_id: str,
    target_industries: list[str] | None = None,
    company_name: str | None = None,
    business_summary: str | None = None,
    location_city: str | None = None,
    location_state: str | None = None,
    location_country: str | None = None,
    user_persona: str | None = None,
    wait: bool = True,
) -> dict:
    """Sign a user in and load their intelligence.

    Args:
        user_id: Identifier of the signed-in user.
        target_industries: Industries the user sells into, e.g. ["FinTech", "Healthcare"].
        wait: Block until the initial generation run finishes (default True).
    """
    if _registry is None:
        return {"error": "Server is not initialised"}
    profile = Profile(
        company_name=company_name, business_summary=business_summary,
        target_industries=target_industries, location_city=location_city,
        location_state=location_state, location_country=location_country,
        user_persona=user_persona,
    )
    ctrl = await _registry.sign_in(user_id, profile)
    handle = ctrl.orchestrator.full_handle
    if wait and handle is not None:
        await handle.wait()
    return ctrl.view()


@mcp.tool()
async def sign_out(user_id: str) -> dict:
    """Sign a user out and cancel any running generation."""
    if _registry is None or not await _registry.sign_out(user_id):
        return {"error": f"No active session for {user_id}"}
    return {"ok": True}


# ---------------------------------------------------------------------------
# Tools: Intelligence
# ---------------------------------------------------------------------------


@mcp.tool()
def get_intelligence(user_id: str) -> dict:
    """Get the user's current snapshot with loading, error and AI impact flags."""
    ctrl, err = _get_or_error(user_id)
    return err if err else ctrl.view()


@mcp.tool()
async def refresh_intelligence(user_id: str, wait: bool = True) -> dict:
    """Regenerate industries, signals and prospects. Requires an LLM API key."""
    ctrl, err = _get_or_error(user_id)
    if err:
        return err
    handle = ctrl.refresh()
    if wait:
        await handle.wait()
    return ctrl.view()


@mcp.tool()
async def generate_ai_impact(
    user_id: str, industry_ids: list[str] | None = None, resume: bool = False, wait: bool = True,
) -> dict:
    """Analyse AI impact per industry, one industry at a time.

    Args:
        user_id: Identifier of the signed-in user.
        industry_ids: Only these industries (ids or names). Omit for all.
        resume: Only industries without an analysis yet.
        wait: Block until the loop finishes (default True).
    """
    ctrl, err = _get_or_error(user_id)
    if err:
        return err
    if ctrl.is_team_member:
        return {"error": "Team members cannot generate AI impact analyses"}
    handle = ctrl.resume_ai_impact() if resume else ctrl.generate_ai_impact(industry_ids)
    if wait:
        await handle.wait()
    return {
        "status": handle.status.value,
        "analysed": len(ctrl.data.ai_impact),
        "missing": [ref.name for ref in ctrl.orchestrator.missing_industries()],
        "error": ctrl.ai_impact_error,
    }


@mcp.tool()
def cancel_ai_impact(user_id: str) -> dict:
    """Stop a running AI impact loop before its next industry."""
    ctrl, err = _get_or_error(user_id)
    return err if err else {"cancelled": ctrl.cancel_ai_impact()}


# ---------------------------------------------------------------------------
# Tools: Pipeline
# ---------------------------------------------------------------------------


@mcp.tool()
def update_pipeline(
    user_id: str, prospect_id: str,
    pipeline_stage: str | None = None, notes: str | None = None,
    last_contacted: str | None = None, company_name: str | None = None,
) -> dict:
    """Update a prospect's pipeline stage or notes. Only provided arguments are applied.

    Stages: researching, contacted, meeting_scheduled, proposal_sent, won, lost.
    """
    ctrl, err = _get_or_error(user_id)
    if err:
        return err
    try:
        return services.update_pipeline_item(
            ctrl, prospect_id, company_name=company_name, pipeline_stage=pipeline_stage,
            notes=notes, last_contacted=last_contacted,
        )
    except (ReadOnlyReplicaError, ValueError) as exc:
        return {"error": str(exc)}


@mcp.tool()
async def expand_prospects(
    user_id: str, vertical_name: str, vertical_id: str | None = None, scope: str = "all",
) -> dict:
    """Find more prospects in one vertical. Scope: local, national, international or all."""
    ctrl, err = _get_or_error(user_id)
    if err:
        return err
    try:
        added = await services.expand_prospects(ctrl, vertical_name, vertical_id, scope)
    except Exception as exc:
        return {"error": f"Prospect expansion failed: {exc}"}
    return {"added": [p.to_wire() for p in added], "total": len(ctrl.data.prospects)}


@mcp.tool()
def match_industries(target_industries: list[str]) -> list[dict]:
    """Seed industries that fuzzy-match the given names (all of them when nothing matches)."""
    return services.match_industries(target_industries)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the Vigyl MCP server over stdio."""
    mcp.run()


if __name__ == "__main__":
    main()
