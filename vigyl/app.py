from __future__ import annotations

import asyncio
import json
import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from vigyl import services
from vigyl.cache import ReadOnlyReplicaError
from vigyl.controller import IntelligenceController
from vigyl.db import current_db_path, init_db
from vigyl.personas import get_persona_config
from vigyl.schemas import AIImpactRequest, ExpandRequest, IntelligenceOut, PipelineUpdate, SessionStart
from vigyl.services import SessionNotFoundError, SessionRegistry

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(os.environ.get("VIGYL_DB_PATH"))
    log.info("Using database %s", current_db_path())
    registry = SessionRegistry()
    app.state.registry = registry
    yield
    await registry.close_all()


app = FastAPI(
    title="Vigyl",
    version="0.1.0",
    description=(
        "Sales intelligence API. Sign a user in to get an immediately usable "
        "snapshot (seed, cached or fresh) of industries, signals, prospects and "
        "AI impact analyses; generation runs in the background and is observable "
        "through the intelligence endpoint and an SSE progress stream."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Sessions", "description": "Sign users in and out."},
        {"name": "Intelligence", "description": "Read the snapshot and trigger regeneration."},
        {"name": "AI Impact", "description": "Per-industry AI impact analysis. Requires an LLM API key."},
        {"name": "Pipeline", "description": "User pipeline edits and prospect expansion."},
        {"name": "Reference", "description": "Industry matching and persona labels."},
    ],
)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def _controller(registry: SessionRegistry, user_id: str) -> IntelligenceController:
    try:
        return registry.get(user_id)
    except SessionNotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc


# ---------------------------------------------------------------------------
# Routes: Sessions
# ---------------------------------------------------------------------------


@app.post("/api/sessions", response_model=IntelligenceOut, status_code=201,
          tags=["Sessions"], summary="Sign a user in and start loading intelligence")
async def sign_in(
    body: SessionStart,
    wait: bool = Query(False, description="Block until the initial generation run finishes"),
    registry: SessionRegistry = Depends(get_registry),
):
    ctrl = await registry.sign_in(body.user_id, body.profile)
    handle = ctrl.orchestrator.full_handle
    if wait and handle is not None:
        await handle.wait()
    return ctrl.view()


@app.delete("/api/sessions/{user_id}", tags=["Sessions"], summary="Sign a user out and cancel running work")
async def sign_out(user_id: str, registry: SessionRegistry = Depends(get_registry)):
    if not await registry.sign_out(user_id):
        raise HTTPException(404, f"No active session for {user_id}")
    return {"ok": True}


# ---------------------------------------------------------------------------
# Routes: Intelligence
# ---------------------------------------------------------------------------


@app.get("/api/sessions/{user_id}/intelligence", response_model=IntelligenceOut,
         tags=["Intelligence"], summary="Current snapshot and loading flags")
async def get_intelligence(user_id: str, registry: SessionRegistry = Depends(get_registry)):
    return _controller(registry, user_id).view()


@app.post("/api/sessions/{user_id}/refresh", response_model=IntelligenceOut,
          tags=["Intelligence"], summary="Regenerate intelligence (background when data is shown)")
async def refresh(
    user_id: str,
    wait: bool = Query(False),
    registry: SessionRegistry = Depends(get_registry),
):
    ctrl = _controller(registry, user_id)
    handle = ctrl.refresh()
    if wait:
        await handle.wait()
    return ctrl.view()


@app.post("/api/sessions/{user_id}/dismiss-error", response_model=IntelligenceOut,
          tags=["Intelligence"], summary="Clear the error banner")
async def dismiss_error(user_id: str, registry: SessionRegistry = Depends(get_registry)):
    ctrl = _controller(registry, user_id)
    ctrl.dismiss_error()
    return ctrl.view()


# ---------------------------------------------------------------------------
# Routes: AI Impact
# ---------------------------------------------------------------------------


def _progress_stream(ctrl: IntelligenceController, interval: float):
    """SSE stream of AI impact progress until the running loop finishes."""
    async def stream():
        last = None
        while ctrl.ai_impact_generating:
            progress = ctrl.ai_impact_progress
            if progress is not None and (progress.current, progress.industry_name) != last:
                last = (progress.current, progress.industry_name)
                yield f"data: {json.dumps({'type': 'progress', 'current': progress.current, 'total': progress.total, 'name': progress.industry_name})}\n\n"
            await asyncio.sleep(interval)

        stats = {
            "analysed": len(ctrl.data.ai_impact),
            "industries": len(ctrl.data.industries),
            "error": ctrl.ai_impact_error,
        }
        yield f"data: {json.dumps({'type': 'complete', 'stats': stats})}\n\n"

    return StreamingResponse(stream(), media_type="text/event-stream")


@app.get("/api/sessions/{user_id}/ai-impact/stream", tags=["AI Impact"],
         summary="Follow the running AI impact loop (SSE progress stream)")
async def ai_impact_stream(
    user_id: str,
    interval: float = Query(0.25, gt=0, le=5),
    registry: SessionRegistry = Depends(get_registry),
):
    return _progress_stream(_controller(registry, user_id), interval)


@app.post("/api/sessions/{user_id}/ai-impact", response_model=IntelligenceOut,
          tags=["AI Impact"], summary="Generate AI impact analyses (all, a subset, or resume missing)")
async def generate_ai_impact(
    user_id: str,
    body: AIImpactRequest | None = None,
    wait: bool = Query(False),
    registry: SessionRegistry = Depends(get_registry),
):
    ctrl = _controller(registry, user_id)
    body = body or AIImpactRequest()
    if ctrl.is_team_member:
        raise HTTPException(403, "Team members cannot generate AI impact analyses")
    if body.resume:
        handle = ctrl.resume_ai_impact()
    else:
        handle = ctrl.generate_ai_impact(body.industry_ids)
    if wait:
        await handle.wait()
    return ctrl.view()


@app.post("/api/sessions/{user_id}/ai-impact/cancel", tags=["AI Impact"],
          summary="Stop the AI impact loop before its next industry")
async def cancel_ai_impact(user_id: str, registry: SessionRegistry = Depends(get_registry)):
    return {"cancelled": _controller(registry, user_id).cancel_ai_impact()}


# ---------------------------------------------------------------------------
# Routes: Pipeline
# ---------------------------------------------------------------------------


@app.put("/api/sessions/{user_id}/pipeline/{prospect_id}", tags=["Pipeline"],
         summary="Update a prospect's pipeline stage, notes or last contact date")
async def update_pipeline(
    user_id: str, prospect_id: str, body: PipelineUpdate,
    registry: SessionRegistry = Depends(get_registry),
):
    ctrl = _controller(registry, user_id)
    try:
        return services.update_pipeline_item(ctrl, prospect_id, **body.model_dump())
    except ReadOnlyReplicaError as exc:
        raise HTTPException(403, str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(400, str(exc)) from exc


@app.post("/api/sessions/{user_id}/prospects/expand", tags=["Pipeline"],
          summary="Find more prospects in one vertical via LLM")
async def expand_prospects(
    user_id: str, body: ExpandRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    ctrl = _controller(registry, user_id)
    try:
        added = await services.expand_prospects(ctrl, body.vertical_name, body.vertical_id, body.scope)
    except ReadOnlyReplicaError as exc:
        raise HTTPException(403, str(exc)) from exc
    except Exception as exc:
        raise HTTPException(500, f"Prospect expansion failed: {exc}") from exc
    return {"added": [p.to_wire() for p in added], "total": len(ctrl.data.prospects)}


# ---------------------------------------------------------------------------
# Routes: Reference
# ---------------------------------------------------------------------------


@app.get("/api/industries/match", tags=["Reference"],
         summary="Seed industries matching free-text target industries")
async def match_industries(targets: str = Query("", description="Comma-separated industry names")):
    names = [t.strip() for t in targets.split(",") if t.strip()]
    return {"industries": services.match_industries(names)}


@app.get("/api/personas/{key}", tags=["Reference"], summary="Persona labels (falls back to sales)")
async def get_persona(key: str):
    return get_persona_config(key).to_dict()


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    uvicorn.run("vigyl.app:app", host="127.0.0.1", port=8002, reload=True)


if __name__ == "__main__":
    main()
