"""Pydantic domain records and request/response schemas for the Vigyl API.

Domain records use snake_case attributes and serialise by alias to the
camelCase keys stored in the cached intelligence blob (``healthScore``,
``industryTags``, ``aiImpact`` ...). Either spelling is accepted on input.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from vigyl.utils import clamp_int

TrendDirection = Literal["improving", "declining", "stable"]
SignalType = Literal["political", "regulatory", "economic", "hiring", "tech", "supply_chain"]
Sentiment = Literal["positive", "negative", "neutral"]
PressureResponse = Literal["contracting", "strategic_investment", "growth_mode"]
PipelineStage = Literal["researching", "contacted", "meeting_scheduled", "proposal_sent", "won", "lost"]
AIZone = Literal["ai_led", "collaborative", "human_led"]

VALID_TRENDS = {"improving", "declining", "stable"}
VALID_SIGNAL_TYPES = {"political", "regulatory", "economic", "hiring", "tech", "supply_chain"}
VALID_SENTIMENTS = {"positive", "negative", "neutral"}
VALID_PRESSURE_RESPONSES = {"contracting", "strategic_investment", "growth_mode"}
VALID_PIPELINE_STAGES = {"researching", "contacted", "meeting_scheduled", "proposal_sent", "won", "lost"}
VALID_ZONES = {"ai_led", "collaborative", "human_led"}


def _choice(value: Any, valid: set[str], default: str) -> str:
    v = str(value or "").strip().lower()
    return v if v in valid else default


class Record(BaseModel):
    """Immutable domain record; updates go through ``model_copy(update=...)``."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Industries
# ---------------------------------------------------------------------------


class ScorePoint(Record):
    date: str
    score: int

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, v: Any) -> int:
        return clamp_int(v, 0, 100, default=0)


class Industry(Record):
    id: str = ""
    slug: str = ""
    name: str
    health_score: int = 50
    trend_direction: TrendDirection = "stable"
    top_signals: list[str] = []
    score_history: list[ScorePoint] = []

    @field_validator("health_score", mode="before")
    @classmethod
    def _clamp_health(cls, v: Any) -> int:
        return clamp_int(v, 0, 100, default=50)

    @field_validator("trend_direction", mode="before")
    @classmethod
    def _normalize_trend(cls, v: Any) -> str:
        return _choice(v, VALID_TRENDS, "stable")


class IndustryRef(Record):
    """The ``{id, name}`` pair sent to per-industry generation calls."""
    id: str
    name: str


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


class SignalSource(Record):
    name: str
    url: str = ""
    published_at: str = ""


class Signal(Record):
    id: str
    title: str
    summary: str = ""
    industry_tags: list[str] = []
    signal_type: SignalType = "economic"
    sentiment: Sentiment = "neutral"
    severity: int = 3
    sales_implication: str = ""
    source_url: str = ""
    published_at: str = ""
    sources: list[SignalSource] = []

    @field_validator("severity", mode="before")
    @classmethod
    def _clamp_severity(cls, v: Any) -> int:
        return clamp_int(v, 1, 5, default=3)

    @field_validator("signal_type", mode="before")
    @classmethod
    def _normalize_type(cls, v: Any) -> str:
        return _choice(v, VALID_SIGNAL_TYPES, "economic")

    @field_validator("sentiment", mode="before")
    @classmethod
    def _normalize_sentiment(cls, v: Any) -> str:
        return _choice(v, VALID_SENTIMENTS, "neutral")


# ---------------------------------------------------------------------------
# Prospects
# ---------------------------------------------------------------------------


class DecisionMaker(Record):
    name: str
    title: str = ""
    linkedin_url: str = ""


class Location(Record):
    city: str = ""
    state: str = ""
    country: str = ""


class Prospect(Record):
    id: str
    company_name: str
    industry_id: str = ""
    vigyl_score: int = 0
    pressure_response: PressureResponse = "strategic_investment"
    why_now: str = ""
    decision_makers: list[DecisionMaker] = []
    related_signals: list[str] = []
    pipeline_stage: PipelineStage = "researching"
    last_contacted: str | None = None
    notes: str = ""
    location: Location = Location()
    annual_revenue: str = "Unknown"
    employee_count: int = 0
    scope: Literal["local", "national", "international"] | None = None

    @field_validator("vigyl_score", mode="before")
    @classmethod
    def _clamp_vigyl(cls, v: Any) -> int:
        return clamp_int(v, 0, 100, default=0)

    @field_validator("employee_count", mode="before")
    @classmethod
    def _coerce_employees(cls, v: Any) -> int:
        return clamp_int(v, 0, 10_000_000, default=0)

    @field_validator("pressure_response", mode="before")
    @classmethod
    def _normalize_pressure(cls, v: Any) -> str:
        return _choice(v, VALID_PRESSURE_RESPONSES, "strategic_investment")

    @field_validator("pipeline_stage", mode="before")
    @classmethod
    def _normalize_stage(cls, v: Any) -> str:
        return _choice(v, VALID_PIPELINE_STAGES, "researching")

    @field_validator("notes", "why_now", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> str:
        return v or ""

    @field_validator("scope", mode="before")
    @classmethod
    def _normalize_scope(cls, v: Any) -> str | None:
        v = str(v or "").strip().lower()
        return v if v in ("local", "national", "international") else None


# ---------------------------------------------------------------------------
# AI impact
# ---------------------------------------------------------------------------


class AIFunction(Record):
    name: str
    description: str = ""
    automation_level: int = 0
    zone: AIZone = "collaborative"
    jobs_affected: list[str] = []
    opportunity_type: str = "efficiency"
    timeline: str = "1_year"

    @field_validator("automation_level", mode="before")
    @classmethod
    def _clamp_level(cls, v: Any) -> int:
        return clamp_int(v, 0, 100, default=0)

    @field_validator("zone", mode="before")
    @classmethod
    def _normalize_zone(cls, v: Any) -> str:
        return _choice(v, VALID_ZONES, "collaborative")


class ValueChainNode(Record):
    id: str
    name: str
    zone: AIZone = "collaborative"
    automation_level: int = 0
    ai_tools: list[str] = []
    human_roles: list[str] = []
    opportunity: str = ""

    @field_validator("automation_level", mode="before")
    @classmethod
    def _clamp_level(cls, v: Any) -> int:
        return clamp_int(v, 0, 100, default=0)

    @field_validator("zone", mode="before")
    @classmethod
    def _normalize_zone(cls, v: Any) -> str:
        return _choice(v, VALID_ZONES, "collaborative")


class KPI(Record):
    name: str
    value: float = 0
    unit: str = ""
    trend: Literal["up", "down", "stable"] = "stable"
    context: str = ""

    @field_validator("trend", mode="before")
    @classmethod
    def _normalize_trend(cls, v: Any) -> str:
        return _choice(v, {"up", "down", "stable"}, "stable")


class AIImpactAnalysis(Record):
    industry_id: str
    industry_name: str = ""
    ai_led_functions: list[AIFunction] = []
    collaborative_functions: list[AIFunction] = []
    human_led_functions: list[AIFunction] = []
    automation_rate: int = 0
    job_displacement_index: int = 0
    human_resilience_score: int = 0
    collaborative_opportunity_index: int = 0
    value_chain: list[ValueChainNode] = []
    kpis: list[KPI] = []

    @field_validator(
        "automation_rate", "job_displacement_index",
        "human_resilience_score", "collaborative_opportunity_index",
        mode="before",
    )
    @classmethod
    def _clamp_index(cls, v: Any) -> int:
        return clamp_int(v, 0, 100, default=0)

    @field_validator(
        "ai_led_functions", "collaborative_functions", "human_led_functions",
        "value_chain", "kpis",
        mode="before",
    )
    @classmethod
    def _none_to_list(cls, v: Any) -> Any:
        return v or []


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


class Snapshot(Record):
    industries: list[Industry] = []
    signals: list[Signal] = []
    prospects: list[Prospect] = []
    ai_impact: list[AIImpactAnalysis] = []
    updated_at: datetime | None = None

    @property
    def has_data(self) -> bool:
        return len(self.industries) > 0


class GeneratedIntelligence(Record):
    """Result of one full-intelligence generation call."""
    industries: list[Industry] = []
    signals: list[Signal] = []
    prospects: list[Prospect] = []


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class Profile(BaseModel):
    """Business profile of the signed-in user (owned by the auth layer)."""
    model_config = ConfigDict(extra="allow")

    company_name: str | None = None
    website_url: str | None = None
    business_summary: str | None = None
    ai_summary: str | None = None
    target_industries: list[str] | None = None
    location_city: str | None = None
    location_state: str | None = None
    location_country: str | None = None
    entity_type: str | None = None
    user_persona: str | None = None
    ai_maturity_self: str | None = None

    def is_complete(self) -> bool:
        """Generation needs at least target industries or a business summary."""
        return bool(self.target_industries or self.business_summary or self.ai_summary)

    def location(self) -> str:
        parts = [self.location_city, self.location_state, self.location_country]
        return ", ".join(p for p in parts if p) or "United States"


# ---------------------------------------------------------------------------
# API request/response schemas
# ---------------------------------------------------------------------------


class SessionStart(BaseModel):
    user_id: str
    profile: Profile = Field(default_factory=Profile)


class AIImpactRequest(BaseModel):
    industry_ids: list[str] | None = None
    resume: bool = False


class PipelineUpdate(BaseModel):
    company_name: str | None = None
    pipeline_stage: PipelineStage | None = None
    notes: str | None = None
    last_contacted: str | None = None


class ExpandRequest(BaseModel):
    vertical_name: str
    vertical_id: str | None = None
    scope: Literal["local", "national", "international", "all"] = "all"


class ProgressOut(BaseModel):
    current: int
    total: int
    industry_name: str


class IntelligenceOut(BaseModel):
    user_id: str
    owner_id: str
    is_team_member: bool
    state: str
    data: dict[str, Any]
    loading: bool
    error: str | None = None
    has_data: bool
    is_background_refreshing: bool
    is_using_seed_data: bool
    ai_impact_generating: bool
    ai_impact_progress: ProgressOut | None = None
    ai_impact_error: str | None = None
    persona: dict[str, Any] = {}
