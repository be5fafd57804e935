"""Persona-adaptive labels: same data engine, different presentation per user type."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class Persona(str, Enum):
    SALES = "sales"
    FOUNDER = "founder"
    EXECUTIVE = "executive"
    HR = "hr"
    JOB_SEEKER = "job_seeker"
    INVESTOR = "investor"
    CONSULTANT = "consultant"
    ANALYST = "analyst"
    LOBBYIST = "lobbyist"


class HeroFeature(str, Enum):
    BRIEFING = "briefing"
    AI_IMPACT = "ai_impact"
    PROSPECTS = "prospects"
    SIGNALS = "signals"


@dataclass(frozen=True)
class PersonaConfig:
    key: Persona
    label: str
    nav_group_label: str
    prospect_label: str
    prospect_label_singular: str
    pipeline_label: str
    score_label: str
    why_now_label: str
    add_to_pipeline_label: str
    primary_view: str
    hero_feature: HeroFeature
    signal_priority: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["key"] = self.key.value
        data["hero_feature"] = self.hero_feature.value
        data["signal_priority"] = list(self.signal_priority)
        return data


PERSONA_CONFIGS: dict[Persona, PersonaConfig] = {
    Persona.SALES: PersonaConfig(
        Persona.SALES, "Sales", "Sales", "Prospects", "Prospect", "Pipeline", "VIGYL Score",
        "Why Now", "Add to Pipeline", "/industries", HeroFeature.BRIEFING,
        ("regulatory", "economic", "hiring", "tech", "competitive"),
    ),
    Persona.FOUNDER: PersonaConfig(
        Persona.FOUNDER, "Founder / CEO", "Strategy", "Opportunities", "Opportunity", "Deal Tracker",
        "Opportunity Score", "Why Now", "Track This", "/industries", HeroFeature.BRIEFING,
        ("economic", "competitive", "tech", "regulatory", "supply_chain"),
    ),
    Persona.EXECUTIVE: PersonaConfig(
        Persona.EXECUTIVE, "Executive", "Strategy", "Market Targets", "Target", "Pipeline",
        "VIGYL Score", "Why Now", "Add to Pipeline", "/industries", HeroFeature.BRIEFING,
        ("economic", "regulatory", "political", "competitive", "tech"),
    ),
    Persona.HR: PersonaConfig(
        Persona.HR, "HR / People Ops", "Workforce", "Companies", "Company", "Watchlist",
        "Market Score", "Talent Signal", "Watch This", "/ai-impact", HeroFeature.AI_IMPACT,
        ("hiring", "tech", "economic", "regulatory", "social"),
    ),
    Persona.JOB_SEEKER: PersonaConfig(
        Persona.JOB_SEEKER, "Job Seeker", "Career", "Target Companies", "Company", "Applications",
        "Opportunity Score", "Hiring Signal", "Track Company", "/ai-impact", HeroFeature.AI_IMPACT,
        ("hiring", "tech", "economic", "competitive", "regulatory"),
    ),
    Persona.INVESTOR: PersonaConfig(
        Persona.INVESTOR, "Investor", "Portfolio", "Companies", "Company", "Watchlist",
        "Momentum Score", "Catalyst", "Add to Watchlist", "/signals", HeroFeature.SIGNALS,
        ("economic", "regulatory", "tech", "political", "competitive"),
    ),
    Persona.CONSULTANT: PersonaConfig(
        Persona.CONSULTANT, "Consultant", "Clients", "Client Targets", "Client", "Engagements",
        "Fit Score", "Why Now", "Add to Engagements", "/prospects", HeroFeature.PROSPECTS,
        ("regulatory", "economic", "tech", "competitive", "hiring"),
    ),
    Persona.ANALYST: PersonaConfig(
        Persona.ANALYST, "Analyst", "Research", "Companies", "Company", "Coverage List",
        "Signal Score", "Key Driver", "Add to Coverage", "/signals", HeroFeature.SIGNALS,
        ("economic", "regulatory", "political", "tech", "supply_chain"),
    ),
    Persona.LOBBYIST: PersonaConfig(
        Persona.LOBBYIST, "Government Affairs", "Policy", "Stakeholders", "Stakeholder", "Tracker",
        "Influence Score", "Policy Trigger", "Track Stakeholder", "/signals", HeroFeature.SIGNALS,
        ("political", "regulatory", "economic", "supply_chain", "tech"),
    ),
}


def get_persona_config(value: str | Persona | None) -> PersonaConfig:
    """Config for *value*, falling back to the sales persona."""
    try:
        return PERSONA_CONFIGS[Persona(value)]
    except ValueError:
        return PERSONA_CONFIGS[Persona.SALES]
