"""Shared fixtures: in-memory cache store, a sample profile, and a fake provider."""
from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vigyl.cache import CacheStore
from vigyl.generator import LLMCallError
from vigyl.models import Base
from vigyl.schemas import (
    AIImpactAnalysis,
    GeneratedIntelligence,
    Industry,
    IndustryRef,
    Profile,
    Prospect,
    Signal,
)


def sample_intelligence() -> GeneratedIntelligence:
    return GeneratedIntelligence(
        industries=[
            Industry(name="Fintech", slug="fintech", health_score=80,
                     trend_direction="improving", top_signals=["Stablecoin bill passes Senate"]),
            Industry(name="Healthcare IT", health_score=90, trend_direction="declining"),
            Industry(name="Quantum Computing", slug="quantum-computing", health_score=70),
        ],
        signals=[
            Signal(id="g1", title="Open banking rule finalised", industry_tags=["5"], severity=4),
        ],
        prospects=[
            Prospect(id="gp1", company_name="Ledgerly", industry_id="5", vigyl_score=90),
            Prospect(id="gp2", company_name="Clinica Cloud", industry_id="2", vigyl_score=74),
        ],
    )


class FakeProvider:
    """In-process stand-in for the LLM provider.

    ``full_gate`` / ``ai_gate`` hold calls until set; ``ai_hook`` runs before
    each AI impact call returns; ids in ``ai_failures`` raise ``LLMCallError``.
    """

    def __init__(self, intel: GeneratedIntelligence | None = None):
        self.intel = intel or sample_intelligence()
        self.full_error: Exception | None = None
        self.full_gate: asyncio.Event | None = None
        self.ai_gate: asyncio.Event | None = None
        self.ai_hook = None
        self.ai_failures: set[str] = set()
        self.expansion: list[Prospect] = []
        self.full_calls = 0
        self.ai_calls: list[str] = []
        self.expand_calls: list[tuple] = []

    async def generate_full_intelligence(self, profile: Profile) -> GeneratedIntelligence:
        self.full_calls += 1
        if self.full_gate is not None:
            await self.full_gate.wait()
        if self.full_error is not None:
            raise self.full_error
        return self.intel

    async def generate_ai_impact_for_industry(self, industry: IndustryRef, profile: Profile) -> AIImpactAnalysis:
        self.ai_calls.append(industry.id)
        if self.ai_gate is not None:
            await self.ai_gate.wait()
        if self.ai_hook is not None:
            self.ai_hook(industry)
        if industry.id in self.ai_failures:
            raise LLMCallError(f"model overloaded for {industry.name}", retryable=True)
        return AIImpactAnalysis(
            industry_id=industry.id, industry_name=industry.name,
            automation_rate=40 + len(self.ai_calls),
        )

    async def expand_prospects(self, profile, vertical_name, vertical_id, scope, existing_company_names):
        self.expand_calls.append((vertical_name, vertical_id, scope, list(existing_company_names)))
        return list(self.expansion)


@pytest.fixture()
def session_factory():
    """Sessionmaker bound to a shared in-memory SQLite database."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def cache(session_factory) -> CacheStore:
    return CacheStore(session_factory)


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def profile() -> Profile:
    return Profile(
        company_name="Acme Advisory",
        business_summary="Compliance consulting for regulated mid-market firms",
        target_industries=["FinTech"],
        location_city="Austin", location_state="TX", location_country="US",
    )
