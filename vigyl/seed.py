"""Bundled seed catalog: the always-available fallback and merge base.

Seed industries define the identity universe (``id``/``slug``) that AI output
is merged onto. Score histories are generated from a fixed RNG seed so the
catalog is identical across processes.
"""
from __future__ import annotations

import random
from datetime import date, timedelta

from vigyl.schemas import Industry, Prospect, ScorePoint, Signal

HISTORY_DAYS = 30


def generate_score_history(
    base: int,
    days: int = HISTORY_DAYS,
    today: date | None = None,
    rng: random.Random | None = None,
) -> list[ScorePoint]:
    """Random walk around *base*, one point per day ending today, bounded to 5-95."""
    rng = rng or random.Random()
    today = today or date.today()
    score = base - 10 + rng.random() * 20
    history: list[ScorePoint] = []
    for offset in range(days - 1, -1, -1):
        score = max(5.0, min(95.0, score + (rng.random() - 0.45) * 6))
        history.append(ScorePoint(date=(today - timedelta(days=offset)).isoformat(), score=round(score)))
    return history


_INDUSTRY_ROWS: list[tuple[str, str, str, int, str, list[str]]] = [
    ("1", "Cybersecurity", "cybersecurity", 88, "improving", [
        "Federal cyber mandate expands to contractors",
        "AI-driven threat detection funding +40%",
        "Critical infrastructure attacks up 65% YoY",
    ]),
    ("2", "Healthcare IT", "healthcare-it", 76, "improving", [
        "CMS interoperability rules take effect",
        "Telehealth reimbursement made permanent",
        "EHR modernization wave accelerates",
    ]),
    ("3", "Clean Energy", "clean-energy", 72, "stable", [
        "IRA tax credits driving adoption",
        "Grid modernization spending surges",
        "Solar supply chain stabilizing",
    ]),
    ("4", "Logistics & Supply Chain", "logistics-supply-chain", 45, "declining", [
        "Tariff escalation disrupts trade routes",
        "Freight rates volatile amid uncertainty",
        "Automation investment accelerating",
    ]),
    ("5", "FinTech", "fintech", 64, "stable", [
        "Embedded finance adoption growing",
        "Regulatory scrutiny on BNPL intensifies",
        "Open banking APIs expanding",
    ]),
    ("6", "Defense & Aerospace", "defense-aerospace", 91, "improving", [
        "NATO defense spending surge",
        "Space economy contracts expanding",
        "Autonomous systems budget +$12B",
    ]),
    ("7", "Commercial Real Estate", "commercial-real-estate", 28, "declining", [
        "Office vacancy at historic highs",
        "Conversion to residential accelerates",
        "REITs under pressure from rate environment",
    ]),
    ("8", "EdTech", "edtech", 55, "stable", [
        "AI tutoring platforms gaining traction",
        "Corporate L&D budgets shifting online",
        "Student loan policy changes impact demand",
    ]),
    ("9", "AI & Machine Learning", "ai-machine-learning", 95, "improving", [
        "Enterprise AI adoption at inflection point",
        "GPU demand outstripping supply",
        "Regulatory frameworks emerging globally",
    ]),
    ("10", "Manufacturing", "manufacturing", 52, "stable", [
        "Reshoring incentives boost domestic ops",
        "Labor shortage persists in skilled roles",
        "Smart factory adoption accelerating",
    ]),
    ("11", "Pharmaceuticals", "pharmaceuticals", 69, "improving", [
        "GLP-1 market explosion continues",
        "Drug pricing reform takes shape",
        "AI drug discovery cuts timelines 40%",
    ]),
    ("12", "Retail & E-Commerce", "retail-ecommerce", 41, "declining", [
        "Consumer spending softening",
        "Returns management costs surge",
        "Social commerce reshaping acquisition",
    ]),
]


def _build_industries() -> list[Industry]:
    rng = random.Random(20260210)
    return [
        Industry(
            id=ind_id, name=name, slug=slug, health_score=score,
            trend_direction=trend, top_signals=top,
            score_history=generate_score_history(score, rng=rng),
        )
        for ind_id, name, slug, score, trend, top in _INDUSTRY_ROWS
    ]


SEED_INDUSTRIES: list[Industry] = _build_industries()

SEED_SIGNALS: list[Signal] = [
    Signal(
        id="s1", title="White House Issues Executive Order on AI Safety Standards",
        summary=("New federal requirements mandate AI risk assessments for companies serving "
                 "government agencies. Compliance deadlines set for Q3 2026."),
        industry_tags=["9", "1"], signal_type="regulatory", sentiment="positive", severity=5,
        sales_implication=("Companies without AI governance frameworks will need to purchase "
                           "compliance solutions immediately."),
        source_url="#", published_at="2026-02-10",
    ),
    Signal(
        id="s2", title="Major Shipping Routes Disrupted by Geopolitical Tensions",
        summary=("Escalating conflicts in key maritime corridors force rerouting of 30% of "
                 "global container traffic."),
        industry_tags=["4", "10"], signal_type="political", sentiment="negative", severity=4,
        sales_implication=("Logistics companies facing margin pressure will seek automation and "
                           "route optimization tools."),
        source_url="#", published_at="2026-02-09",
    ),
    Signal(
        id="s3", title="Federal Cybersecurity Mandate Expands to All Government Contractors",
        summary=("CMMC 2.0 compliance now required for all tiers of government contracting. "
                 "An estimated 300,000 companies must achieve certification by 2027."),
        industry_tags=["1", "6"], signal_type="regulatory", sentiment="positive", severity=5,
        sales_implication=("SMBs in the government supply chain need managed security services "
                           "and compliance consulting."),
        source_url="#", published_at="2026-02-08",
    ),
    Signal(
        id="s4", title="Healthcare Systems Accelerating EHR Modernization",
        summary=("Major health systems announcing $2B+ in combined IT spending to replace "
                 "legacy EHR systems."),
        industry_tags=["2"], signal_type="economic", sentiment="positive", severity=4,
        sales_implication="Target mid-size health systems planning migrations; cycles run 6-12 months.",
        source_url="#", published_at="2026-02-07",
    ),
    Signal(
        id="s5", title="Commercial Office Vacancy Hits 22% Nationally",
        summary="Office vacancy rates reach historic highs as remote work permanence settles in.",
        industry_tags=["7"], signal_type="economic", sentiment="negative", severity=4,
        sales_implication=("Property managers and REITs need workspace analytics, conversion "
                           "consulting, or tenant experience platforms."),
        source_url="#", published_at="2026-02-06",
    ),
    Signal(
        id="s6", title="NATO Members Commit to 3% GDP Defense Spending",
        summary="Alliance members raise defense spending floors, unlocking an estimated $100B in procurement.",
        industry_tags=["6"], signal_type="political", sentiment="positive", severity=5,
        sales_implication="Prepare proposals for expanded procurement cycles in autonomy and cyber defense.",
        source_url="#", published_at="2026-02-05",
    ),
]

SEED_PROSPECTS: list[Prospect] = [
    Prospect(
        id="p1", company_name="Meridian Shield Systems", industry_id="1", vigyl_score=87,
        pressure_response="growth_mode",
        why_now="CMMC 2.0 deadline forces a security overhaul across its contractor base.",
        decision_makers=[{"name": "Dana Whitfield", "title": "CISO"}],
        related_signals=["s3"], location={"city": "Reston", "state": "VA", "country": "US"},
        annual_revenue="$240M", employee_count=1100,
    ),
    Prospect(
        id="p2", company_name="Harborline Freight", industry_id="4", vigyl_score=72,
        pressure_response="contracting",
        why_now="Route disruptions squeeze margins; leadership is funding automation pilots.",
        decision_makers=[{"name": "Luis Ortega", "title": "VP Operations"}],
        related_signals=["s2"], location={"city": "Savannah", "state": "GA", "country": "US"},
        annual_revenue="$410M", employee_count=2300,
    ),
    Prospect(
        id="p3", company_name="Northgate Health Partners", industry_id="2", vigyl_score=78,
        pressure_response="strategic_investment",
        why_now="Announced EHR replacement with an interoperability-first RFP this quarter.",
        decision_makers=[{"name": "Priya Raman", "title": "CIO"}],
        related_signals=["s4"], location={"city": "Columbus", "state": "OH", "country": "US"},
        annual_revenue="$1.2B", employee_count=8400,
    ),
    Prospect(
        id="p4", company_name="Atlas Orbital", industry_id="6", vigyl_score=81,
        pressure_response="growth_mode",
        why_now="New NATO procurement budgets open autonomy contracts it is bidding on.",
        decision_makers=[{"name": "Mark Bellamy", "title": "Chief Strategy Officer"}],
        related_signals=["s6"], location={"city": "Huntsville", "state": "AL", "country": "US"},
        annual_revenue="$95M", employee_count=420,
    ),
    Prospect(
        id="p5", company_name="Copperline Realty Trust", industry_id="7", vigyl_score=48,
        pressure_response="contracting",
        why_now="Portfolio write-downs push a conversion program for three downtown towers.",
        decision_makers=[{"name": "Elena Voss", "title": "Head of Asset Management"}],
        related_signals=["s5"], location={"city": "Chicago", "state": "IL", "country": "US"},
        annual_revenue="$310M", employee_count=260,
    ),
]


def industry_by_id(industry_id: str) -> Industry | None:
    return next((i for i in SEED_INDUSTRIES if i.id == industry_id), None)
