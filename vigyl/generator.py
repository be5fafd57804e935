"""LLM-backed intelligence generation.

Implements the external generation calls the orchestrator depends on:

- ``generate_full_intelligence(profile)``: industries, signals and prospects
  for a user's market in one call.
- ``generate_ai_impact_for_industry(industry, profile)``: the AI impact
  analysis for a single industry, retried on transient failures.
- ``expand_prospects(...)``: additional prospects for one vertical.

Provider output is normalised through the pydantic records in
:mod:`vigyl.schemas`; unknown enum values collapse to defaults and numeric
indices are clamped.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
import random
import re
from datetime import date
from typing import Any, Protocol

from pydantic import ValidationError

from vigyl.schemas import (
    AIImpactAnalysis,
    GeneratedIntelligence,
    Industry,
    IndustryRef,
    Profile,
    Prospect,
)
from vigyl.seed import generate_score_history
from vigyl.utils import slugify

log = logging.getLogger(__name__)

MAX_RETRIES = 2
RETRY_DELAY = 1.0


class LLMCallError(Exception):
    """LLM call failed or returned unparseable output."""
    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class ProfileIncompleteError(ValueError):
    """The profile lacks the fields generation needs; nothing is attempted."""


def require_complete_profile(profile: Profile) -> None:
    if not profile.is_complete():
        raise ProfileIncompleteError(
            "Profile needs target industries or a business summary before generating intelligence"
        )


# ---------------------------------------------------------------------------
# LLM Client
# ---------------------------------------------------------------------------


class LLMClient:
    """JSON-mode chat client behind every Vigyl generation call.

    Provider and model come from ``LLM_PROVIDER`` / ``LLM_MODEL`` unless given.
    Intelligence payloads are large, so replies are capped at ``max_tokens``
    rather than the SDK defaults.
    """

    DEFAULT_MODELS = {
        "anthropic": "claude-haiku-4-5-20251001",
        "openai": "gpt-4o-mini",
        "openai_compatible": "gpt-4o-mini",
    }

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        max_tokens: int = 8192,
    ):
        self.provider = provider or os.environ.get("LLM_PROVIDER", "anthropic")
        if self.provider not in self.DEFAULT_MODELS:
            raise ValueError(f"Unknown LLM provider: {self.provider!r}")
        self.model = model or os.environ.get("LLM_MODEL") or self.DEFAULT_MODELS[self.provider]
        self.max_tokens = max_tokens
        if self.provider == "anthropic":
            self._client: Any = self._anthropic_client(api_key)
        else:
            self._client = self._openai_client(api_key, base_url)

    @staticmethod
    def _anthropic_client(api_key: str | None) -> Any:
        import anthropic
        return anthropic.AsyncAnthropic(api_key=api_key or os.environ.get("ANTHROPIC_API_KEY"))

    @staticmethod
    def _openai_client(api_key: str | None, base_url: str | None) -> Any:
        import openai
        kwargs: dict[str, Any] = {}
        key = api_key or os.environ.get("OPENAI_API_KEY")
        if key:
            kwargs["api_key"] = key
        url = base_url or os.environ.get("OPENAI_BASE_URL")
        if url:
            kwargs["base_url"] = url
        return openai.AsyncOpenAI(**kwargs)

    async def call(self, system: str, user: str) -> dict[str, Any]:
        """One prompt round-trip; transport failures are retryable, bad JSON is not."""
        try:
            if self.provider == "anthropic":
                response = await self._client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    system=system,
                    messages=[{"role": "user", "content": user}],
                )
                text = response.content[0].text.strip()
            else:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    response_format={"type": "json_object"},
                    messages=[
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                )
                text = response.choices[0].message.content or "{}"
        except Exception as exc:
            raise LLMCallError(f"LLM API call failed: {exc}", retryable=True) from exc
        return parse_json_object(text)


def parse_json_object(text: str) -> dict[str, Any]:
    """Extract the JSON object from a model reply (fenced or bare)."""
    m = re.search(r"```(?:json)?\s*(\{.*\})\s*```", text, re.DOTALL)
    if m:
        text = m.group(1)
    else:
        m = re.search(r"\{.*\}", text, re.DOTALL)
        if m:
            text = m.group(0)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise LLMCallError(f"LLM returned invalid JSON: {text[:200]}", retryable=False) from exc
    if not isinstance(data, dict):
        raise LLMCallError("LLM returned JSON that is not an object", retryable=False)
    return data


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

INTELLIGENCE_SYSTEM_PROMPT = """\
You are a B2B sales intelligence analyst. Generate realistic, actionable market \
intelligence for a sales professional. All data must be grounded: real-seeming \
company names, plausible financials, and current market dynamics. Today is {today}.

Respond with ONLY valid JSON:
{{
  "industries": [{{"id": "<id>", "name": "<name>", "slug": "<slug>", "healthScore": <0-100>,
                  "trendDirection": "<improving|declining|stable>", "topSignals": ["<signal>"]}}],
  "signals": [{{"id": "<id>", "title": "<title>", "summary": "<summary>", "industryTags": ["<industry id>"],
               "signalType": "<political|regulatory|economic|hiring|tech|supply_chain>",
               "sentiment": "<positive|negative|neutral>", "severity": <1-5>,
               "salesImplication": "<how this creates an opportunity>", "sourceUrl": "<url>",
               "publishedAt": "<YYYY-MM-DD>",
               "sources": [{{"name": "<publisher>", "url": "<url>", "publishedAt": "<YYYY-MM-DD>"}}]}}],
  "prospects": [{{"id": "<id>", "companyName": "<name>", "industryId": "<industry id>", "vigylScore": <0-100>,
                 "pressureResponse": "<contracting|strategic_investment|growth_mode>", "whyNow": "<trigger>",
                 "decisionMakers": [{{"name": "<name>", "title": "<title>", "linkedinUrl": "<url>"}}],
                 "relatedSignals": ["<signal id>"], "location": {{"city": "", "state": "", "country": ""}},
                 "annualRevenue": "<e.g. $120M>", "employeeCount": <int>}}]
}}
"""

INTELLIGENCE_USER_PROMPT = """\
Generate personalized sales intelligence for this user:

Company: {company}
Website: {website}
Business Summary: {summary}
Target Industries: {targets}
Location: {location}

Generate:
1. 6-8 industries relevant to this user's target market, with health scores, trend direction and top signals.
2. 15-20 market signals across these industries, each with a clear sales implication. Use dates near {today}.
3. 10-15 prospect companies in {location} and its sales territory, in the target industries, \
each with a compelling "Why Now" reason linked to the signals and realistic decision makers.

Make everything specific to the user's business and geography. No generic examples.
"""

AI_IMPACT_SYSTEM_PROMPT = """\
You are an expert AI industry analyst specializing in how artificial intelligence is \
transforming business functions across every sector. You classify business functions \
into three zones based on AI automation levels, and you understand value chains deeply. \
Today is {today}.

Respond with ONLY valid JSON:
{{
  "industryId": "<id>", "industryName": "<name>",
  "aiLedFunctions": [<function>], "collaborativeFunctions": [<function>], "humanLedFunctions": [<function>],
  "automationRate": <0-100>, "jobDisplacementIndex": <0-100>,
  "humanResilienceScore": <0-100>, "collaborativeOpportunityIndex": <0-100>,
  "valueChain": [{{"id": "<id>", "name": "<stage>", "zone": "<ai_led|collaborative|human_led>",
                  "automationLevel": <0-100>, "aiTools": ["<tool>"], "humanRoles": ["<role>"],
                  "opportunity": "<one sentence>"}}],
  "kpis": [{{"name": "<kpi>", "value": <number>, "unit": "<unit>", "trend": "<up|down|stable>",
            "context": "<one sentence>"}}]
}}
where <function> is {{"name": "<name>", "description": "<1-2 sentences>", "automationLevel": <0-100>,
"zone": "<zone of its list>", "jobsAffected": ["<job title>"],
"opportunityType": "<cost_reduction|revenue_growth|efficiency|new_capability|risk_reduction>",
"timeline": "<now|6_months|1_year|2_plus_years>"}}
"""

AI_IMPACT_USER_PROMPT = """\
Analyze AI's impact on this industry: {name} (ID: {id})
{context}
Classify 2-4 business functions into each zone:
- AI-Led (automationLevel 60-95): AI handles most of the work.
- Human-Led (automationLevel 5-20): humans remain essential.
- Collaborative (automationLevel 25-55): AI augments humans. The highest-opportunity zone.

Add aggregate scores, a 4-7 stage value chain, and 4-6 KPIs. Use real AI tools and real job titles.
"""

EXPAND_SYSTEM_PROMPT = """\
You are an elite B2B market intelligence analyst specializing in the {vertical} industry. \
Today is {today}.

Respond with ONLY valid JSON:
{{"prospects": [{{"id": "<id>", "companyName": "<name>", "industryId": "{vertical_id}", "vigylScore": <0-100>,
  "pressureResponse": "<contracting|strategic_investment|growth_mode>", "whyNow": "<trigger>",
  "decisionMakers": [{{"name": "<name>", "title": "<title>", "linkedinUrl": "<search url>"}}],
  "location": {{"city": "", "state": "", "country": ""}}, "annualRevenue": "<revenue>",
  "employeeCount": <int>, "scope": "<local|national|international>"}}]}}
"""

EXPAND_USER_PROMPT = """\
Generate 10-14 prospect companies in the "{vertical}" vertical for this user:

Company: {company}
Business: {summary}
Location: {location}
Business Type: {entity_type}

GEOGRAPHIC SCOPE:
{scope_instructions}

Do NOT include these companies (already known): {avoid}
Include a diverse mix of company sizes. Every company must plausibly operate in {vertical}.
"""

_SCOPE_INSTRUCTIONS = {
    "local": "Generate ONLY companies within ~150 miles of {location}. All scope values must be \"local\".",
    "national": "Generate ONLY companies in the same country but outside the user's state. "
                "All scope values must be \"national\".",
    "international": "Generate ONLY companies outside the user's country. "
                     "All scope values must be \"international\".",
    "all": "Generate a MIX: ~4 local (near {location}), ~4 national, ~4 international. "
           "Set scope correctly for each.",
}


def _profile_context(profile: Profile) -> str:
    lines = []
    if profile.entity_type:
        lines.append(f"The user's business model is: {profile.entity_type.upper()}.")
    if profile.user_persona:
        lines.append(f"Their role focus is: {profile.user_persona}.")
    if profile.ai_maturity_self:
        lines.append(f"Their AI maturity level is: {profile.ai_maturity_self}.")
    summary = profile.business_summary or profile.ai_summary
    if summary:
        lines.append(f"The user's business: {summary}")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------


def normalize_intelligence(raw: dict[str, Any], today: date | None = None) -> GeneratedIntelligence:
    """Validate a full-intelligence payload and fill generated defaults.

    Industries missing a slug get one derived from their name, and those
    without a score history get a synthesised 30-day series. Prospects start
    in the ``researching`` stage.
    """
    try:
        intel = GeneratedIntelligence.model_validate({
            "industries": raw.get("industries") or [],
            "signals": raw.get("signals") or [],
            "prospects": raw.get("prospects") or [],
        })
    except ValidationError as exc:
        raise LLMCallError(f"Intelligence payload failed validation: {exc}", retryable=False) from exc

    rng = random.Random()
    industries: list[Industry] = []
    for ind in intel.industries:
        update: dict[str, Any] = {}
        if not ind.slug:
            update["slug"] = slugify(ind.name)
        if not ind.score_history:
            update["score_history"] = generate_score_history(ind.health_score, today=today, rng=rng)
        industries.append(ind.model_copy(update=update) if update else ind)
    return intel.model_copy(update={"industries": industries})


def normalize_ai_impact(raw: dict[str, Any], industry: IndustryRef) -> AIImpactAnalysis:
    """Validate one AI impact payload and pin it to the requested industry."""
    payload = raw.get("analyses", raw)
    if isinstance(payload, list):
        if not payload:
            raise LLMCallError(f"Empty AI impact payload for {industry.name}", retryable=True)
        payload = payload[0]
    if not isinstance(payload, dict):
        raise LLMCallError(f"Malformed AI impact payload for {industry.name}", retryable=False)
    try:
        analysis = AIImpactAnalysis.model_validate({**payload, "industryId": industry.id})
    except ValidationError as exc:
        raise LLMCallError(f"AI impact payload failed validation: {exc}", retryable=False) from exc
    if not analysis.industry_name:
        analysis = analysis.model_copy(update={"industry_name": industry.name})
    return analysis


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class IntelligenceProvider(Protocol):
    async def generate_full_intelligence(self, profile: Profile) -> GeneratedIntelligence: ...

    async def generate_ai_impact_for_industry(
        self, industry: IndustryRef, profile: Profile,
    ) -> AIImpactAnalysis: ...

    async def expand_prospects(
        self, profile: Profile, vertical_name: str, vertical_id: str,
        scope: str, existing_company_names: list[str],
    ) -> list[Prospect]: ...


class LLMIntelligenceProvider:
    """Default provider: prompts an :class:`LLMClient` for each call.

    The client is created on first use so that constructing the provider
    never requires API credentials.
    """

    def __init__(self, client: LLMClient | None = None, retry_delay: float = RETRY_DELAY):
        self._client = client
        self.retry_delay = retry_delay

    @property
    def client(self) -> LLMClient:
        if self._client is None:
            self._client = LLMClient()
        return self._client

    async def generate_full_intelligence(self, profile: Profile) -> GeneratedIntelligence:
        require_complete_profile(profile)
        today = date.today()
        system = INTELLIGENCE_SYSTEM_PROMPT.format(today=today.isoformat())
        user = INTELLIGENCE_USER_PROMPT.format(
            company=profile.company_name or "Unknown",
            website=profile.website_url or "Not provided",
            summary=profile.business_summary or profile.ai_summary or "Not provided",
            targets=", ".join(profile.target_industries or []) or "General",
            location=profile.location(),
            today=today.isoformat(),
        )
        log.info("Generating intelligence for %s (industries: %s)",
                 profile.company_name, profile.target_industries)
        raw = await self.client.call(system, user)
        intel = normalize_intelligence(raw, today=today)
        log.info("Generated %d industries, %d signals, %d prospects",
                 len(intel.industries), len(intel.signals), len(intel.prospects))
        return intel

    async def generate_ai_impact_for_industry(
        self, industry: IndustryRef, profile: Profile,
    ) -> AIImpactAnalysis:
        system = AI_IMPACT_SYSTEM_PROMPT.format(today=date.today().isoformat())
        user = AI_IMPACT_USER_PROMPT.format(
            name=industry.name, id=industry.id, context=_profile_context(profile),
        )
        for attempt in range(MAX_RETRIES + 1):
            try:
                raw = await self.client.call(system, user)
                return normalize_ai_impact(raw, industry)
            except LLMCallError as exc:
                if not exc.retryable or attempt == MAX_RETRIES:
                    raise
                log.warning("AI impact attempt %d for %s failed: %s", attempt + 1, industry.name, exc)
                await asyncio.sleep(self.retry_delay * (attempt + 1))
        raise LLMCallError(f"AI impact generation exhausted retries for {industry.name}")

    async def expand_prospects(
        self, profile: Profile, vertical_name: str, vertical_id: str,
        scope: str, existing_company_names: list[str],
    ) -> list[Prospect]:
        require_complete_profile(profile)
        location = profile.location()
        system = EXPAND_SYSTEM_PROMPT.format(
            vertical=vertical_name, vertical_id=vertical_id, today=date.today().isoformat(),
        )
        user = EXPAND_USER_PROMPT.format(
            vertical=vertical_name,
            company=profile.company_name or "Unknown",
            summary=profile.business_summary or profile.ai_summary or "B2B services provider",
            location=location,
            entity_type=profile.entity_type or "b2b",
            scope_instructions=_SCOPE_INSTRUCTIONS.get(scope, _SCOPE_INSTRUCTIONS["all"]).format(location=location),
            avoid=", ".join(existing_company_names) or "none",
        )
        raw = await self.client.call(system, user)
        prospects = []
        for item in raw.get("prospects") or []:
            try:
                prospects.append(Prospect.model_validate({**item, "industryId": vertical_id}))
            except ValidationError as exc:
                log.warning("Skipping invalid expanded prospect for %s: %s", vertical_name, exc)
        return prospects
