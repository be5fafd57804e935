"""Tests for LLM output parsing, normalisation and the default provider's retry policy."""
from __future__ import annotations

from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from vigyl.generator import (
    LLMCallError,
    LLMClient,
    LLMIntelligenceProvider,
    ProfileIncompleteError,
    normalize_ai_impact,
    normalize_intelligence,
    parse_json_object,
)
from vigyl.schemas import IndustryRef, Profile


def _provider(*responses) -> tuple[LLMIntelligenceProvider, MagicMock]:
    client = MagicMock()
    client.call = AsyncMock(side_effect=list(responses))
    return LLMIntelligenceProvider(client=client, retry_delay=0), client


def test_unknown_llm_provider_rejected(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER", "mistral")
    with pytest.raises(ValueError, match="mistral"):
        LLMClient()


class TestParseJsonObject:
    def test_bare(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        assert parse_json_object('Here you go:\n```json\n{"a": [1, 2]}\n```') == {"a": [1, 2]}

    def test_surrounding_prose(self):
        assert parse_json_object('Sure! {"ok": true} Hope this helps.') == {"ok": True}

    def test_invalid_is_not_retryable(self):
        with pytest.raises(LLMCallError) as exc_info:
            parse_json_object("no json here")
        assert exc_info.value.retryable is False

    def test_array_rejected(self):
        with pytest.raises(LLMCallError):
            parse_json_object("[1, 2, 3]")


class TestNormalizeIntelligence:
    def test_defaults_filled(self):
        intel = normalize_intelligence({
            "industries": [{"name": "Logistics & Supply Chain", "healthScore": 140, "trendDirection": "UP"}],
            "signals": [{"id": "s", "title": "T", "severity": 9, "signalType": "weather"}],
            "prospects": [{"id": "p", "companyName": "Freightly", "pipelineStage": None, "notes": None}],
        }, today=date(2026, 2, 10))

        ind = intel.industries[0]
        assert ind.slug == "logistics-supply-chain"
        assert ind.health_score == 100
        assert ind.trend_direction == "stable"
        assert len(ind.score_history) == 30
        assert ind.score_history[-1].date == "2026-02-10"

        assert intel.signals[0].severity == 5
        assert intel.signals[0].signal_type == "economic"
        assert intel.prospects[0].pipeline_stage == "researching"
        assert intel.prospects[0].notes == ""

    def test_missing_sections(self):
        intel = normalize_intelligence({})
        assert intel.industries == [] and intel.signals == [] and intel.prospects == []

    def test_invalid_payload_raises(self):
        with pytest.raises(LLMCallError):
            normalize_intelligence({"industries": [{"healthScore": 50}]})


class TestNormalizeAIImpact:
    REF = IndustryRef(id="5", name="FinTech")

    def test_pins_requested_industry(self):
        analysis = normalize_ai_impact({"industryId": "wrong", "automationRate": 250}, self.REF)
        assert analysis.industry_id == "5"
        assert analysis.industry_name == "FinTech"
        assert analysis.automation_rate == 100

    def test_unwraps_analyses_list(self):
        raw = {"analyses": [{"industryName": "Fintech", "aiLedFunctions": [{"name": "KYC", "zone": "ai_led"}]}]}
        analysis = normalize_ai_impact(raw, self.REF)
        assert analysis.industry_name == "Fintech"
        assert analysis.ai_led_functions[0].name == "KYC"

    def test_null_lists_become_empty(self):
        analysis = normalize_ai_impact({"kpis": None, "valueChain": None}, self.REF)
        assert analysis.kpis == [] and analysis.value_chain == []

    def test_empty_list_is_retryable(self):
        with pytest.raises(LLMCallError) as exc_info:
            normalize_ai_impact({"analyses": []}, self.REF)
        assert exc_info.value.retryable is True


class TestLLMIntelligenceProvider:
    @pytest.mark.asyncio
    async def test_full_intelligence(self):
        provider, client = _provider({"industries": [{"name": "FinTech", "healthScore": 70}]})
        intel = await provider.generate_full_intelligence(Profile(target_industries=["FinTech"]))
        assert intel.industries[0].slug == "fintech"
        system, user = client.call.call_args.args
        assert "FinTech" in user

    @pytest.mark.asyncio
    async def test_incomplete_profile_never_calls(self):
        provider, client = _provider()
        with pytest.raises(ProfileIncompleteError):
            await provider.generate_full_intelligence(Profile(company_name="Acme"))
        client.call.assert_not_called()

    @pytest.mark.asyncio
    async def test_ai_impact_retries_retryable_errors(self):
        provider, client = _provider(
            LLMCallError("overloaded", retryable=True),
            {"automationRate": 42},
        )
        analysis = await provider.generate_ai_impact_for_industry(IndustryRef(id="1", name="Cyber"), Profile())
        assert analysis.automation_rate == 42
        assert client.call.await_count == 2

    @pytest.mark.asyncio
    async def test_ai_impact_gives_up_after_max_retries(self):
        provider, client = _provider(*[LLMCallError("overloaded", retryable=True)] * 3)
        with pytest.raises(LLMCallError):
            await provider.generate_ai_impact_for_industry(IndustryRef(id="1", name="Cyber"), Profile())
        assert client.call.await_count == 3

    @pytest.mark.asyncio
    async def test_ai_impact_does_not_retry_bad_output(self):
        provider, client = _provider(LLMCallError("invalid JSON", retryable=False))
        with pytest.raises(LLMCallError):
            await provider.generate_ai_impact_for_industry(IndustryRef(id="1", name="Cyber"), Profile())
        assert client.call.await_count == 1

    @pytest.mark.asyncio
    async def test_expand_prospects_skips_invalid_entries(self):
        provider, _ = _provider({"prospects": [
            {"id": "n1", "companyName": "Paywise", "scope": "LOCAL"},
            {"id": "n2"},
        ]})
        profile = Profile(business_summary="Payments consulting", location_city="Austin")
        prospects = await provider.expand_prospects(profile, "FinTech", "5", "local", ["Ledgerly"])
        assert [(p.company_name, p.industry_id, p.scope) for p in prospects] == [("Paywise", "5", "local")]
