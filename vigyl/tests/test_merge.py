"""Tests for merging AI industries onto the seed catalog and overlaying pipeline edits."""
from __future__ import annotations

import logging

from vigyl.merge import merge_industries, overlay_pipeline
from vigyl.models import PipelineItem
from vigyl.schemas import Industry, Prospect, ScorePoint
from vigyl.seed import SEED_INDUSTRIES

from conftest import sample_intelligence


def _by_id(industries: list[Industry]) -> dict[str, Industry]:
    return {i.id: i for i in industries}


class TestMergeIndustries:
    def test_output_matches_seed_length_and_order(self):
        merged = merge_industries(SEED_INDUSTRIES, sample_intelligence().industries)
        assert [i.id for i in merged] == [i.id for i in SEED_INDUSTRIES]

    def test_identity_preserved(self):
        merged = _by_id(merge_industries(SEED_INDUSTRIES, sample_intelligence().industries))
        fintech = merged["5"]
        assert (fintech.id, fintech.slug, fintech.name) == ("5", "fintech", "FinTech")

    def test_fields_adopted_on_slug_match(self):
        merged = _by_id(merge_industries(SEED_INDUSTRIES, sample_intelligence().industries))
        assert merged["5"].health_score == 80
        assert merged["5"].trend_direction == "improving"
        assert merged["5"].top_signals == ["Stablecoin bill passes Senate"]

    def test_name_match_keeps_seed_lists_when_ai_lists_empty(self):
        seed = _by_id(SEED_INDUSTRIES)
        merged = _by_id(merge_industries(SEED_INDUSTRIES, sample_intelligence().industries))
        healthcare = merged["2"]
        assert healthcare.health_score == 90
        assert healthcare.trend_direction == "declining"
        assert healthcare.top_signals == seed["2"].top_signals
        assert healthcare.score_history == seed["2"].score_history

    def test_score_history_adopted_when_present(self):
        history = [ScorePoint(date="2026-02-01", score=12)]
        ai = [Industry(name="EdTech", slug="edtech", health_score=12, score_history=history)]
        merged = _by_id(merge_industries(SEED_INDUSTRIES, ai))
        assert merged["8"].score_history == history

    def test_unmatched_seed_passes_through(self):
        merged = _by_id(merge_industries(SEED_INDUSTRIES, sample_intelligence().industries))
        assert merged["7"] == _by_id(SEED_INDUSTRIES)["7"]

    def test_unmatched_ai_dropped_and_logged(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="vigyl.merge"):
            merged = merge_industries(SEED_INDUSTRIES, sample_intelligence().industries)
        assert "Quantum Computing" not in {i.name for i in merged}
        assert "Quantum Computing" in caplog.text

    def test_empty_ai_returns_seed(self):
        assert merge_industries(SEED_INDUSTRIES, []) == SEED_INDUSTRIES

    def test_last_write_wins_on_collision(self):
        ai = [
            Industry(name="FinTech", slug="fintech", health_score=60),
            Industry(name="Fintech", slug="fintech", health_score=30),
        ]
        assert _by_id(merge_industries(SEED_INDUSTRIES, ai))["5"].health_score == 30

    def test_seed_not_mutated(self):
        before = [i.model_dump() for i in SEED_INDUSTRIES]
        merge_industries(SEED_INDUSTRIES, sample_intelligence().industries)
        assert [i.model_dump() for i in SEED_INDUSTRIES] == before


class TestOverlayPipeline:
    def _prospects(self) -> list[Prospect]:
        return list(sample_intelligence().prospects)

    def test_no_items_returns_prospects(self):
        prospects = self._prospects()
        assert overlay_pipeline(prospects, []) == prospects

    def test_match_by_prospect_id(self):
        item = PipelineItem(id=1, owner_id="u1", prospect_id="gp1", company_name="Ledgerly",
                            pipeline_stage="contacted", notes="Call Tuesday")
        result = overlay_pipeline(self._prospects(), [item])
        ledgerly = next(p for p in result if p.id == "gp1")
        assert ledgerly.pipeline_stage == "contacted"
        assert ledgerly.notes == "Call Tuesday"
        assert len(result) == 2

    def test_match_by_company_name(self):
        item = PipelineItem(id=1, owner_id="u1", prospect_id="old-prospect", company_name="LEDGERLY",
                            pipeline_stage="won", notes="")
        result = overlay_pipeline(self._prospects(), [item])
        assert [p.pipeline_stage for p in result] == ["won", "researching"]

    def test_standalone_items_listed_first(self):
        item = PipelineItem(id=7, owner_id="u1", prospect_id="manual-1", company_name="Orphan Co",
                            industry_id="9", vigyl_score=66, pipeline_stage="meeting_scheduled", notes="")
        result = overlay_pipeline(self._prospects(), [item])
        assert len(result) == 3
        assert result[0].company_name == "Orphan Co"
        assert result[0].pipeline_stage == "meeting_scheduled"
        assert result[0].vigyl_score == 66
