"""Tests for fuzzy industry matching and seed relevance filtering."""
from __future__ import annotations

import pytest

from vigyl.matching import (
    find_analysis,
    is_match,
    levenshtein,
    match_user_industries,
    relevant_prospects,
    relevant_signals,
    seed_snapshot,
    similarity,
)
from vigyl.schemas import AIImpactAnalysis, Industry
from vigyl.seed import SEED_INDUSTRIES, SEED_SIGNALS


class TestLevenshtein:
    def test_known_distance(self):
        assert levenshtein("kitten", "sitting") == 3

    def test_empty(self):
        assert levenshtein("", "") == 0
        assert levenshtein("abc", "") == 3
        assert levenshtein("", "abc") == 3

    def test_identical(self):
        assert levenshtein("fintech", "fintech") == 0


class TestSimilarity:
    @pytest.mark.parametrize("a,b", [
        ("fintech", "edtech"),
        ("healthcare it", "helthcare"),
        ("", "manufacturing"),
        ("defense & aerospace", "aerospace"),
        ("ab", "ba"),
    ])
    def test_symmetric(self, a, b):
        assert similarity(a, b) == similarity(b, a)

    def test_both_empty_is_identical(self):
        assert similarity("", "") == 1.0

    def test_bounds(self):
        assert similarity("abc", "xyz") == 0.0
        assert similarity("same", "same") == 1.0


class TestIsMatch:
    def test_substring_either_direction(self):
        assert is_match("Healthcare IT", "healthcare")
        assert is_match("FinTech", "FinTech Payments")

    def test_case_insensitive(self):
        assert is_match("CYBERSECURITY", "cybersecurity")

    def test_typo_within_threshold(self):
        assert is_match("Manufacturing", "Manufacturng")

    def test_unrelated(self):
        assert not is_match("FinTech", "Agriculture")
        assert not is_match("FinTech", "EdTech")


class TestMatchUserIndustries:
    def test_single_target(self):
        assert [i.id for i in match_user_industries(["FinTech"])] == ["5"]

    def test_loose_name(self):
        ids = [i.id for i in match_user_industries(["logistics"])]
        assert ids == ["4"]

    def test_no_match_falls_back_to_catalog(self):
        result = match_user_industries(["Underwater Basket Weaving"])
        assert [i.id for i in result] == [i.id for i in SEED_INDUSTRIES]

    @pytest.mark.parametrize("targets", [None, [], ["", "   "]])
    def test_no_targets_returns_catalog(self, targets):
        assert len(match_user_industries(targets)) == len(SEED_INDUSTRIES)

    def test_custom_catalog(self):
        catalog = [Industry(id="x", slug="x", name="Robotics")]
        assert match_user_industries(["robot"], catalog) == catalog


class TestRelevance:
    def test_signals_supplemented_with_high_severity(self):
        # Nothing in the seed is tagged FinTech, so high-severity signals fill in.
        signals = relevant_signals(["FinTech"])
        assert [s.id for s in signals] == ["s1", "s2", "s3", "s4", "s5"]

    def test_signals_all_when_no_targets(self):
        assert relevant_signals(None) == SEED_SIGNALS

    def test_prospects_matched_first_then_high_score(self):
        prospects = relevant_prospects(["Cybersecurity"])
        assert [p.id for p in prospects] == ["p1", "p2", "p3"]

    def test_prospects_supplemented(self):
        prospects = relevant_prospects(["FinTech"])
        assert len(prospects) == 3
        assert all(p.vigyl_score >= 70 for p in prospects)


class TestSeedSnapshot:
    def test_includes_every_seed_industry(self):
        snap = seed_snapshot(["FinTech"])
        assert [i.id for i in snap.industries] == [i.id for i in SEED_INDUSTRIES]
        assert snap.has_data
        assert snap.ai_impact == []

    def test_score_history_is_thirty_days(self):
        for ind in SEED_INDUSTRIES:
            assert len(ind.score_history) == 30
            assert all(5 <= p.score <= 95 for p in ind.score_history)


class TestFindAnalysis:
    def test_by_id(self):
        fintech = SEED_INDUSTRIES[4]
        analyses = [AIImpactAnalysis(industry_id="5", industry_name="Something else")]
        assert find_analysis(analyses, fintech) is analyses[0]

    def test_by_fuzzy_name(self):
        fintech = SEED_INDUSTRIES[4]
        analyses = [AIImpactAnalysis(industry_id="ai-7", industry_name="Fintech")]
        assert find_analysis(analyses, fintech) is analyses[0]

    def test_missing(self):
        assert find_analysis([], SEED_INDUSTRIES[0]) is None
