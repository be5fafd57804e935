"""Fuzzy matching of free-text industry names against the seed catalog.

AI output and user profiles name industries loosely ("Fintech", "Healthcare
technology", "Logistics"), so a name matches a catalog entry when either
lower-cased string contains the other, or when their normalized Levenshtein
similarity exceeds ``SIMILARITY_THRESHOLD``.
"""
from __future__ import annotations

from vigyl.schemas import AIImpactAnalysis, Industry, Prospect, Signal, Snapshot
from vigyl.seed import SEED_INDUSTRIES, SEED_PROSPECTS, SEED_SIGNALS

SIMILARITY_THRESHOLD = 0.6

MIN_RELEVANT_SIGNALS = 5
MIN_RELEVANT_PROSPECTS = 3
HIGH_SEVERITY = 4
HIGH_VIGYL_SCORE = 70


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit insert/delete/substitute costs."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j - 1], previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """``1 - levenshtein(a, b) / max(len(a), len(b))``; two empty strings are identical."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / max_len


def is_match(name: str, target: str) -> bool:
    n = (name or "").lower()
    t = (target or "").lower()
    return n in t or t in n or similarity(t, n) > SIMILARITY_THRESHOLD


def match_user_industries(
    target_industries: list[str] | None,
    catalog: list[Industry] | None = None,
) -> list[Industry]:
    """Catalog entries relevant to the user's stated target industries.

    Falls back to the whole catalog when there are no targets or nothing
    matches, so the result is never empty for a non-empty catalog.
    """
    catalog = SEED_INDUSTRIES if catalog is None else catalog
    targets = [t for t in (target_industries or []) if t and t.strip()]
    if not targets:
        return list(catalog)
    matched = [ind for ind in catalog if any(is_match(ind.name, t) for t in targets)]
    return matched or list(catalog)


def relevant_signals(target_industries: list[str] | None) -> list[Signal]:
    matched_ids = {i.id for i in match_user_industries(target_industries)}
    if len(matched_ids) == len(SEED_INDUSTRIES):
        return list(SEED_SIGNALS)

    relevant = [s for s in SEED_SIGNALS if any(tag in matched_ids for tag in s.industry_tags)]
    if len(relevant) < MIN_RELEVANT_SIGNALS:
        extras = [s for s in SEED_SIGNALS if s not in relevant and s.severity >= HIGH_SEVERITY]
        relevant.extend(extras[:MIN_RELEVANT_SIGNALS - len(relevant)])
    return relevant


def relevant_prospects(target_industries: list[str] | None) -> list[Prospect]:
    matched_ids = {i.id for i in match_user_industries(target_industries)}
    if len(matched_ids) == len(SEED_INDUSTRIES):
        return list(SEED_PROSPECTS)

    relevant = [p for p in SEED_PROSPECTS if p.industry_id in matched_ids]
    if len(relevant) < MIN_RELEVANT_PROSPECTS:
        extras = [p for p in SEED_PROSPECTS if p not in relevant and p.vigyl_score >= HIGH_VIGYL_SCORE]
        relevant.extend(extras[:MIN_RELEVANT_PROSPECTS - len(relevant)])
    return relevant


def seed_snapshot(target_industries: list[str] | None = None) -> Snapshot:
    """Seed fallback shown before any generated data exists.

    Every seed industry is included; signals and prospects are narrowed to the
    user's target industries.
    """
    return Snapshot(
        industries=list(SEED_INDUSTRIES),
        signals=relevant_signals(target_industries),
        prospects=relevant_prospects(target_industries),
    )


def find_analysis(
    analyses: list[AIImpactAnalysis], industry: Industry,
) -> AIImpactAnalysis | None:
    """Resolve an industry's AI impact entry by id, then by fuzzy name."""
    for a in analyses:
        if a.industry_id == industry.id:
            return a
    for a in analyses:
        if a.industry_name and is_match(a.industry_name, industry.name):
            return a
    return None
