"""
Similarity Scoring System

Multi-evidence scoring of two affair records. The same scorer backs automatic
reconciliation and the operator-facing duplicate scan, so it holds no state
beyond its weights.
"""

import math
import re
import logging
from collections import Counter
from typing import List, Optional

from .models import AffairRecord, MatchConfidence, PairScore, ScoringConfig
from .utils import strip_accents

logger = logging.getLogger(__name__)

FRENCH_STOPWORDS = frozenset({
    "de", "du", "des", "le", "la", "les", "un", "une", "et", "en", "au",
    "aux", "pour", "par", "sur", "dans", "avec", "son", "sa", "ses", "ce",
    "cette", "qui", "que", "est", "a", "d", "l",
})

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (12.5 -> 13)."""
    return int(math.floor(value + 0.5))


def normalize_title(title: str) -> List[str]:
    """Tokenize a title for comparison.

    Lowercases, strips accents and punctuation, then drops one-letter tokens
    and French stopwords.
    """
    cleaned = _NON_ALNUM_RE.sub(" ", strip_accents(title.lower()))
    return [
        token for token in cleaned.split()
        if len(token) > 1 and token not in FRENCH_STOPWORDS
    ]


def title_overlap_ratio(title_a: str, title_b: str) -> float:
    """Share of common tokens relative to the longer token list."""
    tokens_a = normalize_title(title_a)
    tokens_b = normalize_title(title_b)
    if not tokens_a or not tokens_b:
        return 0.0
    common = sum((Counter(tokens_a) & Counter(tokens_b)).values())
    return common / max(len(tokens_a), len(tokens_b))


class SimilarityScorer:
    """
    Scores how likely two affair records describe the same proceeding.

    Exact identifiers (ECLI, appeal-filing number) short-circuit; otherwise
    case numbers, titles, category, dates and shared sources each add points.
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    def score(self, a: AffairRecord, b: AffairRecord) -> Optional[PairScore]:
        """
        Compare two affair records.

        Args:
            a: First record
            b: Second record

        Returns:
            PairScore, or None when the evidence stays under the match floor
        """
        cfg = self.config

        if a.ecli and b.ecli and a.ecli == b.ecli:
            return PairScore(score=min(cfg.ecli_score, cfg.max_score), reasons=["ECLI identique"])

        if a.pourvoi_number and b.pourvoi_number and a.pourvoi_number == b.pourvoi_number:
            return PairScore(
                score=min(cfg.pourvoi_score, cfg.max_score),
                reasons=["Numéro de pourvoi identique"],
            )

        total = 0
        reasons = []

        overlap = sorted(set(a.case_numbers) & set(b.case_numbers))
        if overlap:
            total += cfg.case_number_weight
            reasons.append(f"Numéro(s) de dossier commun(s) : {', '.join(overlap)}")

        ratio = title_overlap_ratio(a.title, b.title)
        if ratio >= cfg.title_min_ratio:
            total += round_half_up(ratio * cfg.title_weight)
            reasons.append(
                f"Titres similaires ({round_half_up(ratio * 100)}% de mots communs)"
            )

        if a.category == b.category:
            total += cfg.category_weight
            reasons.append("Même catégorie")

        date_a, date_b = a.primary_date, b.primary_date
        if date_a and date_b:
            days = abs((date_a - date_b).days)
            for bracket in cfg.date_brackets:
                if days <= bracket.max_days:
                    total += bracket.points
                    reasons.append(bracket.reason)
                    break

        shared_urls = set(a.source_urls) & set(b.source_urls)
        if shared_urls:
            total += cfg.source_overlap_weight
            reasons.append(f"{len(shared_urls)} source(s) en commun")

        if total < cfg.match_floor:
            return None

        return PairScore(score=min(total, cfg.max_score), reasons=reasons)

    def classify(self, score: int) -> Optional[MatchConfidence]:
        """Bucket a score; None below the match floor."""
        cfg = self.config
        if score >= cfg.certain_threshold:
            return MatchConfidence.CERTAIN
        if score >= cfg.high_threshold:
            return MatchConfidence.HIGH
        if score >= cfg.match_floor:
            return MatchConfidence.POSSIBLE
        return None
