"""Match a candidate affair against a subject's stored affairs."""

import logging
from typing import Iterable, List, Optional

from .models import AffairRecord, MatchResult, PersistedAffair
from .similarity_scoring import SimilarityScorer
from .utils import strip_unverified_prefix

logger = logging.getLogger(__name__)


def _without_unverified_prefix(record: AffairRecord) -> AffairRecord:
    stripped = strip_unverified_prefix(record.title)
    if stripped == record.title:
        return record
    return record.model_copy(update={"title": stripped})


class AffairMatcher:
    """Runs the similarity scorer over stored affairs and buckets the hits.

    Titles are compared without their "[À VÉRIFIER]" marker so that an
    unverified candidate still matches the verified record it duplicates.
    """

    def __init__(self, scorer: Optional[SimilarityScorer] = None):
        self.scorer = scorer or SimilarityScorer()

    def find_matches(
        self, candidate: AffairRecord, existing: Iterable[PersistedAffair]
    ) -> List[MatchResult]:
        """Score a candidate against stored affairs.

        Args:
            candidate: Affair about to be persisted
            existing: Stored affairs of the same subject

        Returns:
            Matches above the floor, best first
        """
        stripped = _without_unverified_prefix(candidate)
        matches = []

        for affair in existing:
            pair = self.scorer.score(stripped, _without_unverified_prefix(affair))
            if pair is None:
                continue
            confidence = self.scorer.classify(pair.score)
            if confidence is None:
                continue
            matches.append(
                MatchResult(
                    affair_id=affair.id,
                    confidence=confidence,
                    score=pair.score,
                    reasons=pair.reasons,
                )
            )

        matches.sort(key=lambda m: m.score, reverse=True)
        return matches

    def best_match(
        self, candidate: AffairRecord, existing: Iterable[PersistedAffair]
    ) -> Optional[MatchResult]:
        matches = self.find_matches(candidate, existing)
        return matches[0] if matches else None
