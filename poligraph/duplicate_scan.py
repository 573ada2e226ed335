"""Operator-facing duplicate scan over one subject's stored affairs."""

import logging
from typing import AbstractSet, List, Optional, Sequence, Tuple

from .models import AffairSummary, DuplicateGroup, DuplicateScanResult, PersistedAffair
from .repositories.base import AffairRepository, pair_key
from .similarity_scoring import SimilarityScorer

logger = logging.getLogger(__name__)


class DuplicateScanner:
    """Scores every unordered pair of affairs once. Read-only."""

    def __init__(self, scorer: Optional[SimilarityScorer] = None):
        self.scorer = scorer or SimilarityScorer()

    def scan(
        self,
        affairs: Sequence[PersistedAffair],
        dismissed: Optional[AbstractSet[Tuple[str, str]]] = None,
    ) -> DuplicateScanResult:
        """Find likely duplicate pairs.

        Args:
            affairs: Affairs of a single subject
            dismissed: Sorted id pairs an operator marked as distinct

        Returns:
            Groups sorted by score (highest first) and the number of affairs
            scanned
        """
        affairs = list(affairs)
        if len(affairs) < 2:
            return DuplicateScanResult(groups=[], total=len(affairs))

        groups: List[DuplicateGroup] = []
        seen = set(dismissed or ())

        for i, first in enumerate(affairs):
            for second in affairs[i + 1:]:
                key = pair_key(first.id, second.id)
                if key in seen:
                    continue
                seen.add(key)

                pair = self.scorer.score(first, second)
                if pair is None:
                    continue

                groups.append(
                    DuplicateGroup(
                        score=pair.score,
                        reasons=pair.reasons,
                        affairs=[
                            AffairSummary.from_affair(first),
                            AffairSummary.from_affair(second),
                        ],
                        confidence=self.scorer.classify(pair.score),
                    )
                )

        groups.sort(key=lambda g: g.score, reverse=True)
        logger.info(f"🔍 Duplicate scan: {len(groups)} group(s) across {len(affairs)} affairs")
        return DuplicateScanResult(groups=groups, total=len(affairs))

    def scan_subject(self, repository: AffairRepository, subject_id: str) -> DuplicateScanResult:
        affairs = repository.find_existing_affairs(subject_id)
        return self.scan(affairs, repository.dismissed_pairs())
