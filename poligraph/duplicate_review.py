"""
Duplicate Review

Follow-up actions on the duplicate scan: merge a pair, dismiss a false
positive, merge every high-confidence pair at once, and report the backlog.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from .duplicate_scan import DuplicateScanner
from .error_handling import ErrorHandler
from .logging_config import Timer, log_event, log_performance
from .models import (
    AutoMergeResult,
    DuplicateGroup,
    MatchConfidence,
    MergeResult,
    PersistedAffair,
    ReviewStats,
)
from .repositories.base import AffairRepository

logger = logging.getLogger(__name__)

MERGEABLE_CONFIDENCES = frozenset({MatchConfidence.HIGH, MatchConfidence.CERTAIN})


class DuplicateReviewer:
    """Acts on duplicate groups found among unverified affairs.

    Verified affairs are left out of the review: an operator already vouched
    for them.
    """

    def __init__(
        self,
        repository: AffairRepository,
        scanner: Optional[DuplicateScanner] = None,
    ):
        self.repository = repository
        self.scanner = scanner or DuplicateScanner()
        self.error_handler = ErrorHandler(context={"phase": "review"}, raise_on_critical=False)

    def find_duplicates(self) -> List[DuplicateGroup]:
        """Scan unverified affairs subject by subject, skipping dismissed pairs.

        Returns:
            Groups of every subject, highest score first
        """
        by_subject: Dict[str, List[PersistedAffair]] = defaultdict(list)
        for affair in self.repository.list_affairs(unverified_only=True):
            by_subject[affair.subject_id].append(affair)

        dismissed = self.repository.dismissed_pairs()
        groups: List[DuplicateGroup] = []
        for affairs in by_subject.values():
            groups.extend(self.scanner.scan(affairs, dismissed).groups)

        groups.sort(key=lambda g: g.score, reverse=True)
        return groups

    def merge(self, keep_id: str, remove_id: str) -> MergeResult:
        result = self.repository.merge_affairs(keep_id, remove_id)
        log_event(
            __name__,
            "affairs_merged",
            kept=keep_id,
            removed=remove_id,
            sources_moved=result.sources_moved,
            identifiers_merged=result.identifiers_merged,
        )
        return result

    def dismiss(self, affair_id_a: str, affair_id_b: str) -> None:
        self.repository.dismiss_pair(affair_id_a, affair_id_b)
        log_event(__name__, "duplicate_dismissed", affairs=[affair_id_a, affair_id_b])

    def auto_merge(self, dry_run: bool = False) -> AutoMergeResult:
        """Merge every CERTAIN or HIGH pair.

        The affair citing more sources is kept, the first one on a tie. A
        pair touching an affair already merged away in this run is skipped.

        Args:
            dry_run: Count the merges without writing

        Returns:
            AutoMergeResult with counters and per-pair errors
        """
        groups = self.find_duplicates()
        result = AutoMergeResult(dry_run=dry_run)
        removed = set()

        with Timer() as timer:
            for group in groups:
                if group.confidence not in MERGEABLE_CONFIDENCES:
                    result.remaining_possible += 1
                    continue

                keep_id, remove_id = self.choose_kept(group)
                if keep_id in removed or remove_id in removed:
                    result.skipped += 1
                    continue

                if dry_run:
                    logger.info(f"[DRY RUN] Would merge {remove_id} into {keep_id}")
                    removed.add(remove_id)
                    result.merged += 1
                    continue

                try:
                    result.merges.append(self.merge(keep_id, remove_id))
                except Exception as e:
                    self.error_handler.handle_error(
                        e, additional_context={"keep_id": keep_id, "remove_id": remove_id}
                    )
                    result.errors.append(f"{remove_id} -> {keep_id}: {e}")
                    continue

                removed.add(remove_id)
                result.merged += 1

        log_performance(__name__, "auto_merge", timer.duration_ms)
        log_event(
            __name__,
            "auto_merge_completed",
            merged=result.merged,
            skipped=result.skipped,
            remaining_possible=result.remaining_possible,
            errors=len(result.errors),
            dry_run=dry_run,
        )
        return result

    @staticmethod
    def choose_kept(group: DuplicateGroup) -> Tuple[str, str]:
        """Return (keep_id, remove_id) for a pair."""
        first, second = group.affairs
        if first.source_count >= second.source_count:
            return first.id, second.id
        return second.id, first.id

    def stats(self) -> ReviewStats:
        groups = self.find_duplicates()
        stats = ReviewStats(
            unverified=len(self.repository.list_affairs(unverified_only=True)),
            duplicates=len(groups),
            dismissed=len(self.repository.dismissed_pairs()),
        )
        for group in groups:
            if group.confidence is not None:
                stats.by_confidence[group.confidence.value] += 1
        return stats
