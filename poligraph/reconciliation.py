"""
Reconciliation Engine

Phase 3 of discovery: decides for every candidate whether it duplicates a
stored affair (discarded) or is new (persisted under a unique slug).
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .affair_matcher import AffairMatcher
from .error_handling import DuplicateAffairError, ErrorHandler, SlugExhaustedError, SlugTakenError
from .logging_config import Timer, log_context, log_event, log_performance
from .models import (
    CandidateAffair,
    MatchConfidence,
    PersistedAffair,
    PipelineConfig,
    ReconciliationResult,
)
from .repositories.base import AffairRepository
from .utils import generate_slug, unique_slug

logger = logging.getLogger(__name__)

# Match buckets at which a candidate is dropped as already stored
DISCARD_CONFIDENCES = frozenset({MatchConfidence.HIGH, MatchConfidence.CERTAIN})


class ReconciliationEngine:
    """
    Persists new candidates and drops the ones already stored.

    Each candidate's check-then-insert runs inside ``repository.atomic`` so
    that two concurrent runs cannot both create the same affair.
    """

    def __init__(
        self,
        repository: AffairRepository,
        matcher: Optional[AffairMatcher] = None,
        config: Optional[PipelineConfig] = None,
        dry_run: Optional[bool] = None,
    ):
        self.repository = repository
        self.matcher = matcher or AffairMatcher()
        self.config = config or PipelineConfig()
        self.dry_run = self.config.dry_run if dry_run is None else dry_run
        self.error_handler = ErrorHandler(context={"phase": "reconciliation"}, raise_on_critical=False)

        # Affairs a dry run would have created, so later candidates see them
        self._planned: Dict[str, List[PersistedAffair]] = defaultdict(list)

    def reconcile(self, candidates: Iterable[CandidateAffair]) -> ReconciliationResult:
        """
        Reconcile candidates in arrival order.

        Args:
            candidates: Phase 1 and Phase 2 output

        Returns:
            ReconciliationResult with counters, errors and created affairs
        """
        candidates = list(candidates)
        result = ReconciliationResult()
        self._planned.clear()

        mode = " (dry run)" if self.dry_run else ""
        logger.info(f"🔄 Reconciliation{mode}: {len(candidates)} candidates")

        with Timer() as timer:
            for candidate in candidates:
                with log_context(subject_id=candidate.subject_id, phase="reconciliation"):
                    try:
                        affair = self.reconcile_candidate(candidate)
                    except DuplicateAffairError as e:
                        logger.info(f"⏭️  Concurrent duplicate skipped: {candidate.title} ({e})")
                        result.duplicates_skipped += 1
                        continue
                    except Exception as e:
                        self.error_handler.handle_error(
                            e, additional_context={"title": candidate.title}
                        )
                        result.errors.append(f"{candidate.title}: {e}")
                        continue

                if affair is None:
                    result.duplicates_skipped += 1
                    continue

                result.affairs_created += 1
                if affair.verified_at is not None:
                    result.affairs_published += 1
                else:
                    result.affairs_draft += 1
                result.created.append(affair)

        log_performance(__name__, "reconciliation", timer.duration_ms)
        log_event(
            __name__,
            "reconciliation_completed",
            candidates=len(candidates),
            created=result.affairs_created,
            duplicates=result.duplicates_skipped,
            errors=len(result.errors),
            dry_run=self.dry_run,
        )
        return result

    def reconcile_candidate(self, candidate: CandidateAffair) -> Optional[PersistedAffair]:
        """
        Reconcile one candidate.

        Returns:
            The created (or, in a dry run, planned) affair, or None when the
            candidate duplicates a stored one
        """
        with self.repository.atomic(candidate.subject_id):
            existing = self.repository.find_existing_affairs(candidate.subject_id)
            existing = existing + self._planned[candidate.subject_id]

            match = self.matcher.best_match(candidate, existing)
            if match is not None and match.confidence in DISCARD_CONFIDENCES:
                logger.debug(
                    f"Duplicate of {match.affair_id} ({match.confidence.value}, "
                    f"{match.score}): {candidate.title}"
                )
                return None

            verified_at = datetime.now(timezone.utc) if candidate.is_published else None

            if self.dry_run:
                affair = self.repository.build_affair(
                    candidate, self._choose_slug(candidate), verified_at
                )
                self._planned[candidate.subject_id].append(affair)
                return affair

            return self._create(candidate, verified_at)

    def _create(
        self, candidate: CandidateAffair, verified_at: Optional[datetime]
    ) -> PersistedAffair:
        # Slugs are unique across subjects, but atomic() only serializes one
        # subject: a writer for another subject may take the slug first.
        for _ in range(self.config.max_slug_attempts):
            slug = self._choose_slug(candidate)
            try:
                affair = self.repository.create_affair(candidate, slug, verified_at)
            except SlugTakenError:
                logger.debug(f"Slug '{slug}' taken concurrently, choosing another")
                continue
            logger.info(f"✅ Created {affair.publication_status.value} affair '{slug}'")
            return affair

        raise SlugExhaustedError(
            generate_slug(candidate.title, self.config.max_slug_length),
            self.config.max_slug_attempts,
        )

    def _choose_slug(self, candidate: CandidateAffair) -> str:
        return unique_slug(
            candidate.title,
            self._slug_taken,
            max_length=self.config.max_slug_length,
            max_attempts=self.config.max_slug_attempts,
        )

    def _slug_taken(self, slug: str) -> bool:
        if self.repository.slug_exists(slug):
            return True
        return any(
            affair.slug == slug
            for planned in self._planned.values()
            for affair in planned
        )
