"""Base repository for affair persistence."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple
import logging
import uuid

from ..models import AffairSource, CandidateAffair, MergeResult, PersistedAffair, Subject


class AffairRepository(ABC):
    """Abstract persistence gateway used by the reconciliation engine."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def find_existing_affairs(self, subject_id: str) -> List[PersistedAffair]:
        """All stored affairs of a subject, newest first."""
        pass

    @abstractmethod
    def create_affair(
        self,
        candidate: CandidateAffair,
        slug: str,
        verified_at: Optional[datetime] = None,
    ) -> PersistedAffair:
        """Persist a candidate together with its sources, all or nothing.

        Raises:
            DuplicateAffairError: If a stored affair carries the same ECLI
            PersistenceError: On any other storage failure
        """
        pass

    @abstractmethod
    def slug_exists(self, slug: str) -> bool:
        pass

    @abstractmethod
    def list_subjects(
        self, limit: Optional[int] = None, name_filter: Optional[str] = None
    ) -> List[Subject]:
        """Subjects ordered by name, optionally filtered (case-insensitive)."""
        pass

    @abstractmethod
    def add_subject(self, subject: Subject) -> Subject:
        pass

    @abstractmethod
    def get_stats(self) -> Dict[str, int]:
        pass

    @abstractmethod
    def list_affairs(self, unverified_only: bool = False) -> List[PersistedAffair]:
        """Every stored affair, optionally only those not yet verified."""
        pass

    @abstractmethod
    def merge_affairs(self, keep_id: str, remove_id: str) -> MergeResult:
        """Fold ``remove_id`` into ``keep_id`` and delete it, all or nothing.

        Raises:
            AffairNotFoundError: If either affair is missing
            PersistenceError: If both ids are the same or storage fails
        """
        pass

    @abstractmethod
    def dismiss_pair(self, affair_id_a: str, affair_id_b: str) -> None:
        """Record that two affairs are not duplicates. Idempotent."""
        pass

    @abstractmethod
    def dismissed_pairs(self) -> Set[Tuple[str, str]]:
        """Dismissed pairs, each as a sorted id tuple."""
        pass

    @contextmanager
    def atomic(self, subject_id: str) -> Iterator["AffairRepository"]:
        """Serialize check-then-insert for one subject.

        Subclasses override this with a real transaction or lock.
        """
        yield self

    def get_affair(self, affair_id: str) -> Optional[PersistedAffair]:
        """Look up one affair by id (linear scan by default)."""
        for subject in self.list_subjects():
            for affair in self.find_existing_affairs(subject.id):
                if affair.id == affair_id:
                    return affair
        return None

    def build_affair(
        self,
        candidate: CandidateAffair,
        slug: str,
        verified_at: Optional[datetime] = None,
    ) -> PersistedAffair:
        """Map a candidate onto the stored shape.

        Sources without a publication date inherit the facts date.
        """
        sources = [
            source
            if source.published_at or not candidate.facts_date
            else source.model_copy(update={"published_at": candidate.facts_date})
            for source in candidate.sources
        ]
        return PersistedAffair(
            id=str(uuid.uuid4()),
            subject_id=candidate.subject_id,
            slug=slug,
            title=candidate.title,
            description=candidate.description,
            category=candidate.category,
            status=candidate.status,
            involvement=candidate.involvement,
            publication_status=candidate.publication_status,
            confidence_score=candidate.confidence_score,
            court=candidate.court,
            ecli=candidate.ecli,
            pourvoi_number=candidate.pourvoi_number,
            case_numbers=list(candidate.case_numbers),
            facts_date=candidate.facts_date,
            start_date=candidate.start_date,
            verdict_date=candidate.verdict_date,
            sources=sources,
            verified_at=verified_at,
            created_at=datetime.now(timezone.utc),
        )


def pair_key(affair_id_a: str, affair_id_b: str) -> Tuple[str, str]:
    return tuple(sorted((affair_id_a, affair_id_b)))


def plan_merge(
    keep: PersistedAffair, remove: PersistedAffair
) -> Tuple[List[AffairSource], Dict[str, Any]]:
    """Work out what merging ``remove`` into ``keep`` changes.

    Sources whose URL the kept affair already cites are dropped. Judicial
    identifiers the kept affair lacks are copied over and case numbers are
    unioned, kept affair first.

    Returns:
        The sources to move and the field updates for the kept affair
    """
    known_urls = set(keep.source_urls)
    moved = [source for source in remove.sources if source.url not in known_urls]

    updates: Dict[str, Any] = {}
    if not keep.ecli and remove.ecli:
        updates["ecli"] = remove.ecli
    if not keep.pourvoi_number and remove.pourvoi_number:
        updates["pourvoi_number"] = remove.pourvoi_number
    if not keep.court and remove.court:
        updates["court"] = remove.court
    extra_numbers = [n for n in remove.case_numbers if n not in keep.case_numbers]
    if extra_numbers:
        updates["case_numbers"] = list(keep.case_numbers) + list(dict.fromkeys(extra_numbers))

    return moved, updates
