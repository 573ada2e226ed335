"""In-memory affair repository, used by tests and dry runs."""

import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional, Set, Tuple

from ..error_handling import (
    AffairNotFoundError,
    DuplicateAffairError,
    PersistenceError,
    SlugTakenError,
)
from ..models import CandidateAffair, MergeResult, PersistedAffair, PublicationStatus, Subject
from .base import AffairRepository, pair_key, plan_merge


class InMemoryAffairRepository(AffairRepository):
    """Thread-safe dictionary-backed repository.

    ``atomic`` takes a per-subject lock, so concurrent reconciliations of the
    same subject cannot both pass the duplicate check.
    """

    def __init__(self, subjects: Optional[List[Subject]] = None):
        super().__init__()
        self._subjects: Dict[str, Subject] = {}
        self._affairs: Dict[str, PersistedAffair] = {}
        self._dismissed: Set[Tuple[str, str]] = set()
        self._lock = threading.RLock()
        self._subject_locks = defaultdict(threading.RLock)
        self.create_calls = 0

        for subject in subjects or []:
            self.add_subject(subject)

    @contextmanager
    def atomic(self, subject_id: str):
        with self._lock:
            subject_lock = self._subject_locks[subject_id]
        with subject_lock:
            yield self

    def add_subject(self, subject: Subject) -> Subject:
        with self._lock:
            self._subjects[subject.id] = subject
        return subject

    def list_subjects(
        self, limit: Optional[int] = None, name_filter: Optional[str] = None
    ) -> List[Subject]:
        with self._lock:
            subjects = sorted(self._subjects.values(), key=lambda s: s.full_name)
        if name_filter:
            needle = name_filter.lower()
            subjects = [s for s in subjects if needle in s.full_name.lower()]
        return subjects[:limit] if limit else subjects

    def find_existing_affairs(self, subject_id: str) -> List[PersistedAffair]:
        with self._lock:
            affairs = [a for a in self._affairs.values() if a.subject_id == subject_id]
        return sorted(affairs, key=lambda a: a.created_at, reverse=True)

    def get_affair(self, affair_id: str) -> Optional[PersistedAffair]:
        with self._lock:
            return self._affairs.get(affair_id)

    def slug_exists(self, slug: str) -> bool:
        with self._lock:
            return any(a.slug == slug for a in self._affairs.values())

    def create_affair(
        self,
        candidate: CandidateAffair,
        slug: str,
        verified_at: Optional[datetime] = None,
    ) -> PersistedAffair:
        affair = self.build_affair(candidate, slug, verified_at)
        with self._lock:
            self.create_calls += 1
            for existing in self._affairs.values():
                if affair.ecli and existing.ecli == affair.ecli:
                    raise DuplicateAffairError(
                        f"ECLI {affair.ecli} already stored as {existing.id}",
                        ecli=affair.ecli,
                    )
                if existing.slug == slug:
                    raise SlugTakenError(slug)
            self._affairs[affair.id] = affair
        return affair

    def list_affairs(self, unverified_only: bool = False) -> List[PersistedAffair]:
        with self._lock:
            affairs = list(self._affairs.values())
        if unverified_only:
            affairs = [a for a in affairs if a.verified_at is None]
        return sorted(affairs, key=lambda a: a.created_at)

    def merge_affairs(self, keep_id: str, remove_id: str) -> MergeResult:
        if keep_id == remove_id:
            raise PersistenceError("Cannot merge an affair into itself", "invalid_merge")

        with self._lock:
            keep = self._affairs.get(keep_id)
            remove = self._affairs.get(remove_id)
            if keep is None:
                raise AffairNotFoundError(keep_id)
            if remove is None:
                raise AffairNotFoundError(remove_id)

            moved, updates = plan_merge(keep, remove)
            kept = keep.model_copy(
                update={**updates, "sources": list(keep.sources) + moved}
            )
            del self._affairs[remove_id]
            self._affairs[keep_id] = kept
            self._dismissed = {p for p in self._dismissed if remove_id not in p}

        return MergeResult(
            kept=kept,
            removed_id=remove_id,
            sources_moved=len(moved),
            identifiers_merged=sorted(updates),
        )

    def dismiss_pair(self, affair_id_a: str, affair_id_b: str) -> None:
        with self._lock:
            for affair_id in (affair_id_a, affair_id_b):
                if affair_id not in self._affairs:
                    raise AffairNotFoundError(affair_id)
            self._dismissed.add(pair_key(affair_id_a, affair_id_b))

    def dismissed_pairs(self) -> Set[Tuple[str, str]]:
        with self._lock:
            return set(self._dismissed)

    def store_affair(self, affair: PersistedAffair) -> PersistedAffair:
        """Insert an already-built affair (seeding)."""
        with self._lock:
            self._affairs[affair.id] = affair
        return affair

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            affairs = list(self._affairs.values())
            subjects = len(self._subjects)
            dismissed = len(self._dismissed)
        published = sum(
            1 for a in affairs if a.publication_status == PublicationStatus.PUBLISHED
        )
        return {
            "subjects": subjects,
            "affairs": len(affairs),
            "published": published,
            "draft": len(affairs) - published,
            "sources": sum(len(a.sources) for a in affairs),
            "dismissed": dismissed,
        }
