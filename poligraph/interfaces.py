"""Contracts of the external services the pipeline consumes."""

from typing import Dict, Iterable, List, Protocol, runtime_checkable

from .models import ClaimKind, ExtractedAffair, JudicialSection, KnowledgeGraphClaim


@runtime_checkable
class KnowledgeGraphClient(Protocol):
    """Read access to structured claims about politicians."""

    def get_claims(
        self, external_id: str, relation_kinds: Iterable[ClaimKind]
    ) -> List[KnowledgeGraphClaim]:
        ...

    def get_entity_labels(self, ids: Iterable[str]) -> Dict[str, str]:
        ...


@runtime_checkable
class AIExtractionClient(Protocol):
    """Finds judicial sections in encyclopedia prose and extracts affairs."""

    def find_judicial_sections(self, subject_name: str) -> List[JudicialSection]:
        ...

    def extract(
        self, subject_name: str, heading: str, raw_text: str, page_url: str
    ) -> List[ExtractedAffair]:
        ...


@runtime_checkable
class RateLimiter(Protocol):
    """Blocks until the next external call is allowed."""

    def wait_if_needed(self) -> float:
        ...
