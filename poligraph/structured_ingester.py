"""Phase 1: candidate affairs from knowledge-graph conviction and charge claims."""

import logging
from typing import Dict, Iterable, List, Optional

from .interfaces import KnowledgeGraphClient, RateLimiter
from .logging_config import Timer, log_context, log_event, log_performance
from .models import (
    AffairSource,
    CandidateAffair,
    ClaimKind,
    DiscoveryPhase,
    Involvement,
    KnowledgeGraphClaim,
    PipelineConfig,
    PublicationStatus,
    SourceType,
    StructuredIngestResult,
    Subject,
)
from .offense_classifier import OffenseClassifier
from .utils import with_unverified_prefix

logger = logging.getLogger(__name__)

WIKIDATA_ENTITY_URL = "https://www.wikidata.org/wiki/{qid}"


class StructuredClaimIngester:
    """Turns "convicted of" / "charge" claims into candidate affairs.

    Convictions are published straight away; charges are held as drafts
    flagged for verification.
    """

    def __init__(
        self,
        client: KnowledgeGraphClient,
        classifier: Optional[OffenseClassifier] = None,
        rate_limiter: Optional[RateLimiter] = None,
        config: Optional[PipelineConfig] = None,
    ):
        self.client = client
        self.classifier = classifier or OffenseClassifier()
        self.rate_limiter = rate_limiter
        self.config = config or PipelineConfig()

    def _wait(self) -> None:
        if self.rate_limiter is not None:
            self.rate_limiter.wait_if_needed()

    def ingest(self, subjects: Iterable[Subject]) -> StructuredIngestResult:
        """Build candidates for every subject carrying an external id.

        Args:
            subjects: Politicians to look up

        Returns:
            StructuredIngestResult with candidates and per-subject errors
        """
        result = StructuredIngestResult()
        with_qid = [s for s in subjects if s.external_id]
        result.subjects_with_external_id = len(with_qid)

        if not with_qid:
            return result

        logger.info(f"🔎 Structured phase: {len(with_qid)} subjects with an external id")

        with Timer() as timer:
            for subject in with_qid:
                with log_context(subject_id=subject.id, phase="structured"):
                    try:
                        result.candidates.extend(self.ingest_subject(subject))
                    except Exception as e:
                        message = f"[structured] {subject.full_name} ({subject.external_id}): {e}"
                        logger.warning(message)
                        result.errors.append(message)

        log_performance(__name__, "structured_phase", timer.duration_ms)
        log_event(
            __name__,
            "structured_phase_completed",
            subjects=len(with_qid),
            candidates=len(result.candidates),
            errors=len(result.errors),
        )
        return result

    def ingest_subject(self, subject: Subject) -> List[CandidateAffair]:
        """Candidates for a single subject. Errors propagate to the caller."""
        self._wait()
        claims = self.client.get_claims(
            subject.external_id, [ClaimKind.CONVICTED_OF, ClaimKind.CHARGED_WITH]
        )
        if not claims:
            return []

        labels = self._resolve_labels(claims)
        return [self.build_candidate(subject, claim, labels[claim.value_id]) for claim in claims]

    def _resolve_labels(self, claims: List[KnowledgeGraphClaim]) -> Dict[str, str]:
        """Classifier label when mapped, else the graph's own label."""
        labels = {}
        unknown = []
        for claim in claims:
            if self.classifier.is_known(claim.value_id):
                labels[claim.value_id] = self.classifier.label(claim.value_id)
            elif claim.value_id not in unknown:
                unknown.append(claim.value_id)

        if unknown:
            self._wait()
            graph_labels = self.client.get_entity_labels(unknown)
            for offense_id in unknown:
                label = graph_labels.get(offense_id)
                labels[offense_id] = (
                    label[:1].upper() + label[1:] if label else self.classifier.label(offense_id)
                )
        return labels

    def build_candidate(
        self, subject: Subject, claim: KnowledgeGraphClaim, label: str
    ) -> CandidateAffair:
        category, status = self.classifier.classify(claim.value_id, claim.relation)
        is_conviction = claim.relation == ClaimKind.CONVICTED_OF
        qid = subject.external_id

        title = f"{label} — {subject.full_name}"
        description = (
            f"{label} ({'condamnation' if is_conviction else 'mise en cause'}) — "
            f"source Wikidata ({qid}, propriété {claim.relation.value})."
        )
        if not is_conviction:
            title = with_unverified_prefix(title)
            description = with_unverified_prefix(description)

        return CandidateAffair(
            subject_id=subject.id,
            subject_name=subject.full_name,
            title=title,
            description=description,
            category=category,
            status=status,
            involvement=Involvement.DIRECT if is_conviction else Involvement.MENTIONED_ONLY,
            confidence_score=(
                self.config.conviction_confidence
                if is_conviction
                else self.config.charge_confidence
            ),
            publication_status=(
                PublicationStatus.PUBLISHED if is_conviction else PublicationStatus.DRAFT
            ),
            charges=[label],
            sources=[
                AffairSource(
                    url=WIKIDATA_ENTITY_URL.format(qid=qid),
                    title=f"Wikidata — {subject.full_name}",
                    publisher="Wikidata",
                    source_type=SourceType.STRUCTURED,
                )
            ],
            phase=DiscoveryPhase.STRUCTURED,
        )
