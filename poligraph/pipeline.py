"""Batch discovery pipeline: structured claims, encyclopedia text, reconciliation."""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from .affair_matcher import AffairMatcher
from .ai_extractor import AIExtractor
from .logging_config import Timer, log_event, log_performance
from .models import Config, DiscoveryResult, PipelineConfig, Subject
from .rate_limiting import FixedIntervalRateLimiter, TokenBucketRateLimiter
from .reconciliation import ReconciliationEngine
from .repositories.base import AffairRepository
from .similarity_scoring import SimilarityScorer
from .structured_ingester import StructuredClaimIngester
from .text_extractor import UnstructuredTextExtractor
from .wikidata_client import WikidataClient
from .wikipedia_client import WikipediaClient

logger = logging.getLogger(__name__)


class AffairDiscoveryPipeline:
    """Runs the three discovery phases over a list of subjects.

    Either ingester may be omitted; its phase is then skipped.
    """

    def __init__(
        self,
        reconciler: ReconciliationEngine,
        structured_ingester: Optional[StructuredClaimIngester] = None,
        text_extractor: Optional[UnstructuredTextExtractor] = None,
        config: Optional[PipelineConfig] = None,
    ):
        self.reconciler = reconciler
        self.structured_ingester = structured_ingester
        self.text_extractor = text_extractor
        self.config = config or PipelineConfig()

    def run(
        self,
        subjects: Iterable[Subject],
        structured_only: bool = False,
        text_only: bool = False,
        dry_run: Optional[bool] = None,
    ) -> DiscoveryResult:
        """
        Discover affairs for the given subjects.

        Args:
            subjects: Politicians to process
            structured_only: Skip the encyclopedia phase
            text_only: Skip the knowledge-graph phase
            dry_run: Count would-be creations without writing (defaults to
                the configured value)

        Returns:
            DiscoveryResult summarizing the run
        """
        if structured_only and text_only:
            raise ValueError("structured_only and text_only are mutually exclusive")

        subjects = list(subjects)
        if dry_run is None:
            dry_run = self.config.dry_run

        result = DiscoveryResult(subjects_processed=len(subjects), dry_run=dry_run)
        logger.info(f"🚀 Discovery run over {len(subjects)} subject(s)")

        if not subjects:
            result.finished_at = datetime.now(timezone.utc)
            return result

        with Timer() as timer:
            structured = []
            if not text_only and self.structured_ingester is not None:
                phase1 = self.structured_ingester.ingest(subjects)
                structured = phase1.candidates
                result.subjects_with_external_id = phase1.subjects_with_external_id
                result.structured_candidates_found = len(structured)
                result.errors.extend(phase1.errors)

            text = []
            if not structured_only and self.text_extractor is not None:
                phase2 = self.text_extractor.extract(subjects, structured)
                text = phase2.candidates
                result.sections_found = phase2.sections_found
                result.ai_calls = phase2.ai_calls
                result.text_candidates_found = len(text)
                result.errors.extend(phase2.errors)

            candidates = structured + text
            if candidates:
                self.reconciler.dry_run = dry_run
                phase3 = self.reconciler.reconcile(candidates)
                result.duplicates_skipped = phase3.duplicates_skipped
                result.affairs_created = phase3.affairs_created
                result.affairs_published = phase3.affairs_published
                result.affairs_draft = phase3.affairs_draft
                result.errors.extend(phase3.errors)

        result.finished_at = datetime.now(timezone.utc)
        log_performance(__name__, "discovery_run", timer.duration_ms)
        log_event(
            __name__,
            "discovery_completed",
            **result.model_dump(exclude={"errors", "started_at", "finished_at"}),
            error_count=len(result.errors),
        )
        return result

    @classmethod
    def from_config(
        cls,
        config: Config,
        repository: AffairRepository,
        with_structured: bool = True,
        with_text: bool = True,
    ) -> "AffairDiscoveryPipeline":
        """Wire the default adapters (Wikidata, Wikipedia, Claude) from configuration."""
        kg = config.knowledge_graph
        structured_ingester = None
        text_extractor = None

        if with_structured:
            limiter = TokenBucketRateLimiter(kg.requests_per_second, kg.burst_size)
            structured_ingester = StructuredClaimIngester(
                WikidataClient(kg, rate_limiter=limiter), config=config.pipeline
            )

        if with_text:
            wikipedia = WikipediaClient(
                kg, rate_limiter=TokenBucketRateLimiter(kg.requests_per_second, kg.burst_size)
            )
            extractor = AIExtractor(
                config.ai.provider, config.ai.api_key, wikipedia_client=wikipedia, config=config.ai
            )
            text_extractor = UnstructuredTextExtractor(
                extractor,
                rate_limiter=FixedIntervalRateLimiter(config.pipeline.ai_call_interval),
                config=config.pipeline,
            )

        matcher = AffairMatcher(SimilarityScorer(config.scoring))
        reconciler = ReconciliationEngine(repository, matcher, config.pipeline)
        return cls(reconciler, structured_ingester, text_extractor, config.pipeline)
