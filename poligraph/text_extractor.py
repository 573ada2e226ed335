"""Phase 2: candidate affairs extracted from encyclopedia prose."""

import logging
import time
from typing import Callable, Iterable, List, Optional
from urllib.parse import quote

from .error_handling import RateLimitError
from .interfaces import AIExtractionClient, RateLimiter
from .logging_config import Timer, log_context, log_event, log_performance
from .models import (
    PUBLISHABLE_INVOLVEMENTS,
    AffairSource,
    CandidateAffair,
    DiscoveryPhase,
    ExtractedAffair,
    JudicialSection,
    PipelineConfig,
    PublicationStatus,
    SourceType,
    Subject,
    TextExtractionResult,
)
from .utils import (
    clamp_confidence,
    extract_date_from_url,
    extract_publisher_from_url,
    parse_iso_date,
    with_unverified_prefix,
)

logger = logging.getLogger(__name__)

WIKIPEDIA_PAGE_URL = "https://fr.wikipedia.org/wiki/{title}"


def wikipedia_page_url(subject_name: str) -> str:
    """French Wikipedia URL for a page titled after the subject."""
    return WIKIPEDIA_PAGE_URL.format(title=quote(subject_name.replace(" ", "_"), safe="'()!*"))


class UnstructuredTextExtractor:
    """Runs AI extraction over judicial sections and filters the results.

    Every surviving candidate is a draft: prose extraction is trusted less
    than structured claims.
    """

    def __init__(
        self,
        client: AIExtractionClient,
        rate_limiter: Optional[RateLimiter] = None,
        config: Optional[PipelineConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.rate_limiter = rate_limiter
        self.config = config or PipelineConfig()
        self._sleep = sleep

    def extract(
        self,
        subjects: Iterable[Subject],
        structured_candidates: Iterable[CandidateAffair] = (),
    ) -> TextExtractionResult:
        """Extract candidates for every subject.

        Args:
            subjects: Politicians to look up
            structured_candidates: Phase 1 output, used to skip categories
                already covered for a subject

        Returns:
            TextExtractionResult with candidates, counters and errors
        """
        result = TextExtractionResult(
            skipped={"involvement": 0, "confidence": 0, "already_structured": 0}
        )
        covered = {(c.subject_id, c.category) for c in structured_candidates}
        subjects = list(subjects)

        logger.info(f"📖 Text phase: {len(subjects)} subjects")

        with Timer() as timer:
            for subject in subjects:
                with log_context(subject_id=subject.id, phase="text"):
                    try:
                        self._process_subject(subject, covered, result)
                    except Exception as e:
                        message = f"[text] {subject.full_name}: {e}"
                        logger.warning(message)
                        result.errors.append(message)

        log_performance(__name__, "text_phase", timer.duration_ms)
        log_event(
            __name__,
            "text_phase_completed",
            subjects=len(subjects),
            sections=result.sections_found,
            ai_calls=result.ai_calls,
            candidates=len(result.candidates),
            skipped=result.skipped,
            errors=len(result.errors),
        )
        return result

    def _process_subject(self, subject: Subject, covered: set, result: TextExtractionResult) -> None:
        sections = self.client.find_judicial_sections(subject.full_name)
        if not sections:
            return

        result.subjects_with_sections += 1
        result.sections_found += len(sections)
        page_url = wikipedia_page_url(subject.full_name)

        for section in sections:
            extracted = self._extract_with_backoff(subject, section, page_url, result)
            for affair in extracted:
                if affair.involvement not in PUBLISHABLE_INVOLVEMENTS:
                    result.skipped["involvement"] += 1
                    continue
                if affair.confidence_score < self.config.min_text_confidence:
                    result.skipped["confidence"] += 1
                    continue
                if (subject.id, affair.category) in covered:
                    result.skipped["already_structured"] += 1
                    continue
                result.candidates.append(self.build_candidate(subject, affair, page_url))

    def _extract_with_backoff(
        self,
        subject: Subject,
        section: JudicialSection,
        page_url: str,
        result: TextExtractionResult,
    ) -> List[ExtractedAffair]:
        """One AI call, retried after a pause when the service rate-limits us."""
        attempt = 0
        while True:
            if self.rate_limiter is not None:
                self.rate_limiter.wait_if_needed()
            result.ai_calls += 1
            try:
                return self.client.extract(
                    subject.full_name, section.heading, section.raw_text, page_url
                )
            except RateLimitError as e:
                attempt += 1
                if attempt > self.config.max_rate_limit_retries:
                    raise
                delay = max(e.retry_after or 0.0, self.config.rate_limit_backoff_seconds)
                logger.warning(
                    f"⏳ Rate limited on '{section.heading}' for {subject.full_name}, "
                    f"retry {attempt}/{self.config.max_rate_limit_retries} in {delay}s"
                )
                self._sleep(delay)

    def build_candidate(
        self, subject: Subject, affair: ExtractedAffair, page_url: str
    ) -> CandidateAffair:
        sources = [
            AffairSource(
                url=page_url,
                title=f"Wikipedia — {subject.full_name}",
                publisher="Wikipedia",
                source_type=SourceType.TEXT,
            )
        ]
        for url in affair.source_urls:
            if url == page_url:
                continue
            sources.append(
                AffairSource(
                    url=url,
                    title=affair.title,
                    publisher=extract_publisher_from_url(url),
                    source_type=SourceType.PRESS,
                    published_at=extract_date_from_url(url),
                )
            )

        return CandidateAffair(
            subject_id=subject.id,
            subject_name=subject.full_name,
            title=with_unverified_prefix(affair.title),
            description=affair.description,
            category=affair.category,
            status=affair.status,
            involvement=affair.involvement,
            facts_date=parse_iso_date(affair.facts_date),
            court=affair.court,
            charges=list(affair.charges),
            confidence_score=clamp_confidence(affair.confidence_score),
            publication_status=PublicationStatus.DRAFT,
            sources=sources,
            phase=DiscoveryPhase.TEXT,
        )
