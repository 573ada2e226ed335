"""Data models for judicial affair discovery and reconciliation."""

from typing import Dict, List, Optional
from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AffairCategory(str, Enum):
    """Offense categories an affair can be filed under."""

    CORRUPTION = "CORRUPTION"
    CORRUPTION_PASSIVE = "CORRUPTION_PASSIVE"
    TRAFIC_INFLUENCE = "TRAFIC_INFLUENCE"
    PRISE_ILLEGALE_INTERETS = "PRISE_ILLEGALE_INTERETS"
    FAVORITISME = "FAVORITISME"
    DETOURNEMENT_FONDS_PUBLICS = "DETOURNEMENT_FONDS_PUBLICS"
    FRAUDE_FISCALE = "FRAUDE_FISCALE"
    BLANCHIMENT = "BLANCHIMENT"
    ABUS_BIENS_SOCIAUX = "ABUS_BIENS_SOCIAUX"
    ABUS_CONFIANCE = "ABUS_CONFIANCE"
    EMPLOI_FICTIF = "EMPLOI_FICTIF"
    FINANCEMENT_ILLEGAL_CAMPAGNE = "FINANCEMENT_ILLEGAL_CAMPAGNE"
    FINANCEMENT_ILLEGAL_PARTI = "FINANCEMENT_ILLEGAL_PARTI"
    HARCELEMENT_MORAL = "HARCELEMENT_MORAL"
    HARCELEMENT_SEXUEL = "HARCELEMENT_SEXUEL"
    AGRESSION_SEXUELLE = "AGRESSION_SEXUELLE"
    VIOLENCE = "VIOLENCE"
    MENACE = "MENACE"
    DIFFAMATION = "DIFFAMATION"
    INJURE = "INJURE"
    INCITATION_HAINE = "INCITATION_HAINE"
    FAUX_ET_USAGE_FAUX = "FAUX_ET_USAGE_FAUX"
    RECEL = "RECEL"
    CONFLIT_INTERETS = "CONFLIT_INTERETS"
    AUTRE = "AUTRE"


class AffairStatus(str, Enum):
    """Stage reached by the legal proceeding."""

    ENQUETE_PRELIMINAIRE = "ENQUETE_PRELIMINAIRE"
    INSTRUCTION = "INSTRUCTION"
    MISE_EN_EXAMEN = "MISE_EN_EXAMEN"
    RENVOI_TRIBUNAL = "RENVOI_TRIBUNAL"
    PROCES_EN_COURS = "PROCES_EN_COURS"
    CONDAMNATION_PREMIERE_INSTANCE = "CONDAMNATION_PREMIERE_INSTANCE"
    APPEL_EN_COURS = "APPEL_EN_COURS"
    CONDAMNATION_DEFINITIVE = "CONDAMNATION_DEFINITIVE"
    RELAXE = "RELAXE"
    ACQUITTEMENT = "ACQUITTEMENT"
    NON_LIEU = "NON_LIEU"
    PRESCRIPTION = "PRESCRIPTION"
    CLASSEMENT_SANS_SUITE = "CLASSEMENT_SANS_SUITE"


class Involvement(str, Enum):
    """Legal role of the politician in the affair."""

    DIRECT = "DIRECT"
    INDIRECT = "INDIRECT"
    MENTIONED_ONLY = "MENTIONED_ONLY"
    VICTIM = "VICTIM"
    PLAINTIFF = "PLAINTIFF"


PUBLISHABLE_INVOLVEMENTS = frozenset(
    {Involvement.DIRECT, Involvement.VICTIM, Involvement.PLAINTIFF}
)


class PublicationStatus(str, Enum):
    """Public visibility of an affair."""

    PUBLISHED = "PUBLISHED"
    DRAFT = "DRAFT"


class SourceType(str, Enum):
    """Where a source reference comes from."""

    STRUCTURED = "STRUCTURED"
    TEXT = "TEXT"
    PRESS = "PRESS"


class ClaimKind(str, Enum):
    """Knowledge-graph relations that point at an offense entity."""

    CONVICTED_OF = "P1399"
    CHARGED_WITH = "P1595"


class MatchConfidence(str, Enum):
    """Bucket a similarity score falls into."""

    CERTAIN = "CERTAIN"
    HIGH = "HIGH"
    POSSIBLE = "POSSIBLE"


class DiscoveryPhase(str, Enum):
    """Pipeline phase that produced a candidate."""

    STRUCTURED = "structured"
    TEXT = "text"


class AffairSource(BaseModel):
    """A reference backing an affair."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str
    publisher: str
    source_type: SourceType
    published_at: Optional[date] = None


class Subject(BaseModel):
    """A politician the pipeline looks for affairs about."""

    id: str
    full_name: str
    external_id: Optional[str] = None


class AffairRecord(BaseModel):
    """Fields shared by every affair-like record the scorer compares."""

    title: str
    category: AffairCategory
    ecli: Optional[str] = None
    pourvoi_number: Optional[str] = None
    case_numbers: List[str] = Field(default_factory=list)
    facts_date: Optional[date] = None
    start_date: Optional[date] = None
    verdict_date: Optional[date] = None
    sources: List[AffairSource] = Field(default_factory=list)

    @property
    def primary_date(self) -> Optional[date]:
        """Facts date, else proceeding start, else verdict date."""
        return self.facts_date or self.start_date or self.verdict_date

    @property
    def source_urls(self) -> List[str]:
        return [source.url for source in self.sources]


class CandidateAffair(AffairRecord):
    """An unverified affair produced by an ingester for one pipeline run."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    subject_name: str = ""
    description: str
    status: AffairStatus
    involvement: Involvement
    confidence_score: int = Field(ge=0, le=100)
    publication_status: PublicationStatus = PublicationStatus.DRAFT
    court: Optional[str] = None
    charges: List[str] = Field(default_factory=list)
    phase: DiscoveryPhase = DiscoveryPhase.STRUCTURED

    @field_validator("sources")
    @classmethod
    def require_sources(cls, v):
        """A candidate without a source cannot be reviewed."""
        if not v:
            raise ValueError("a candidate affair needs at least one source")
        return v

    @model_validator(mode="after")
    def check_publication(self):
        if (
            self.publication_status == PublicationStatus.PUBLISHED
            and self.involvement not in PUBLISHABLE_INVOLVEMENTS
        ):
            raise ValueError(
                f"involvement {self.involvement.value} cannot be published"
            )
        return self

    @property
    def is_published(self) -> bool:
        return self.publication_status == PublicationStatus.PUBLISHED


class PersistedAffair(AffairRecord):
    """Durable affair record owned by a repository."""

    id: str
    subject_id: str
    slug: str
    description: str = ""
    status: AffairStatus
    involvement: Involvement
    publication_status: PublicationStatus = PublicationStatus.DRAFT
    confidence_score: Optional[int] = None
    court: Optional[str] = None
    verified_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class KnowledgeGraphClaim(BaseModel):
    """A claim pointing from a politician entity to an offense entity."""

    relation: ClaimKind
    value_id: str


class JudicialSection(BaseModel):
    """An encyclopedia section whose heading looks judicial."""

    heading: str
    raw_text: str


class ExtractedAffair(BaseModel):
    """One affair as returned by the AI extraction service."""

    title: str
    description: str = ""
    category: AffairCategory = AffairCategory.AUTRE
    status: AffairStatus = AffairStatus.ENQUETE_PRELIMINAIRE
    involvement: Involvement = Involvement.MENTIONED_ONLY
    facts_date: Optional[str] = None
    court: Optional[str] = None
    charges: List[str] = Field(default_factory=list)
    confidence_score: int = 50
    source_urls: List[str] = Field(default_factory=list)


class PairScore(BaseModel):
    """Outcome of comparing two affair records."""

    score: int = Field(ge=0, le=100)
    reasons: List[str] = Field(default_factory=list)


class MatchResult(BaseModel):
    """A stored affair matching a candidate."""

    affair_id: str
    confidence: MatchConfidence
    score: int
    reasons: List[str] = Field(default_factory=list)


class AffairSummary(BaseModel):
    """Affair as shown to an operator reviewing duplicates."""

    id: str
    title: str
    status: AffairStatus
    category: AffairCategory
    involvement: Involvement
    publication_status: PublicationStatus
    ecli: Optional[str] = None
    pourvoi_number: Optional[str] = None
    facts_date: Optional[date] = None
    start_date: Optional[date] = None
    verdict_date: Optional[date] = None
    source_count: int = 0
    sources: List[AffairSource] = Field(default_factory=list)

    @classmethod
    def from_affair(cls, affair: PersistedAffair) -> "AffairSummary":
        return cls(
            id=affair.id,
            title=affair.title,
            status=affair.status,
            category=affair.category,
            involvement=affair.involvement,
            publication_status=affair.publication_status,
            ecli=affair.ecli,
            pourvoi_number=affair.pourvoi_number,
            facts_date=affair.facts_date,
            start_date=affair.start_date,
            verdict_date=affair.verdict_date,
            source_count=len(affair.sources),
            sources=list(affair.sources),
        )


class DuplicateGroup(BaseModel):
    """A scored pair of affairs that may describe the same event."""

    score: int
    reasons: List[str]
    affairs: List[AffairSummary]
    confidence: Optional[MatchConfidence] = None


class DuplicateScanResult(BaseModel):
    """Admin duplicate scan response."""

    groups: List[DuplicateGroup] = Field(default_factory=list)
    total: int = 0


class MergeResult(BaseModel):
    """Outcome of folding one affair into another."""

    kept: PersistedAffair
    removed_id: str
    sources_moved: int = 0
    identifiers_merged: List[str] = Field(default_factory=list)


class AutoMergeResult(BaseModel):
    """Outcome of merging every high-confidence duplicate pair."""

    merged: int = 0
    skipped: int = 0
    remaining_possible: int = 0
    dry_run: bool = False
    errors: List[str] = Field(default_factory=list)
    merges: List[MergeResult] = Field(default_factory=list)


class ReviewStats(BaseModel):
    """Duplicate review backlog across the store."""

    unverified: int = 0
    duplicates: int = 0
    by_confidence: Dict[str, int] = Field(
        default_factory=lambda: {c.value: 0 for c in MatchConfidence}
    )
    dismissed: int = 0


class StructuredIngestResult(BaseModel):
    """Output of the knowledge-graph phase."""

    candidates: List[CandidateAffair] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    subjects_with_external_id: int = 0


class TextExtractionResult(BaseModel):
    """Output of the encyclopedia phase."""

    candidates: List[CandidateAffair] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    subjects_with_sections: int = 0
    sections_found: int = 0
    ai_calls: int = 0
    skipped: Dict[str, int] = Field(default_factory=dict)


class ReconciliationResult(BaseModel):
    """Output of the reconciliation phase."""

    duplicates_skipped: int = 0
    affairs_created: int = 0
    affairs_published: int = 0
    affairs_draft: int = 0
    errors: List[str] = Field(default_factory=list)
    created: List[PersistedAffair] = Field(default_factory=list)


class DiscoveryResult(BaseModel):
    """Summary of one batch discovery run."""

    subjects_processed: int = 0
    subjects_with_external_id: int = 0
    structured_candidates_found: int = 0
    sections_found: int = 0
    ai_calls: int = 0
    text_candidates_found: int = 0
    duplicates_skipped: int = 0
    affairs_created: int = 0
    affairs_published: int = 0
    affairs_draft: int = 0
    dry_run: bool = False
    errors: List[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def processing_time(self) -> Optional[float]:
        """Total processing time in seconds."""
        if self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None


class DateBracket(BaseModel):
    """Points awarded when two primary dates are at most ``max_days`` apart."""

    max_days: int
    points: int
    reason: str


class ScoringConfig(BaseModel):
    """Weights and thresholds of the affair similarity heuristic."""

    ecli_score: int = 100
    pourvoi_score: int = 95
    case_number_weight: int = 40
    title_min_ratio: float = 0.30
    title_weight: int = 50
    category_weight: int = 15
    source_overlap_weight: int = 15
    date_brackets: List[DateBracket] = Field(
        default_factory=lambda: [
            DateBracket(max_days=7, points=20, reason="Dates très proches (< 7 jours)"),
            DateBracket(max_days=30, points=15, reason="Dates proches (< 30 jours)"),
            DateBracket(
                max_days=90, points=10, reason="Dates dans la même période (< 90 jours)"
            ),
        ]
    )
    match_floor: int = 40
    high_threshold: int = 75
    certain_threshold: int = 100
    max_score: int = 100

    @field_validator("date_brackets")
    @classmethod
    def sort_brackets(cls, v):
        """Tightest bracket first so the first hit wins."""
        return sorted(v, key=lambda bracket: bracket.max_days)


class PipelineConfig(BaseModel):
    """Discovery pipeline tunables."""

    conviction_confidence: int = 95
    charge_confidence: int = 75
    min_text_confidence: int = 40
    max_slug_length: int = 120
    max_slug_attempts: int = 500
    ai_call_interval: float = 1.0
    rate_limit_backoff_seconds: float = 60.0
    max_rate_limit_retries: int = 3
    dry_run: bool = False
    verbose: bool = False


class AIConfig(BaseModel):
    """AI extraction provider configuration."""

    provider: str = "claude"
    api_key: Optional[str] = None
    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 2000
    temperature: float = 0.0
    max_section_chars: int = 8000


class KnowledgeGraphConfig(BaseModel):
    """Wikidata / Wikipedia HTTP settings."""

    wikidata_api_url: str = "https://www.wikidata.org/w/api.php"
    wikipedia_api_url: str = "https://fr.wikipedia.org/w/api.php"
    user_agent: str = "poligraph-affairs/0.1 (https://poligraph.fr)"
    requests_per_second: float = 5.0
    burst_size: int = 5
    timeout: float = 30.0
    retry_attempts: int = 3


class StorageConfig(BaseModel):
    """Persistence settings."""

    db_path: str = "poligraph.db"


class Config(BaseModel):
    """Complete configuration model."""

    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    knowledge_graph: KnowledgeGraphConfig = Field(default_factory=KnowledgeGraphConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
