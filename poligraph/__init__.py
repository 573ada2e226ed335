"""Judicial affair discovery and reconciliation for French politicians."""

__version__ = "0.1.0"

from .models import (
    AffairCategory,
    AffairStatus,
    Involvement,
    PublicationStatus,
    SourceType,
    ClaimKind,
    MatchConfidence,
    AffairSource,
    Subject,
    CandidateAffair,
    PersistedAffair,
    DuplicateGroup,
    DuplicateScanResult,
    DiscoveryResult,
    Config,
    ScoringConfig,
    PipelineConfig,
)
from .offense_classifier import OffenseClassifier
from .similarity_scoring import SimilarityScorer
from .affair_matcher import AffairMatcher
from .structured_ingester import StructuredClaimIngester
from .text_extractor import UnstructuredTextExtractor
from .reconciliation import ReconciliationEngine
from .duplicate_scan import DuplicateScanner
from .pipeline import AffairDiscoveryPipeline
from .config import ConfigManager

__all__ = [
    "AffairCategory",
    "AffairStatus",
    "Involvement",
    "PublicationStatus",
    "SourceType",
    "ClaimKind",
    "MatchConfidence",
    "AffairSource",
    "Subject",
    "CandidateAffair",
    "PersistedAffair",
    "DuplicateGroup",
    "DuplicateScanResult",
    "DiscoveryResult",
    "Config",
    "ScoringConfig",
    "PipelineConfig",
    "OffenseClassifier",
    "SimilarityScorer",
    "AffairMatcher",
    "StructuredClaimIngester",
    "UnstructuredTextExtractor",
    "ReconciliationEngine",
    "DuplicateScanner",
    "AffairDiscoveryPipeline",
    "ConfigManager",
]
