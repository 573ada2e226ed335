"""Tests for the knowledge-graph ingestion phase."""

from unittest.mock import Mock

import pytest

from ..error_handling import ExternalServiceError
from ..models import (
    AffairCategory,
    AffairStatus,
    ClaimKind,
    Involvement,
    KnowledgeGraphClaim,
    PublicationStatus,
    SourceType,
    Subject,
)
from ..structured_ingester import StructuredClaimIngester


def _claim(relation, value_id):
    return KnowledgeGraphClaim(relation=relation, value_id=value_id)


@pytest.fixture
def client():
    client = Mock()
    client.get_claims.return_value = []
    client.get_entity_labels.return_value = {}
    return client


class TestStructuredClaimIngester:
    def test_conviction_is_published(self, client, subject):
        client.get_claims.return_value = [_claim(ClaimKind.CONVICTED_OF, "Q852973")]

        result = StructuredClaimIngester(client).ingest([subject])

        assert result.errors == []
        [candidate] = result.candidates
        assert candidate.title == "Corruption — Jean Dupont"
        assert candidate.category == AffairCategory.CORRUPTION
        assert candidate.status == AffairStatus.CONDAMNATION_DEFINITIVE
        assert candidate.involvement == Involvement.DIRECT
        assert candidate.publication_status == PublicationStatus.PUBLISHED
        assert candidate.confidence_score == 95
        assert candidate.charges == ["Corruption"]

        [source] = candidate.sources
        assert source.url == "https://www.wikidata.org/wiki/Q42"
        assert source.title == "Wikidata — Jean Dupont"
        assert source.publisher == "Wikidata"
        assert source.source_type == SourceType.STRUCTURED

    def test_charge_is_an_unverified_draft(self, client, subject):
        client.get_claims.return_value = [_claim(ClaimKind.CHARGED_WITH, "Q2362986")]

        [candidate] = StructuredClaimIngester(client).ingest([subject]).candidates

        assert candidate.title == "[À VÉRIFIER] Emploi fictif — Jean Dupont"
        assert candidate.description.startswith("[À VÉRIFIER] ")
        assert candidate.status == AffairStatus.MISE_EN_EXAMEN
        assert candidate.involvement == Involvement.MENTIONED_ONLY
        assert candidate.publication_status == PublicationStatus.DRAFT
        assert candidate.confidence_score == 75

    def test_unknown_offense_uses_graph_label(self, client, subject):
        client.get_claims.return_value = [
            _claim(ClaimKind.CONVICTED_OF, "Q111"),
            _claim(ClaimKind.CHARGED_WITH, "Q111"),
            _claim(ClaimKind.CONVICTED_OF, "Q222"),
        ]
        client.get_entity_labels.return_value = {"Q111": "recel aggravé"}

        candidates = StructuredClaimIngester(client).ingest([subject]).candidates

        client.get_entity_labels.assert_called_once_with(["Q111", "Q222"])
        assert [c.title for c in candidates] == [
            "Recel aggravé — Jean Dupont",
            "[À VÉRIFIER] Recel aggravé — Jean Dupont",
            "Infraction inconnue (Q222) — Jean Dupont",
        ]
        assert all(c.category == AffairCategory.AUTRE for c in candidates)

    def test_known_offenses_skip_label_lookup(self, client, subject):
        client.get_claims.return_value = [_claim(ClaimKind.CONVICTED_OF, "Q179126")]

        StructuredClaimIngester(client).ingest([subject])

        client.get_entity_labels.assert_not_called()

    def test_subjects_without_external_id_are_skipped(self, client):
        subjects = [Subject(id="p-2", full_name="Sans Identifiant")]

        result = StructuredClaimIngester(client).ingest(subjects)

        assert result.subjects_with_external_id == 0
        assert result.candidates == []
        client.get_claims.assert_not_called()

    def test_claim_kinds_requested(self, client, subject):
        StructuredClaimIngester(client).ingest([subject])
        client.get_claims.assert_called_once_with(
            "Q42", [ClaimKind.CONVICTED_OF, ClaimKind.CHARGED_WITH]
        )

    def test_errors_are_collected_per_subject(self, client, subject):
        other = Subject(id="p-2", full_name="Marie Martin", external_id="Q7")
        client.get_claims.side_effect = [
            ExternalServiceError("timeout"),
            [_claim(ClaimKind.CONVICTED_OF, "Q852973")],
        ]

        result = StructuredClaimIngester(client).ingest([subject, other])

        assert result.errors == ["[structured] Jean Dupont (Q42): timeout"]
        assert len(result.candidates) == 1
        assert result.candidates[0].subject_id == "p-2"
        assert result.subjects_with_external_id == 2

    def test_rate_limiter_is_consulted(self, client, subject):
        limiter = Mock()
        client.get_claims.return_value = [_claim(ClaimKind.CONVICTED_OF, "Q1")]

        StructuredClaimIngester(client, rate_limiter=limiter).ingest([subject])

        # one wait for the claims, one for the label lookup
        assert limiter.wait_if_needed.call_count == 2
