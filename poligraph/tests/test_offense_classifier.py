"""Tests for offense classification."""

from ..models import AffairCategory, AffairStatus, ClaimKind
from ..offense_classifier import OFFENSE_MAP, OffenseClassifier


class TestOffenseClassifier:
    def setup_method(self):
        self.classifier = OffenseClassifier()

    def test_known_conviction(self):
        result = self.classifier.classify("Q852973", ClaimKind.CONVICTED_OF)
        assert result.category == AffairCategory.CORRUPTION
        assert result.status == AffairStatus.CONDAMNATION_DEFINITIVE

    def test_known_charge(self):
        result = self.classifier.classify("Q2362986", ClaimKind.CHARGED_WITH)
        assert result == (AffairCategory.EMPLOI_FICTIF, AffairStatus.MISE_EN_EXAMEN)

    def test_unknown_offense_falls_back_to_autre(self):
        result = self.classifier.classify("Q999999999", ClaimKind.CONVICTED_OF)
        assert result.category == AffairCategory.AUTRE
        assert result.status == AffairStatus.CONDAMNATION_DEFINITIVE

    def test_labels(self):
        assert self.classifier.label("Q179126") == "Fraude fiscale"
        assert self.classifier.label("Q1") == "Infraction inconnue (Q1)"

    def test_is_known(self):
        assert self.classifier.is_known("Q852973")
        assert not self.classifier.is_known("Q1")

    def test_custom_map(self):
        classifier = OffenseClassifier({"Q1": (AffairCategory.RECEL, "Recel")})
        assert classifier.classify("Q1", ClaimKind.CHARGED_WITH).category == AffairCategory.RECEL
        assert not classifier.is_known("Q852973")

    def test_every_mapping_is_well_formed(self):
        for offense_id, (category, label) in OFFENSE_MAP.items():
            assert offense_id.startswith("Q")
            assert isinstance(category, AffairCategory)
            assert label
