"""Tests for the affair similarity scorer."""

from datetime import date

import pytest

from ..models import AffairCategory, DateBracket, MatchConfidence, ScoringConfig
from ..similarity_scoring import (
    SimilarityScorer,
    normalize_title,
    round_half_up,
    title_overlap_ratio,
)
from .conftest import make_affair, make_candidate, make_source

TEN_TOKENS = "alpha bravo charlie delta echo foxtrot golf hotel india juliet"


class TestNormalizeTitle:
    def test_strips_accents_punctuation_and_stopwords(self):
        tokens = normalize_title("L'affaire des « emplois fictifs » du MoDem")
        assert tokens == ["affaire", "emplois", "fictifs", "modem"]

    def test_accents(self):
        assert normalize_title("Détournement de fonds") == ["detournement", "fonds"]

    def test_single_letters_dropped(self):
        assert normalize_title("X y zz") == ["zz"]

    def test_empty(self):
        assert normalize_title("  ") == []


class TestTitleOverlapRatio:
    def test_identical(self):
        assert title_overlap_ratio("Affaire Bygmalion", "affaire bygmalion") == 1.0

    def test_uses_longer_title(self):
        assert title_overlap_ratio(TEN_TOKENS, "alpha bravo charlie") == pytest.approx(0.3)

    def test_repeated_tokens_are_symmetric(self):
        a, b = "fraude fraude fiscale", "fraude fiscale"
        assert title_overlap_ratio(a, b) == title_overlap_ratio(b, a)
        assert title_overlap_ratio(a, b) == pytest.approx(2 / 3)

    def test_empty_title(self):
        assert title_overlap_ratio("", "Affaire") == 0.0


class TestSimilarityScorer:
    @pytest.fixture
    def scorer(self):
        return SimilarityScorer()

    def test_ecli_scenario(self, scorer):
        candidate = make_candidate(
            title="Corruption — Jean Dupont",
            ecli="FR:CC:2021:X",
            category=AffairCategory.CORRUPTION,
        )
        existing = make_affair(
            title="Détournement de fonds",
            ecli="FR:CC:2021:X",
            category=AffairCategory.DETOURNEMENT_FONDS_PUBLICS,
        )

        result = scorer.score(candidate, existing)

        assert result.score == 100
        assert result.reasons == ["ECLI identique"]

    def test_ecli_short_circuits_everything_else(self, scorer):
        a = make_affair(ecli="E1", case_numbers=["1"], facts_date=date(2020, 1, 1))
        b = make_affair(ecli="E1", case_numbers=["1"], facts_date=date(2020, 1, 2))
        assert scorer.score(a, b).reasons == ["ECLI identique"]

    def test_empty_ecli_does_not_match(self, scorer):
        a = make_affair(title="Alpha", ecli="", category=AffairCategory.AUTRE)
        b = make_affair(title="Beta", ecli="", category=AffairCategory.RECEL)
        assert scorer.score(a, b) is None

    def test_pourvoi_match(self, scorer):
        a = make_affair(title="Alpha", pourvoi_number="21-80.123")
        b = make_affair(title="Beta", pourvoi_number="21-80.123", category=AffairCategory.AUTRE)

        result = scorer.score(a, b)

        assert result.score == 95
        assert result.reasons == ["Numéro de pourvoi identique"]

    def test_same_category_only_is_below_floor(self, scorer):
        a = make_affair(title="Affaire Alpha")
        b = make_affair(title="Dossier Beta")
        assert scorer.score(a, b) is None

    def test_case_number_overlap_sorted(self, scorer):
        a = make_affair(title="Alpha", case_numbers=["B-2", "A-1", "C-3"], category=AffairCategory.AUTRE)
        b = make_affair(title="Beta", case_numbers=["A-1", "B-2"], category=AffairCategory.RECEL)

        result = scorer.score(a, b)

        assert result.score == 40
        assert result.reasons == ["Numéro(s) de dossier commun(s) : A-1, B-2"]

    def test_title_ratio_exactly_at_threshold(self, scorer):
        a = make_affair(title=TEN_TOKENS, case_numbers=["1"], category=AffairCategory.AUTRE)
        b = make_affair(title="alpha bravo charlie", case_numbers=["1"], category=AffairCategory.RECEL)

        result = scorer.score(a, b)

        assert result.score == 40 + 15
        assert "Titres similaires (30% de mots communs)" in result.reasons

    def test_title_ratio_below_threshold_adds_nothing(self, scorer):
        # 2 common tokens out of 7
        a = make_affair(
            title="alpha bravo charlie delta echo foxtrot golf",
            case_numbers=["1"],
            category=AffairCategory.AUTRE,
        )
        b = make_affair(title="alpha bravo", case_numbers=["1"], category=AffairCategory.RECEL)

        result = scorer.score(a, b)

        assert result.score == 40
        assert not any(r.startswith("Titres similaires") for r in result.reasons)

    def test_title_points_round_half_up(self, scorer):
        # ratio 0.75 -> 37.5 -> 38
        a = make_affair(title="alpha bravo charlie delta", case_numbers=["1"],
                        category=AffairCategory.AUTRE)
        b = make_affair(title="alpha bravo charlie", case_numbers=["1"],
                        category=AffairCategory.RECEL)

        result = scorer.score(a, b)

        assert result.score == 40 + 38
        assert result.reasons[-1] == "Titres similaires (75% de mots communs)"

    @pytest.mark.parametrize(
        "gap,points,reason",
        [
            (5, 20, "Dates très proches (< 7 jours)"),
            (7, 20, "Dates très proches (< 7 jours)"),
            (20, 15, "Dates proches (< 30 jours)"),
            (60, 10, "Dates dans la même période (< 90 jours)"),
        ],
    )
    def test_date_brackets_tightest_wins(self, scorer, gap, points, reason):
        a = make_affair(
            title="Alpha", case_numbers=["1"], category=AffairCategory.AUTRE,
            facts_date=date(2020, 3, 1),
        )
        b = make_affair(
            title="Beta", case_numbers=["1"], category=AffairCategory.RECEL,
            facts_date=date.fromordinal(date(2020, 3, 1).toordinal() + gap),
        )

        result = scorer.score(a, b)

        assert result.score == 40 + points
        assert result.reasons[-1] == reason
        assert len([r for r in result.reasons if r.startswith("Dates")]) == 1

    def test_distant_dates_add_nothing(self, scorer):
        a = make_affair(title="Alpha", case_numbers=["1"], facts_date=date(2020, 1, 1),
                        category=AffairCategory.AUTRE)
        b = make_affair(title="Beta", case_numbers=["1"], facts_date=date(2021, 1, 1),
                        category=AffairCategory.RECEL)
        assert scorer.score(a, b).score == 40

    def test_primary_date_falls_back_to_start_then_verdict(self, scorer):
        a = make_affair(title="Alpha", case_numbers=["1"], start_date=date(2020, 1, 1),
                        category=AffairCategory.AUTRE)
        b = make_affair(title="Beta", case_numbers=["1"], verdict_date=date(2020, 1, 3),
                        category=AffairCategory.RECEL)
        assert scorer.score(a, b).score == 60

    def test_missing_dates_skip_dimension(self, scorer):
        a = make_affair(title="Alpha", case_numbers=["1"], facts_date=date(2020, 1, 1),
                        category=AffairCategory.AUTRE)
        b = make_affair(title="Beta", case_numbers=["1"], category=AffairCategory.RECEL)
        assert scorer.score(a, b).score == 40

    def test_shared_sources(self, scorer):
        shared = make_source("https://www.lemonde.fr/x")
        a = make_affair(title="Alpha", case_numbers=["1"], sources=[shared],
                        category=AffairCategory.AUTRE)
        b = make_affair(
            title="Beta", case_numbers=["1"], category=AffairCategory.RECEL,
            sources=[shared, make_source("https://www.liberation.fr/y")],
        )

        result = scorer.score(a, b)

        assert result.score == 55
        assert result.reasons[-1] == "1 source(s) en commun"

    def test_score_is_capped(self, scorer):
        shared = make_source("https://www.lemonde.fr/x")
        a = make_affair(case_numbers=["1"], facts_date=date(2020, 1, 1), sources=[shared])
        b = make_affair(case_numbers=["1"], facts_date=date(2020, 1, 2), sources=[shared])

        result = scorer.score(a, b)

        assert result.score == 100
        assert len(result.reasons) == 5

    def test_symmetry(self, scorer):
        shared = make_source("https://www.lemonde.fr/x")
        records = [
            make_affair(title="Affaire Bygmalion", case_numbers=["1", "2"]),
            make_affair(title="Affaire Bygmalion financement", case_numbers=["2"],
                        facts_date=date(2012, 5, 1)),
            make_affair(title="fraude fraude fiscale", category=AffairCategory.FRAUDE_FISCALE,
                        sources=[shared], start_date=date(2012, 6, 1)),
            make_affair(title="fraude fiscale", category=AffairCategory.FRAUDE_FISCALE,
                        sources=[shared], verdict_date=date(2012, 6, 20)),
            make_affair(title="Divers", pourvoi_number="P-1"),
            make_affair(title="Autre", pourvoi_number="P-1"),
        ]
        for a in records:
            for b in records:
                forward, backward = scorer.score(a, b), scorer.score(b, a)
                if forward is None:
                    assert backward is None
                    continue
                assert forward.score == backward.score
                assert sorted(forward.reasons) == sorted(backward.reasons)
                assert 0 <= forward.score <= 100

    def test_custom_weights(self):
        config = ScoringConfig(
            category_weight=40,
            date_brackets=[DateBracket(max_days=1, points=5, reason="Même jour")],
        )
        scorer = SimilarityScorer(config)
        a = make_affair(title="Alpha", facts_date=date(2020, 1, 1))
        b = make_affair(title="Beta", facts_date=date(2020, 1, 1))

        result = scorer.score(a, b)

        assert result.score == 45
        assert result.reasons == ["Même catégorie", "Même jour"]


class TestClassify:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (100, MatchConfidence.CERTAIN),
            (95, MatchConfidence.HIGH),
            (75, MatchConfidence.HIGH),
            (74, MatchConfidence.POSSIBLE),
            (40, MatchConfidence.POSSIBLE),
            (39, None),
        ],
    )
    def test_buckets(self, score, expected):
        assert SimilarityScorer().classify(score) == expected


def test_round_half_up():
    assert round_half_up(12.5) == 13
    assert round_half_up(37.5) == 38
    assert round_half_up(14.4) == 14
