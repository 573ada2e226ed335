"""Shared fixtures and builders."""

import uuid
from datetime import datetime, timezone

import pytest

from ..models import (
    AffairCategory,
    AffairSource,
    AffairStatus,
    CandidateAffair,
    Involvement,
    PersistedAffair,
    PublicationStatus,
    SourceType,
    Subject,
)
from ..repositories import InMemoryAffairRepository


def make_source(url="https://www.lemonde.fr/a", source_type=SourceType.PRESS, **overrides):
    data = dict(url=url, title="Article", publisher="Le Monde", source_type=source_type)
    data.update(overrides)
    return AffairSource(**data)


def make_candidate(**overrides) -> CandidateAffair:
    data = dict(
        subject_id="p-1",
        subject_name="Jean Dupont",
        title="Affaire des emplois fictifs",
        description="Description",
        category=AffairCategory.EMPLOI_FICTIF,
        status=AffairStatus.MISE_EN_EXAMEN,
        involvement=Involvement.DIRECT,
        confidence_score=80,
        publication_status=PublicationStatus.DRAFT,
        sources=[make_source()],
    )
    data.update(overrides)
    return CandidateAffair(**data)


def make_affair(**overrides) -> PersistedAffair:
    data = dict(
        id=str(uuid.uuid4()),
        subject_id="p-1",
        slug=f"affaire-{uuid.uuid4().hex[:8]}",
        title="Affaire des emplois fictifs",
        category=AffairCategory.EMPLOI_FICTIF,
        status=AffairStatus.MISE_EN_EXAMEN,
        involvement=Involvement.DIRECT,
        sources=[],
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )
    data.update(overrides)
    return PersistedAffair(**data)


class FakeClock:
    """Manual clock whose sleep advances time."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def subject():
    return Subject(id="p-1", full_name="Jean Dupont", external_id="Q42")


@pytest.fixture
def repository():
    return InMemoryAffairRepository()


@pytest.fixture
def fake_clock():
    return FakeClock()
