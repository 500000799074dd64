"""Pytest fixtures for impossible travel detection tests."""

import pytest

from src.shared.identity.ingestion import LoginIngestionService
from src.shared.identity.login_store import InMemoryLoginStore
from src.shared.identity.travel_analyzer import ImpossibleTravelAnalyzer
from tests.fixtures.identity.sample_logins import (
    GEO_BOSTON,
    GEO_LONDON,
    GEO_NYC,
    GEO_TOKYO,
    StubGeoResolver,
)


@pytest.fixture
def sample_geo_nyc():
    """Location for New York City."""
    return GEO_NYC


@pytest.fixture
def sample_geo_london():
    """Location for London."""
    return GEO_LONDON


@pytest.fixture
def sample_geo_boston():
    """Location for Boston."""
    return GEO_BOSTON


@pytest.fixture
def sample_geo_tokyo():
    """Location for Tokyo."""
    return GEO_TOKYO


@pytest.fixture
def analyzer():
    """Analyzer with the default 500 km/h threshold."""
    return ImpossibleTravelAnalyzer()


@pytest.fixture
def geo_resolver():
    """Resolver that knows the fixture IPs."""
    return StubGeoResolver()


@pytest.fixture
def login_store():
    """Empty in-memory login store."""
    return InMemoryLoginStore()


@pytest.fixture
def ingestion_service(login_store, geo_resolver, analyzer):
    """Ingestion service over an in-memory store."""
    return LoginIngestionService(
        store=login_store,
        geo_resolver=geo_resolver,
        analyzer=analyzer,
    )
