import pytest

from landstats.contribution_store import ContributionStore
from landstats.job_repository import JobRepository
from landstats.tests.fakes import FakeClock, FakeDatabase, FakeFetcher


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def store(db, fetcher):
    return ContributionStore(db=db, fetcher=fetcher)


@pytest.fixture
def jobs(db):
    return JobRepository(db=db)


@pytest.fixture
def clock():
    return FakeClock()
