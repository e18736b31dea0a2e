import os

# Settings are read at import time; point them at test doubles first.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("ENV", "dev")

import fakeredis
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from apollo_service.core.db import Base, get_db
from apollo_service.models import people_enrichment, people_search, search_cursor  # noqa: F401
from apollo_service.services.connectors import ApolloClient, get_apollo_client
from apollo_service.services.cursor_lock import CursorLock
from apollo_service.services.keys import CallerContext, KeysClient
from apollo_service.services.runs import CostReporter, RunContext, RunsClient

from tests.fixtures.apollo_fixtures import (
    APOLLO_BASE_URL,
    KEY_SERVICE_URL,
    RUNS_SERVICE_URL,
    FakeApolloAPI,
    FakeKeyService,
    FakeLLM,
    FakeRunsService,
)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def apollo_api():
    return FakeApolloAPI()


@pytest.fixture
def key_service():
    return FakeKeyService()


@pytest.fixture
def runs_service():
    return FakeRunsService()


@pytest.fixture
def apollo(apollo_api):
    return ApolloClient(base_url=APOLLO_BASE_URL, transport=httpx.MockTransport(apollo_api))


@pytest.fixture
def keys(key_service):
    return KeysClient(base_url=KEY_SERVICE_URL, api_key="keys-secret", transport=httpx.MockTransport(key_service))


@pytest.fixture
def runs(runs_service):
    return RunsClient(base_url=RUNS_SERVICE_URL, api_key="runs-secret", transport=httpx.MockTransport(runs_service))


@pytest.fixture
def reporter(runs):
    return CostReporter(runs, service_name="apollo-service")


@pytest.fixture
def redis_client():
    return fakeredis.FakeAsyncRedis(decode_responses=True)


@pytest.fixture
def lock(redis_client):
    return CursorLock(client=redis_client, timeout=30, blocking_timeout=0.2)


@pytest.fixture
def caller():
    return CallerContext(method="POST", path="/search/next")


@pytest.fixture
def ctx():
    return RunContext(
        org_id="org-1",
        parent_run_id="parent-run",
        app_id="app-1",
        brand_id="brand-1",
        campaign_id="campaign-1",
        workflow_name="outbound",
    )


@pytest.fixture
def llm():
    return FakeLLM([])


@pytest.fixture
def client(engine, apollo, keys, runs, lock, llm):
    from apollo_service.api import deps
    from apollo_service.main import app

    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    def _get_db():
        session = Session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_apollo_client] = lambda: apollo
    app.dependency_overrides[deps.get_keys_client] = lambda: keys
    app.dependency_overrides[deps.get_runs_client] = lambda: runs
    app.dependency_overrides[deps.get_cursor_lock] = lambda: lock
    app.dependency_overrides[deps.get_llm] = lambda: llm

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
