from __future__ import annotations

import os
import tempfile
from pathlib import Path

_TEST_DB_DIR = tempfile.mkdtemp(prefix="page-pipeline-tests-")
os.environ["DATABASE_URL"] = (
    os.getenv("PAGE_PIPELINE_TEST_DATABASE_URL") or f"sqlite:///{Path(_TEST_DB_DIR) / 'pipeline.db'}"
)
os.environ["OBJECT_STORE_BACKEND"] = "memory"
os.environ["MUTATION_API_KEY"] = "test-mutation-key"
os.environ["MUTATION_LOCALHOST_BYPASS"] = "false"
os.environ["SITE_BASE_URL"] = "https://pages.example.com"
os.environ["PUBLISH_MAX_WORKERS"] = "4"
os.environ.pop("CACHE_INVALIDATION_URL", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

import page_pipeline.models  # noqa: F401
from page_pipeline.db import Base
import page_pipeline.db as db_module
import page_pipeline.api as api_module
from page_pipeline.cache import NullInvalidator
from page_pipeline.models import Business, Update
from page_pipeline.storage import InMemoryObjectStore



@pytest.fixture(scope="session")
def test_database_url() -> str:
    return os.environ["DATABASE_URL"]


@pytest.fixture(scope="session")
def test_engine(test_database_url: str):
    engine = db_module.build_engine(test_database_url)
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def _bind_test_db(monkeypatch, test_engine):
    TestSessionLocal = sessionmaker(bind=test_engine, expire_on_commit=False)
    monkeypatch.setattr(db_module, "_engine", test_engine, raising=False)
    monkeypatch.setattr(db_module, "SessionLocal", TestSessionLocal, raising=False)
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session() -> Session:
    session = db_module.SessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture
def make_business(db_session: Session):
    def _make(**overrides) -> Business:
        values = {
            "owner_email": "owner@example.com",
            "slug": "joes-pizza",
            "name": "Joe's Pizza",
            "primary_category": "restaurant",
            "address_street": "123 Pike St",
            "address_city": "Seattle",
            "address_state": "WA",
            "zip_code": "98101",
            "country": "US",
            "phone": "2065550142",
            "website": "https://joes.example.com",
            "description": "Wood-fired pizza by the slice since 1998.",
            "established_year": 1998,
            "services": ["Dine-in", "Takeout", "Catering"],
        }
        values.update(overrides)
        row = Business(**values)
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture
def make_update(db_session: Session):
    def _make(business: Business, **overrides) -> Update:
        values = {
            "business_id": business.id,
            "content_text": "Half-price large pies every Tuesday this month. Dine-in only.",
            "update_category": "special",
        }
        values.update(overrides)
        row = Update(**values)
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture
def business(make_business) -> Business:
    return make_business()


@pytest.fixture
def update(make_update, business) -> Update:
    return make_update(business)


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def invalidator() -> NullInvalidator:
    return NullInvalidator()


@pytest.fixture
def client(store, invalidator):
    app = api_module.create_app(store=store, invalidator=invalidator)
    with TestClient(app) as test_client:
        yield test_client
