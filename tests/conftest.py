# tests/conftest.py

import pytest
from starlette.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import marketplace.models  # noqa: F401
from marketplace.main import app
from marketplace.api import deps
from marketplace.db.base_class import Base
from marketplace.services.payment.providers.mock_provider import MockPaymentProvider
from tests.utils.collaborators import InMemoryUserDirectory, RecordingNotifier
from tests.utils.webhooks import MOCK_SECRET


# --- In-memory test database ---
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def directory():
    return InMemoryUserDirectory(
        {
            "buyer_1": ["individual"],
            "shop_1": ["shop"],
            "admin_1": ["admin"],
            "sup_1": ["supplier"],
            "sup_2": ["supplier"],
        }
    )


@pytest.fixture
def provider():
    return MockPaymentProvider(MOCK_SECRET)


# --- Test Client Fixture ---
@pytest.fixture(scope="function")
def test_client(db, notifier, directory, provider):
    """
    TestClient on the in-memory database with the directory, notifier and
    payment gateway replaced. Authentication uses real signed tokens.
    """

    def override_get_db():
        yield db

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_notifier] = lambda: notifier
    app.dependency_overrides[deps.get_user_directory] = lambda: directory
    app.dependency_overrides[deps.get_payment_gateway] = lambda: provider

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
