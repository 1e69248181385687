import os

# Keep app startup (init_db) off the on-disk default database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from app.database import get_session  # noqa: E402
from app.main import app  # noqa: E402
from app.models.pair import Pair  # noqa: E402
from app.models.tournament import Tournament  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"


# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. One in-memory engine per test: StaticPool so every session of that test
#    shares the same connection and data never leaks between tests
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models are registered through app.models before create_all()
# 4. App dependency overridden to use the test engine (see client_fixture)
@pytest.fixture(name="engine")
def engine_fixture():
    import app.models  # noqa: F401

    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    """Provide a test database session"""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(engine, session: Session):
    """Provide a test client with overridden database session

    Override is set BEFORE TestClient() and stays in place for the entire
    duration, so the app never uses its own engine.
    """

    def override_get_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Data builders
# ============================================================================


@pytest.fixture
def tournament(session: Session) -> Tournament:
    t = Tournament(
        name="Padel Open",
        location="Club Central",
        start_date=date(2026, 6, 1),
        end_date=date(2026, 6, 2),
        available_courts=2,
        categories=["male1", "female1", "mixed1"],
    )
    session.add(t)
    session.commit()
    session.refresh(t)
    return t


def add_pairs(session: Session, tournament_id: int, category: str, count: int, confirmed: bool = True, prefix=None):
    """Create `count` pairs with unique participant refs; returns them in id order"""
    prefix = prefix or category
    pairs = []
    for i in range(1, count + 1):
        pair = Pair(
            tournament_id=tournament_id,
            category=category,
            player1_name=f"{prefix} P{i}a",
            player1_ref=f"{prefix}-{i}-a",
            player2_name=f"{prefix} P{i}b",
            player2_ref=f"{prefix}-{i}-b",
            confirmed=confirmed,
        )
        session.add(pair)
        pairs.append(pair)
    session.commit()
    for pair in pairs:
        session.refresh(pair)
    return pairs


@pytest.fixture
def make_pairs(session: Session):
    """make_pairs(tournament_id, category, count, confirmed=True, prefix=None)"""

    def _make(tournament_id: int, category: str, count: int, confirmed: bool = True, prefix=None):
        return add_pairs(session, tournament_id, category, count, confirmed=confirmed, prefix=prefix)

    return _make
