"""
pytest Fixtures for Bookshelf Tests

Shared fixtures used across all test files.

For database tests, we use:
- session scope for the engine (expensive to create)
- function scope for sessions (each test runs in a transaction that is
  rolled back afterwards)

The cache layer and the submission guard are rebuilt for every test on
in-memory stores, so no state leaks between tests and no Redis is needed.
"""

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================
# IMPORTANT: Set environment variables BEFORE importing the app
import os

os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["CACHE_URL"] = "memory://"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"

from collections.abc import Callable, Generator
from datetime import UTC, date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from limits.storage import MemoryStorage
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bookshelf.database import Base, get_db
from bookshelf.dependencies import get_submission_guard
from bookshelf.main import app
from bookshelf.models import Book, Review
from bookshelf.services.cache import CacheLayer, MemoryCacheStore, get_cache_layer
from bookshelf.services.submission_guard import SubmissionGuard

# Clock used by tests that inject one into the ranking engine or catalog
FIXED_NOW = datetime(2024, 7, 15, 12, 0, tzinfo=UTC)

VALID_BODY = "A thoughtful and moving read."


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def engine():
    """
    Create a SQLite in-memory database engine.

    StaticPool keeps the connection alive for the entire session.
    Without it, SQLite in-memory database would disappear between connections.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Session, None, None]:
    """
    Create a fresh database session for each test.

    The session is wrapped in a transaction that's rolled back,
    ensuring test isolation without needing to recreate tables.
    """
    TestSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )

    connection = engine.connect()
    transaction = connection.begin()
    session = TestSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def cache() -> CacheLayer:
    """Cache layer on a fresh in-memory store."""
    return CacheLayer(MemoryCacheStore(), ttl=3600)


@pytest.fixture
def guard() -> SubmissionGuard:
    """Submission guard allowing 3 reviews per hour, counters in memory."""
    return SubmissionGuard("3/hour", storage=MemoryStorage())


@pytest.fixture(scope="function")
def client(
    db_session: Session,
    cache: CacheLayer,
    guard: SubmissionGuard,
) -> Generator[TestClient, None, None]:
    """
    Create a test client wired to the test database, cache and guard.

    We override the dependencies so every request of one test shares them.
    """

    def override_get_db():
        """Provide test database session instead of real one."""
        try:
            yield db_session
        finally:
            pass  # Session cleanup handled by db_session fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_layer] = lambda: cache
    app.dependency_overrides[get_submission_guard] = lambda: guard

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def make_book(db_session: Session) -> Callable[..., Book]:
    """Factory creating committed books."""

    def _make_book(
        title: str = "1984",
        author: str = "George Orwell",
        published_date: date = date(1949, 6, 8),
        cover_image: str | None = None,
    ) -> Book:
        book = Book(
            title=title,
            author=author,
            published_date=published_date,
            cover_image=cover_image,
        )
        db_session.add(book)
        db_session.commit()
        db_session.refresh(book)
        return book

    return _make_book


@pytest.fixture
def add_reviews(db_session: Session) -> Callable[..., list[Review]]:
    """
    Factory adding reviews with the given ratings to a book.

    Reviews are dated `days_ago` days before `now` (FIXED_NOW unless the
    test passes the real clock, as HTTP tests must).
    """

    def _add_reviews(
        book: Book,
        ratings: list[int],
        days_ago: float = 1,
        now: datetime = FIXED_NOW,
    ) -> list[Review]:
        created_at = now - timedelta(days=days_ago)
        reviews = [
            Review(
                book_id=book.id,
                rating=rating,
                body=f"Review number {i} with enough text.",
                created_at=created_at,
            )
            for i, rating in enumerate(ratings)
        ]
        db_session.add_all(reviews)
        db_session.commit()
        return reviews

    return _add_reviews


@pytest.fixture
def sample_book(make_book) -> Book:
    """A single book without reviews."""
    return make_book(
        title="Pride and Prejudice",
        author="Jane Austen",
        published_date=date(1813, 1, 28),
        cover_image="https://covers.example.com/pride.jpg",
    )
