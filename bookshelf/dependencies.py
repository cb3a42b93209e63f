"""
FastAPI Dependencies Module

Dependencies are reusable components injected into route handlers.
FastAPI's Depends() function manages their lifecycle, and tests replace
them through app.dependency_overrides.

Provided here:
- DbSession: per-request SQLAlchemy session
- Pagination: page / per_page query parameters
- ListingQuery: filter / search query parameters
- Cache, Guard: process-wide cache layer and submission guard
- Catalog: CatalogService wired to all of the above
- ClientIdentity: who a review submission is counted against
"""

from typing import Annotated

from fastapi import Depends, Query, Request
from sqlalchemy.orm import Session

from bookshelf.config import get_settings
from bookshelf.database import get_db
from bookshelf.repositories import BookRepository, ReviewRepository
from bookshelf.services.cache import CacheLayer, get_cache_layer
from bookshelf.services.catalog import CatalogService
from bookshelf.services.filters import BookFilter
from bookshelf.services.rate_limiter import get_client_ip
from bookshelf.services.submission_guard import (
    SubmissionGuard,
    client_identity,
    create_submission_guard,
)

settings = get_settings()

# =============================================================================
# Type Aliases with Annotated
# =============================================================================
DbSession = Annotated[Session, Depends(get_db)]


# =============================================================================
# Pagination Parameters
# =============================================================================
class PaginationParams:
    """
    Common pagination parameters for list endpoints.

    - page: Which page to return (1-indexed for user-friendliness)
    - per_page: How many items per page
    - skip: Calculated offset
    """

    def __init__(
        self,
        page: int = Query(
            default=1,
            ge=1,
            description="Page number (1-indexed)",
            examples=[1, 2, 3],
        ),
        per_page: int = Query(
            default=settings.default_per_page,
            ge=1,
            le=100,
            description="Number of items per page (max 100)",
            examples=[10, 25, 50],
        ),
    ) -> None:
        self.page = page
        self.per_page = per_page

    @property
    def skip(self) -> int:
        """
        Number of records to skip.

        Page 1 → skip 0 items, page 2 → skip per_page items, ...
        """
        return (self.page - 1) * self.per_page


Pagination = Annotated[PaginationParams, Depends()]


# =============================================================================
# Listing Parameters
# =============================================================================
class ListingParams:
    """
    Ranking parameters for the book listing.

    Usage:
        GET /api/v1/books?filter=popular_last_month&search=dune
    """

    def __init__(
        self,
        filter: BookFilter = Query(
            default=BookFilter.LATEST,
            description="Ranking to apply",
        ),
        search: str | None = Query(
            default=None,
            max_length=100,
            description="Title search (partial match, case-insensitive)",
            examples=["dune", "pride"],
        ),
    ) -> None:
        self.filter = filter
        self.search = search.strip() if search and search.strip() else None


ListingQuery = Annotated[ListingParams, Depends()]


# =============================================================================
# Shared Services
# =============================================================================
_submission_guard: SubmissionGuard | None = None


def get_submission_guard() -> SubmissionGuard:
    """Get the process-wide submission guard."""
    global _submission_guard
    if _submission_guard is None:
        _submission_guard = create_submission_guard(settings)
    return _submission_guard


Cache = Annotated[CacheLayer, Depends(get_cache_layer)]
Guard = Annotated[SubmissionGuard, Depends(get_submission_guard)]


def get_catalog(db: DbSession, cache: Cache, guard: Guard) -> CatalogService:
    """
    Catalog service for the current request.

    Both repositories share the cache layer so their writes invalidate it.
    """
    return CatalogService(
        books=BookRepository(db, cache=cache),
        reviews=ReviewRepository(db, cache=cache),
        cache=cache,
        guard=guard,
    )


Catalog = Annotated[CatalogService, Depends(get_catalog)]


# =============================================================================
# Client Identity
# =============================================================================
def get_client_identity(request: Request) -> str:
    """
    Identity a review submission is counted against.

    There are no user accounts, so this is always the client address
    (proxy headers honoured only from trusted proxies).
    """
    return client_identity(address=get_client_ip(request))


ClientIdentity = Annotated[str, Depends(get_client_identity)]
