"""
Books Router

Endpoints:
- GET /books - Ranked, searchable, paginated listing
- GET /books/{book_id} - Book page with statistics and reviews

Both responses come from the read-through cache; pagination slices the
cached full listing, so every page of one listing is consistent.
"""

import math

from fastapi import APIRouter, Request

from bookshelf.config import get_settings
from bookshelf.dependencies import Catalog, ListingQuery, Pagination
from bookshelf.schemas import BookDetailResponse, BookListResponse
from bookshelf.services.rate_limiter import limiter

settings = get_settings()

router = APIRouter(
    prefix="/books",
    tags=["Books"],
    responses={
        404: {"description": "Book not found"},
    },
)


@router.get(
    "",
    response_model=BookListResponse,
    summary="List books",
    description=(
        "Books ranked by the chosen filter: latest, popular or highest rated "
        "over the last month or six months. Optional title search."
    ),
)
@limiter.limit(settings.rate_limit_default)
def list_books(
    request: Request,
    catalog: Catalog,
    listing: ListingQuery,
    pagination: Pagination,
) -> BookListResponse:
    """
    List books for a filter and optional title search.

    Examples:
        GET /api/v1/books?filter=highest_rated_last_6_months
        GET /api/v1/books?search=dune&page=2&per_page=5
    """
    ranked = catalog.list_books(listing.filter, listing.search)

    total = len(ranked)
    pages = math.ceil(total / pagination.per_page) if total > 0 else 0
    items = ranked[pagination.skip:pagination.skip + pagination.per_page]

    return BookListResponse(
        items=items,
        filter=listing.filter,
        search=listing.search,
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=pages,
    )


@router.get(
    "/{book_id}",
    response_model=BookDetailResponse,
    summary="Get a book by ID",
    description="A book with its all-time rating statistics and its reviews, newest first.",
)
@limiter.limit(settings.rate_limit_default)
def get_book(
    request: Request,
    book_id: int,
    catalog: Catalog,
) -> BookDetailResponse:
    """
    Get a single book page.

    Raises:
        NotFoundError: 404 if book not found
    """
    return catalog.get_book(book_id)
