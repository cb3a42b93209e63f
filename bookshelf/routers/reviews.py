"""
Reviews Router

Endpoints:
- GET /books/{book_id}/reviews - Reviews of a book, newest first
- POST /books/{book_id}/reviews - Submit a review (3 per hour per client)

Business Rules:
- Rating must be 1-5 and the body at least 15 characters
- Each client may submit a limited number of reviews per hour
"""

import logging

from fastapi import APIRouter, Request, status

from bookshelf.config import get_settings
from bookshelf.dependencies import Catalog, ClientIdentity
from bookshelf.schemas import ReviewCreate, ReviewResponse
from bookshelf.services.rate_limiter import limiter

logger = logging.getLogger(__name__)

settings = get_settings()

router = APIRouter(
    tags=["Reviews"],
    responses={
        404: {"description": "Book not found"},
    },
)


@router.get(
    "/books/{book_id}/reviews",
    response_model=list[ReviewResponse],
    summary="List reviews for a book",
    description="All reviews of a book, newest first.",
)
@limiter.limit(settings.rate_limit_default)
def list_book_reviews(
    request: Request,
    book_id: int,
    catalog: Catalog,
) -> list[ReviewResponse]:
    """Reviews come from the cached book page."""
    return catalog.get_book(book_id).reviews


@router.post(
    "/books/{book_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a review",
    description=(
        "Submit a review for a book. Limited per client; over the limit the "
        "response is 429 with a Retry-After header."
    ),
    responses={
        422: {"description": "Rating or body out of range"},
        429: {"description": "Submission limit reached"},
    },
)
def create_review(
    book_id: int,
    review_data: ReviewCreate,
    catalog: Catalog,
    identity: ClientIdentity,
) -> ReviewResponse:
    """
    Create a new review for a book.

    Raises:
        NotFoundError: 404 if book not found
        ValidationError: 422 if rating or body are invalid
        RateLimitError: 429 if the client is over its allowance
    """
    return catalog.submit_review(
        book_id,
        identity,
        rating=review_data.rating,
        body=review_data.body,
    )
