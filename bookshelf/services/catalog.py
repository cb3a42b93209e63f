"""
Catalog Service

The operations the presentation layer calls:

- list_books(filter, search)   -> ranked listing, cached per (filter, search)
- get_book(book_id)            -> book page, cached per book
- submit_review(book_id, identity, rating, body) -> stored review

Review submission order:
1. Validate rating and body (ValidationError)
2. Check the book exists (NotFoundError, no allowance consumed)
3. Ask the submission guard (RateLimitError)
4. Append the review; the repository then invalidates the cache
"""

import logging
from collections.abc import Callable
from datetime import datetime

import pydantic

from bookshelf.exceptions import ValidationError
from bookshelf.repositories import BookRepository, ReviewRepository
from bookshelf.schemas.book import BookDetailResponse, BookResponse, RankedBook
from bookshelf.schemas.review import ReviewCreate, ReviewResponse
from bookshelf.services.cache import CacheLayer, book_cache_key, listing_cache_key
from bookshelf.services.filters import BookFilter
from bookshelf.services.ranking import RankingEngine, utc_now
from bookshelf.services.submission_guard import SubmissionGuard

logger = logging.getLogger(__name__)


def validation_errors(exc: pydantic.ValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into {"field", "message"} pairs."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]) or "body",
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


class CatalogService:
    """
    Book listing, book pages and review submission for one request.

    Args:
        books: Book repository
        reviews: Review repository (should share the cache layer so appends
            invalidate it)
        cache: Read-through cache for listings and book pages
        guard: Submission guard for reviews
        clock: Current UTC time for the ranking windows
    """

    def __init__(
        self,
        books: BookRepository,
        reviews: ReviewRepository,
        cache: CacheLayer,
        guard: SubmissionGuard,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.books = books
        self.reviews = reviews
        self.cache = cache
        self.guard = guard
        self.ranking = RankingEngine(books, reviews, clock=clock)

    def list_books(
        self,
        book_filter: BookFilter = BookFilter.LATEST,
        search: str | None = None,
    ) -> list[RankedBook]:
        """
        Ranked listing for a filter and optional title search.

        Returns:
            Every qualifying book, best first
        """
        book_filter = BookFilter(book_filter)
        key = listing_cache_key(book_filter, search)

        rows = self.cache.get_or_compute(
            key,
            lambda: [
                ranked.model_dump(mode="json")
                for ranked in self.ranking.rank(book_filter, search)
            ],
        )
        return [RankedBook.model_validate(row) for row in rows]

    def get_book(self, book_id: int) -> BookDetailResponse:
        """
        Book page: the book, its all-time statistics and its reviews.

        Raises:
            NotFoundError: If the book does not exist
        """
        page = self.cache.get_or_compute(
            book_cache_key(book_id),
            lambda: self._build_book_page(book_id).model_dump(mode="json"),
        )
        return BookDetailResponse.model_validate(page)

    def _build_book_page(self, book_id: int) -> BookDetailResponse:
        book = self.books.get(book_id)
        return BookDetailResponse(
            book=BookResponse.model_validate(book),
            stats=self.reviews.stats_for(book_id),
            reviews=[
                ReviewResponse.model_validate(review)
                for review in self.reviews.list_for_book(book_id)
            ],
            updated_at=book.updated_at,
        )

    def submit_review(
        self,
        book_id: int,
        identity: str,
        rating: int,
        body: str,
    ) -> ReviewResponse:
        """
        Validate, rate-limit and store a new review.

        The allowance is taken before the review is stored, so concurrent
        submissions from one identity cannot get past it. If storing then fails with
        RepositoryError the slot stays used; `limits` has no way to hand a
        hit back, and the client may retry once the window moves on.

        Args:
            book_id: Reviewed book
            identity: Client identity the submission is counted against
            rating: 1-5 stars
            body: Review text, at least 15 characters

        Returns:
            The stored review

        Raises:
            ValidationError: Rating or body out of range
            NotFoundError: Unknown book
            RateLimitError: Identity is over its allowance
            RepositoryError: A store is unavailable
        """
        try:
            data = ReviewCreate(rating=rating, body=body)
        except pydantic.ValidationError as e:
            raise ValidationError(validation_errors(e)) from e

        self.books.get(book_id)
        self.guard.check(identity)

        review = self.reviews.append(book_id, data.rating, data.body)
        logger.info(f"Review {review.id} submitted for book {book_id} by {identity}")
        return ReviewResponse.model_validate(review)
