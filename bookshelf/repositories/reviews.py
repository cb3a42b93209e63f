"""
Review Repository

Owns review records: aggregate statistics over time windows, appending
new reviews, and the newest-first list shown on a book page.

Statistics are computed as COUNT and SUM(rating) in the database and the
average is derived in Python, so every backend yields the same exact value.
"""

import logging
from collections.abc import Collection
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from bookshelf.database import translate_db_errors
from bookshelf.models import Review
from bookshelf.schemas.book import BookStats

if TYPE_CHECKING:
    from bookshelf.services.cache import CacheLayer

logger = logging.getLogger(__name__)


class ReviewRepository:
    """
    Review data access bound to one database session.

    Args:
        db: Session for the current request
        cache: Cache layer notified after a review is appended
    """

    def __init__(self, db: Session, cache: "CacheLayer | None" = None) -> None:
        self.db = db
        self.cache = cache

    def stats_for(self, book_id: int, since: datetime | None = None) -> BookStats:
        """
        Aggregate statistics for one book.

        Args:
            book_id: Book to aggregate
            since: Only count reviews created at or after this moment

        Returns:
            BookStats (review_count 0 and no average when nothing matches)
        """
        stmt = select(func.count(Review.id), func.sum(Review.rating)).where(
            Review.book_id == book_id
        )
        if since is not None:
            stmt = stmt.where(Review.created_at >= since)

        with translate_db_errors(self.db, "review statistics"):
            count, total = self.db.execute(stmt).one()
        return BookStats.from_totals(count, total)

    def stats_by_book(
        self,
        book_ids: Collection[int] | None = None,
        since: datetime | None = None,
    ) -> dict[int, BookStats]:
        """
        Aggregate statistics for many books in a single GROUP BY query.

        Books without matching reviews are absent from the result; callers
        treat a missing entry as zero reviews.

        Args:
            book_ids: Books to aggregate, None for every book
            since: Only count reviews created at or after this moment

        Returns:
            Mapping of book ID to BookStats
        """
        if book_ids is not None and not book_ids:
            return {}

        stmt = select(
            Review.book_id,
            func.count(Review.id),
            func.sum(Review.rating),
        ).group_by(Review.book_id)
        if since is not None:
            stmt = stmt.where(Review.created_at >= since)
        if book_ids is not None:
            stmt = stmt.where(Review.book_id.in_(list(book_ids)))

        with translate_db_errors(self.db, "review statistics"):
            rows = self.db.execute(stmt).all()
        return {
            book_id: BookStats.from_totals(count, total)
            for book_id, count, total in rows
        }

    def list_for_book(self, book_id: int) -> list[Review]:
        """Reviews of a book, newest first."""
        stmt = (
            select(Review)
            .where(Review.book_id == book_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
        )
        with translate_db_errors(self.db, "review listing"):
            return list(self.db.execute(stmt).scalars().all())

    def append(
        self,
        book_id: int,
        rating: int,
        body: str,
        created_at: datetime | None = None,
    ) -> Review:
        """
        Append a new review.

        The caller has already validated rating and body and checked that
        the book exists; the database constraints back both up.

        Args:
            book_id: Reviewed book
            rating: 1-5 stars
            body: Review text
            created_at: Creation time, defaults to now (UTC)

        Returns:
            The stored review
        """
        review = Review(book_id=book_id, rating=rating, body=body)
        if created_at is not None:
            review.created_at = created_at

        with translate_db_errors(self.db, "review append"):
            self.db.add(review)
            self.db.commit()
            self.db.refresh(review)

        logger.info(f"Appended review {review.id} to book {book_id} (rating {rating})")
        if self.cache is not None:
            self.cache.on_book_written(book_id)
        return review
