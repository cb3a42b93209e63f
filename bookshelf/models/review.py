"""
Review Model

A reader's rating and written opinion of a book.

Business Rules:
- Rating must be 1-5
- Body must be at least 15 characters
- Reviews are append-only: never edited or deleted directly, only removed
  together with their book
"""

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookshelf.database import Base

MIN_RATING = 1
MAX_RATING = 5
MIN_BODY_LENGTH = 15
MAX_BODY_LENGTH = 5000


class Review(Base):
    """
    Review model for book reviews.

    Attributes:
        id: Primary key
        book_id: Foreign key to books table
        rating: 1-5 star rating
        body: Review text
        created_at: When the review was created (UTC), used by the
            ranking windows
    """

    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    book_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("books.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    rating: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Rating from 1-5 stars",
    )
    body: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Review text content",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        index=True,
        nullable=False,
    )

    book = relationship("Book", back_populates="reviews")

    __table_args__ = (
        CheckConstraint(
            f"rating >= {MIN_RATING} AND rating <= {MAX_RATING}",
            name="ck_review_rating_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, book_id={self.book_id}, rating={self.rating})>"
