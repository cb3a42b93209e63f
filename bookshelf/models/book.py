"""
Book Model

The canonical book record. Books are listed, ranked by their reviews and
shown on a book page together with those reviews.
"""

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bookshelf.database import Base

if TYPE_CHECKING:
    from bookshelf.models.review import Review


class Book(Base):
    """
    Book model representing books in the catalog.

    Table: books

    Fields:
    - title: Book title (required, searched case-insensitively)
    - author: Author name as printed on the cover
    - published_date: Publication date, the sort key of the "latest" listing
    - cover_image: URL or path of the cover image

    Relationships:
    - reviews: One-to-Many, cascade delete

    Example:
        book = Book(
            title="1984",
            author="George Orwell",
            published_date=date(1949, 6, 8),
            cover_image="https://covers.example.com/1984.jpg",
        )
    """

    __tablename__ = "books"

    # -------------------------------------------------------------------------
    # Primary Key
    # -------------------------------------------------------------------------
    id: Mapped[int] = mapped_column(primary_key=True)

    # -------------------------------------------------------------------------
    # Basic Fields
    # -------------------------------------------------------------------------
    title: Mapped[str] = mapped_column(
        String(255),
        index=True,
        nullable=False,
        comment="Book title"
    )

    author: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Author name"
    )

    # Date (not DateTime) because we only care about the day
    published_date: Mapped[date] = mapped_column(
        Date,
        index=True,
        nullable=False,
        comment="Date of publication"
    )

    cover_image: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        comment="Cover image URL"
    )

    # -------------------------------------------------------------------------
    # Timestamps
    # -------------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    # -------------------------------------------------------------------------
    # Relationships
    # -------------------------------------------------------------------------
    # passive_deletes lets the database's ON DELETE CASCADE remove rows the
    # session never loaded
    reviews: Mapped[list["Review"]] = relationship(
        "Review",
        back_populates="book",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"Book(id={self.id}, title='{self.title}', author='{self.author}')"
