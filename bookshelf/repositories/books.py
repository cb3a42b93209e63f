"""
Book Repository

Owns the canonical book records: point lookups, the candidate query used by
the ranking engine, and the administrative create/update/delete operations.
"""

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from bookshelf.database import translate_db_errors
from bookshelf.exceptions import NotFoundError
from bookshelf.models import Book
from bookshelf.schemas.book import BookCreate, BookUpdate

if TYPE_CHECKING:
    from bookshelf.services.cache import CacheLayer

logger = logging.getLogger(__name__)


class BookRepository:
    """
    Book data access bound to one database session.

    Args:
        db: Session for the current request
        cache: Cache layer notified after every committed write
    """

    def __init__(self, db: Session, cache: "CacheLayer | None" = None) -> None:
        self.db = db
        self.cache = cache

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------
    def find(self, book_id: int) -> Book | None:
        """Get a book by ID, or None when it does not exist."""
        with translate_db_errors(self.db, "book lookup"):
            return self.db.get(Book, book_id)

    def get(self, book_id: int) -> Book:
        """
        Get a book by ID.

        Raises:
            NotFoundError: If no book has this ID
        """
        book = self.find(book_id)
        if book is None:
            raise NotFoundError("Book", book_id)
        return book

    def list(self, title_contains: str | None = None) -> list[Book]:
        """
        List books, optionally restricted by a title substring.

        The match is case-insensitive. The search text is sent as a bound
        parameter with LIKE wildcards escaped, so "%" and "_" only match
        themselves.

        Args:
            title_contains: Text the title must contain, None for all books

        Returns:
            Books ordered by ID
        """
        stmt = select(Book)
        if title_contains:
            stmt = stmt.where(Book.title.icontains(title_contains, autoescape=True))
        stmt = stmt.order_by(Book.id)

        with translate_db_errors(self.db, "book listing"):
            return list(self.db.execute(stmt).scalars().all())

    # -------------------------------------------------------------------------
    # Administrative writes
    # -------------------------------------------------------------------------
    def create(self, data: BookCreate) -> Book:
        """Insert a new book."""
        book = Book(**data.model_dump())
        with translate_db_errors(self.db, "book create"):
            self.db.add(book)
            self.db.commit()
            self.db.refresh(book)

        logger.info(f"Created book {book.id}: {book.title}")
        self._written(book.id)
        return book

    def update(self, book_id: int, data: BookUpdate) -> Book:
        """
        Update the fields that are set on `data`.

        Raises:
            NotFoundError: If no book has this ID
        """
        book = self.get(book_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(book, field, value)

        with translate_db_errors(self.db, "book update"):
            self.db.commit()
            self.db.refresh(book)

        logger.info(f"Updated book {book_id}")
        self._written(book_id)
        return book

    def delete(self, book_id: int) -> None:
        """
        Delete a book and, through the cascade, all of its reviews.

        Raises:
            NotFoundError: If no book has this ID
        """
        book = self.get(book_id)
        with translate_db_errors(self.db, "book delete"):
            self.db.delete(book)
            self.db.commit()

        logger.info(f"Deleted book {book_id}")
        self._written(book_id)

    def _written(self, book_id: int) -> None:
        if self.cache is not None:
            self.cache.on_book_written(book_id)
