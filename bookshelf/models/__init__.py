"""
SQLAlchemy Models Package

Model Relationships:
- Book -> Review: One-to-Many (a book has many reviews; deleting a book
                  deletes its reviews)

Import all models here so they are registered on Base.metadata and
available as: from bookshelf.models import Book, Review
"""

from bookshelf.models.book import Book
from bookshelf.models.review import Review

__all__ = [
    "Book",
    "Review",
]
