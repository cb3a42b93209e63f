"""
Pydantic Schemas Package

Request/response validation models, kept separate from the SQLAlchemy
models so the API shape can evolve independently of the tables.

Schema Naming Convention:
- XxxCreate: Fields required when creating a new record
- XxxUpdate: Fields allowed when updating (all optional)
- XxxResponse: Fields returned in API responses
"""

from bookshelf.schemas.review import ReviewCreate, ReviewResponse
from bookshelf.schemas.book import (
    BookBase,
    BookCreate,
    BookDetailResponse,
    BookListResponse,
    BookResponse,
    BookStats,
    BookUpdate,
    RankedBook,
)

__all__ = [
    # Book schemas
    "BookBase",
    "BookCreate",
    "BookUpdate",
    "BookResponse",
    "BookStats",
    "RankedBook",
    "BookListResponse",
    "BookDetailResponse",
    # Review schemas
    "ReviewCreate",
    "ReviewResponse",
]
