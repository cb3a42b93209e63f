"""
API Routers Package

Router Structure:
- books.py: /api/v1/books listing and book pages
- reviews.py: /api/v1/books/{book_id}/reviews

Each router is imported and registered in main.py.
"""

from bookshelf.routers.books import router as books_router
from bookshelf.routers.reviews import router as reviews_router

__all__ = [
    "books_router",
    "reviews_router",
]
