"""
Repositories Package

Data access for books and reviews. Routers and services never build
queries themselves; they go through these classes.

- books.py: BookRepository (lookups, title search, administrative writes)
- reviews.py: ReviewRepository (aggregate statistics, append, listing)

Write methods call the cache layer's write hook after committing so cached
book pages and listings never outlive the data they were built from.
"""

from bookshelf.repositories.books import BookRepository
from bookshelf.repositories.reviews import ReviewRepository

__all__ = [
    "BookRepository",
    "ReviewRepository",
]
