"""
Test Suite for Bookshelf

Test Organization:
- conftest.py: Shared fixtures (test database, cache, guard, client, sample data)
- test_filters.py: Filter rules and calendar-month windows
- test_ranking.py: Ranking engine thresholds and ordering
- test_cache.py: Cache layer keys, read-through, TTL and invalidation
- test_submission_guard.py: Review submission allowance
- test_rate_limiter.py: Client address resolution and read-limit 429s
- test_repositories.py: Book and review repositories
- test_catalog.py: list_books / get_book / submit_review orchestration
- test_books.py: /api/v1/books endpoints
- test_reviews.py: /api/v1/books/{book_id}/reviews endpoints

Running Tests:
    pytest
    pytest tests/test_ranking.py -v
"""
