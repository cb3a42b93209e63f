"""
Services Package

Business logic kept separate from HTTP handling so it can be tested in
isolation:

- filters.py: Listing filters and their window/threshold/sort rules
- ranking.py: Ranking engine (candidates, statistics, thresholds, order)
- cache.py: Read-through cache with write invalidation (memory or Redis)
- submission_guard.py: Per-identity review submission allowance
- rate_limiter.py: Per-IP request limits on read endpoints (slowapi)
- catalog.py: list_books / get_book / submit_review orchestration
"""
