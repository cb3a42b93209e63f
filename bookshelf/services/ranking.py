"""
Ranking Engine

Turns a listing filter and an optional title search into an ordered list of
books with their review statistics.

Algorithm:
1. Candidates: every book, or those whose title contains the search text
   (case-insensitive)
2. Statistics: review count and average rating per candidate, counting only
   reviews inside the filter's window ("latest" counts all reviews)
3. Threshold: drop books with fewer reviews than the filter requires
4. Order: the filter's sort key descending, the other statistic breaking
   ties, then book ID ascending so equal books always come out in the
   same order
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime

from bookshelf.models import Book
from bookshelf.repositories import BookRepository, ReviewRepository
from bookshelf.schemas.book import BookResponse, BookStats, RankedBook
from bookshelf.services.filters import BookFilter, FilterRule, SortKey, get_filter_rule

logger = logging.getLogger(__name__)

EMPTY_STATS = BookStats()


def utc_now() -> datetime:
    return datetime.now(UTC)


def _sort_key(rule: FilterRule) -> Callable[[tuple[Book, BookStats]], tuple]:
    if rule.sort_key is SortKey.PUBLISHED:
        return lambda pair: (-pair[0].published_date.toordinal(), pair[0].id)
    if rule.sort_key is SortKey.POPULARITY:
        return lambda pair: (-pair[1].review_count, -pair[1].average_rating, pair[0].id)
    return lambda pair: (-pair[1].average_rating, -pair[1].review_count, pair[0].id)


def rank_books(
    books: Iterable[Book],
    stats_by_book: Mapping[int, BookStats],
    rule: FilterRule,
) -> list[RankedBook]:
    """
    Apply a filter rule to candidate books.

    Pure function: no I/O, same input always gives the same output.

    Args:
        books: Candidate books
        stats_by_book: Statistics inside the rule's window; a missing book
            has no reviews
        rule: Threshold and ordering to apply

    Returns:
        Ranked books, best first
    """
    # A statistic-ordered listing never holds a book without reviews,
    # because a missing average cannot be compared
    min_reviews = rule.min_reviews
    if rule.sort_key is not SortKey.PUBLISHED:
        min_reviews = max(min_reviews, 1)

    pairs = [
        (book, stats_by_book.get(book.id, EMPTY_STATS))
        for book in books
    ]
    pairs = [pair for pair in pairs if pair[1].review_count >= min_reviews]
    pairs.sort(key=_sort_key(rule))

    return [
        RankedBook(book=BookResponse.model_validate(book), stats=stats)
        for book, stats in pairs
    ]


class RankingEngine:
    """
    Ranks books using the repositories of the current request.

    Args:
        books: Book repository (candidate selection)
        reviews: Review repository (statistics)
        clock: Returns the current UTC time; the windows are measured from it
    """

    def __init__(
        self,
        books: BookRepository,
        reviews: ReviewRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.books = books
        self.reviews = reviews
        self.clock = clock

    def rank(self, book_filter: BookFilter, search: str | None = None) -> list[RankedBook]:
        """
        Produce the full ranked listing for a filter and optional search.

        Args:
            book_filter: Listing filter
            search: Title substring; blank means no search

        Returns:
            Every qualifying book in order (empty list if none qualify)
        """
        rule = get_filter_rule(book_filter)
        search = (search or "").strip() or None

        candidates = self.books.list(title_contains=search)
        if not candidates:
            return []

        since = rule.window_start(self.clock())
        # Without a search every book is a candidate, so skip the IN list
        book_ids = [book.id for book in candidates] if search else None
        stats = self.reviews.stats_by_book(book_ids, since=since)

        ranked = rank_books(candidates, stats, rule)
        logger.debug(
            f"Ranked {len(ranked)}/{len(candidates)} books for "
            f"filter={book_filter} search={search!r} since={since}"
        )
        return ranked
