"""
Listing Filters

The closed set of ways a book listing can be ranked, and the rule behind
each one: how far back reviews count, how many reviews a book needs to be
listed, and which statistic orders the list.

| Filter                      | Window   | Min reviews | Sort (desc)            |
|-----------------------------|----------|-------------|------------------------|
| latest                      | none     | 0           | published_date         |
| popular_last_month          | 1 month  | 2           | count, then average    |
| popular_last_6_months       | 6 months | 5           | count, then average    |
| highest_rated_last_month    | 1 month  | 2           | average, then count    |
| highest_rated_last_6_months | 6 months | 5           | average, then count    |
"""

import calendar
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class BookFilter(StrEnum):
    """Listing filter selected by the client."""

    LATEST = "latest"
    POPULAR_LAST_MONTH = "popular_last_month"
    POPULAR_LAST_6_MONTHS = "popular_last_6_months"
    HIGHEST_RATED_LAST_MONTH = "highest_rated_last_month"
    HIGHEST_RATED_LAST_6_MONTHS = "highest_rated_last_6_months"


class SortKey(StrEnum):
    """Primary ordering of a ranked listing."""

    PUBLISHED = "published"
    POPULARITY = "popularity"
    RATING = "rating"


@dataclass(frozen=True)
class FilterRule:
    """
    Ranking rule for one filter.

    Attributes:
        window_months: Calendar months of reviews that count, None for all
        min_reviews: Books with fewer reviews in the window are dropped
        sort_key: Primary ordering; the other statistic breaks ties
    """

    window_months: int | None
    min_reviews: int
    sort_key: SortKey

    def window_start(self, now: datetime) -> datetime | None:
        """Earliest review timestamp that counts, or None for no window."""
        if self.window_months is None:
            return None
        return months_before(now, self.window_months)


FILTER_RULES: dict[BookFilter, FilterRule] = {
    BookFilter.LATEST: FilterRule(None, 0, SortKey.PUBLISHED),
    BookFilter.POPULAR_LAST_MONTH: FilterRule(1, 2, SortKey.POPULARITY),
    BookFilter.POPULAR_LAST_6_MONTHS: FilterRule(6, 5, SortKey.POPULARITY),
    BookFilter.HIGHEST_RATED_LAST_MONTH: FilterRule(1, 2, SortKey.RATING),
    BookFilter.HIGHEST_RATED_LAST_6_MONTHS: FilterRule(6, 5, SortKey.RATING),
}


def get_filter_rule(book_filter: BookFilter) -> FilterRule:
    """Look up the ranking rule for a filter."""
    return FILTER_RULES[BookFilter(book_filter)]


def months_before(moment: datetime, months: int) -> datetime:
    """
    Step back a number of calendar months.

    The day is clamped to the length of the target month, so
    March 31 minus one month is February 28 (or 29).

    Examples:
        months_before(datetime(2024, 7, 15), 6) -> datetime(2024, 1, 15)
        months_before(datetime(2024, 3, 31), 1) -> datetime(2024, 2, 29)
    """
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)
