"""
Book Pydantic Schemas

Schemas:
- BookBase / BookCreate / BookUpdate: administrative writes
- BookResponse: Book fields for API responses
- BookStats: Aggregate review statistics over a time window
- RankedBook: A book together with its statistics, one listing row
- BookListResponse: Paginated ranked listing
- BookDetailResponse: Book page with all-time statistics and reviews
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from bookshelf.schemas.review import ReviewResponse
from bookshelf.services.filters import BookFilter


class BookBase(BaseModel):
    """Base schema with shared book fields."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Book title",
        examples=["1984", "Pride and Prejudice"],
    )

    author: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Author name",
        examples=["George Orwell"],
    )

    published_date: date = Field(
        ...,
        description="Date of publication",
        examples=["1949-06-08"],
    )

    cover_image: str | None = Field(
        default=None,
        max_length=500,
        description="Cover image URL",
    )

    @field_validator("title", "author")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        """Validate and normalize text fields."""
        if not v.strip():
            raise ValueError("Value cannot be empty or whitespace")
        return v.strip()


class BookCreate(BookBase):
    """Schema for creating a new book."""

    pass


class BookUpdate(BaseModel):
    """
    Schema for updating an existing book.

    All fields are optional; only the ones that are set are written.
    """

    title: str | None = Field(default=None, min_length=1, max_length=255)
    author: str | None = Field(default=None, min_length=1, max_length=255)
    published_date: date | None = Field(default=None)
    cover_image: str | None = Field(default=None, max_length=500)


class BookResponse(BookBase):
    """Schema for book responses."""

    id: int = Field(..., description="Unique book identifier")

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "1984",
                "author": "George Orwell",
                "published_date": "1949-06-08",
                "cover_image": "https://covers.example.com/1984.jpg",
            }
        },
    )


class BookStats(BaseModel):
    """
    Aggregated rating statistics for a book over a time window.

    average_rating is None when review_count is 0. Comparisons use the
    exact value; it is rounded to 2 decimals only when serialized.
    """

    review_count: int = Field(default=0, ge=0, description="Number of reviews")
    average_rating: float | None = Field(
        default=None,
        ge=1,
        le=5,
        description="Mean rating, null when there are no reviews",
    )

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_totals(cls, review_count: int, rating_total: int | None) -> "BookStats":
        """Build stats from a COUNT and a SUM of ratings."""
        if not review_count:
            return cls()
        return cls(
            review_count=review_count,
            average_rating=rating_total / review_count,
        )

    @field_serializer("average_rating")
    def round_average(self, v: float | None) -> float | None:
        return round(v, 2) if v is not None else None


class RankedBook(BaseModel):
    """One row of a ranked listing."""

    book: BookResponse
    stats: BookStats


class BookListResponse(BaseModel):
    """
    Schema for paginated book listings.

    Includes pagination metadata and echoes the filter and search used.
    """

    items: list[RankedBook] = Field(..., description="Books on this page")
    filter: BookFilter = Field(..., description="Ranking applied")
    search: str | None = Field(default=None, description="Title search text")
    total: int = Field(..., ge=0, description="Total number of ranked books")
    page: int = Field(..., ge=1, description="Current page number")
    per_page: int = Field(..., ge=1, le=100, description="Items per page")
    pages: int = Field(..., ge=0, description="Total number of pages")


class BookDetailResponse(BaseModel):
    """Book page: the book, its all-time statistics and its reviews."""

    book: BookResponse
    stats: BookStats
    reviews: list[ReviewResponse] = Field(
        default_factory=list,
        description="Reviews, newest first",
    )
    updated_at: datetime | None = Field(
        default=None,
        description="When the book record last changed",
    )
