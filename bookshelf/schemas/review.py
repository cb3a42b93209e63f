"""
Review Pydantic Schemas

Schemas:
- ReviewCreate: Submit a new review
- ReviewResponse: Review data for API responses

Business Rules:
- Rating must be 1-5
- Body must be at least 15 characters after trimming
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bookshelf.models.review import (
    MAX_BODY_LENGTH,
    MAX_RATING,
    MIN_BODY_LENGTH,
    MIN_RATING,
)


class ReviewCreate(BaseModel):
    """
    Schema for creating a new review.

    Example request body:
    {
        "rating": 5,
        "body": "One of the best books I've ever read."
    }
    """

    rating: int = Field(
        ...,
        ge=MIN_RATING,
        le=MAX_RATING,
        strict=True,
        description="Rating from 1 to 5 stars",
        examples=[4, 5],
    )

    body: str = Field(
        ...,
        min_length=MIN_BODY_LENGTH,
        max_length=MAX_BODY_LENGTH,
        description="Review text content",
        examples=["This book changed my perspective on..."],
    )

    @field_validator("body", mode="before")
    @classmethod
    def strip_body(cls, v):
        """Trim surrounding whitespace before the length rules apply."""
        if isinstance(v, str):
            return v.strip()
        return v


class ReviewResponse(BaseModel):
    """Schema for review responses."""

    id: int = Field(..., description="Unique review identifier")
    book_id: int = Field(..., description="ID of the reviewed book")
    rating: int = Field(..., description="Rating from 1 to 5 stars")
    body: str = Field(..., description="Review text content")
    created_at: datetime = Field(..., description="When the review was created")

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": 1,
                "book_id": 42,
                "rating": 5,
                "body": "This book completely changed my perspective on...",
                "created_at": "2024-01-15T10:30:00Z",
            }
        },
    )
