# backend/schemas/feedback.py
from typing import List, Optional

from pydantic import Field, field_validator

from schemas.common import ORMBase, PageMeta, UTCDateTime, blank_to_none


# Schema for submitting feedback; approval state is never taken from the caller
class FeedbackCreate(ORMBase):
    rating: int = Field(ge=1, le=5, description="Rating from 1 to 5 stars")
    comment: str = Field(min_length=10)
    book_id: str = Field(min_length=1)


class FeedbackUpdate(ORMBase):
    """Schema for PATCH requests - all fields optional."""
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, min_length=10)
    is_approved: Optional[bool] = Field(None, description="Admin approval status (admin only)")


# Restricted projections of the owning user and book
class FeedbackUser(ORMBase):
    id: str
    name: str
    email: str


class FeedbackBook(ORMBase):
    id: str
    title: str
    author: str


# The only shape a feedback record is ever returned in
class FeedbackOut(ORMBase):
    id: str
    rating: int
    comment: str
    user_id: str
    book_id: str
    is_approved: bool
    created_at: UTCDateTime
    updated_at: UTCDateTime
    user: FeedbackUser
    book: FeedbackBook


class FeedbackQuery(ORMBase):
    book_id: Optional[str] = None
    user_id: Optional[str] = None
    # Tri-state: None means no constraint on approval
    is_approved: Optional[bool] = None
    min_rating: Optional[int] = Field(None, ge=1)
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)

    @field_validator("book_id", "user_id", "is_approved", "min_rating", mode="before")
    @classmethod
    def _blank_is_omitted(cls, value):
        return blank_to_none(value)


class FeedbackPage(ORMBase):
    data: List[FeedbackOut]
    pagination: PageMeta
