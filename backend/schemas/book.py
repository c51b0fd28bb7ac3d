# backend/schemas/book.py
from datetime import date
from typing import List, Optional

from pydantic import Field, field_validator

from schemas.common import ORMBase, PageMeta, UTCDateTime, blank_to_none


# Shared base attributes for book entities
class BookBase(ORMBase):
    title: str = Field(min_length=1, max_length=255)
    author: str = Field(min_length=1, max_length=255)
    isbn: str = Field(min_length=10, max_length=20)
    description: Optional[str] = Field(None, max_length=1000)
    published_at: Optional[date] = None


# Schema for creating a new book
class BookCreate(BookBase):
    pass


class BookUpdate(ORMBase):
    """Schema for PATCH requests - all fields optional."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    author: Optional[str] = Field(None, min_length=1, max_length=255)
    isbn: Optional[str] = Field(None, min_length=10, max_length=20)
    description: Optional[str] = Field(None, max_length=1000)
    published_at: Optional[date] = None


# Full book representation including ID
class BookOut(BookBase):
    id: str
    created_at: UTCDateTime
    updated_at: UTCDateTime


class BookRating(ORMBase):
    id: str
    rating: int


# Listing entry: the book plus every approved rating it has received
class BookListItem(BookOut):
    feedbacks: List[BookRating] = []


class BookQuery(ORMBase):
    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)

    @field_validator("title", "author", "isbn", mode="before")
    @classmethod
    def _blank_is_omitted(cls, value):
        return blank_to_none(value)


# Paginated response for book listings
class BookPage(ORMBase):
    data: List[BookListItem]
    pagination: PageMeta
