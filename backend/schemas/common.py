from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


# Base configuration for ORM compatibility; camelCase on the wire, snake_case in Python
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


def as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; they are stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]


# Pagination block attached to every list response
class PageMeta(ORMBase):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class MessageResponse(BaseModel):
    message: str


def blank_to_none(value):
    """Query strings send empty values as ''; treat them as an omitted filter."""
    if isinstance(value, str) and not value.strip():
        return None
    return value
