import uuid

from sqlalchemy import Column, Date, DateTime, String, Text
from sqlalchemy.orm import relationship
from database import Base, utc_now

# Catalog entry. ISBN is the natural unique key; feedback goes away with its book.
class Book(Base):
    __tablename__ = "books"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False, index=True)
    author = Column(String(255), nullable=False, index=True)
    isbn = Column(String(20), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    published_at = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    feedbacks = relationship(
        "Feedback",
        back_populates="book",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
