# backend/services/books.py
import logging
from collections import defaultdict
from typing import Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.book import Book
from models.feedback import Feedback
from schemas.book import BookCreate, BookListItem, BookOut, BookPage, BookQuery, BookRating, BookUpdate
from schemas.common import MessageResponse
from utils.errors import ConflictError, NotFoundError
from utils.pagination import paginate

logger = logging.getLogger(__name__)

DUPLICATE_ISBN = "Book with this ISBN already exists"
CLEARABLE_FIELDS = ("description", "published_at")


def _load(db: Session, book_id: str) -> Book:
    book = db.get(Book, book_id)
    if book is None:
        raise NotFoundError(f"Book with ID {book_id} not found")
    return book


def _isbn_taken(db: Session, isbn: str) -> bool:
    return db.query(Book.id).filter(Book.isbn == isbn).first() is not None


def _commit_unique(db: Session, isbn: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if _isbn_taken(db, isbn):
            raise ConflictError(DUPLICATE_ISBN)
        raise


def create_book(db: Session, payload: Union[BookCreate, dict]) -> BookOut:
    if not isinstance(payload, BookCreate):
        payload = BookCreate.model_validate(payload)

    if _isbn_taken(db, payload.isbn):
        raise ConflictError(DUPLICATE_ISBN)

    book = Book(
        title=payload.title,
        author=payload.author,
        isbn=payload.isbn,
        description=payload.description,
        published_at=payload.published_at,
    )
    db.add(book)
    _commit_unique(db, payload.isbn)
    db.refresh(book)

    logger.info("Book %s created (isbn=%s)", book.id, book.isbn)
    return BookOut.model_validate(book)


def list_books(db: Session, filters: Union[BookQuery, dict, None] = None) -> BookPage:
    query_params = filters if isinstance(filters, BookQuery) else BookQuery.model_validate(filters or {})

    query = db.query(Book)
    if query_params.title:
        query = query.filter(Book.title.ilike(f"%{query_params.title}%"))
    if query_params.author:
        query = query.filter(Book.author.ilike(f"%{query_params.author}%"))
    if query_params.isbn:
        query = query.filter(Book.isbn.ilike(f"%{query_params.isbn}%"))

    query = query.order_by(Book.created_at.desc())
    books, meta = paginate(query, query_params.page, query_params.limit)

    # Approved ratings for the whole page in one round trip
    ratings = defaultdict(list)
    if books:
        rows = (
            db.query(Feedback.id, Feedback.rating, Feedback.book_id)
            .filter(Feedback.book_id.in_([b.id for b in books]), Feedback.is_approved.is_(True))
            .all()
        )
        for feedback_id, rating, book_id in rows:
            ratings[book_id].append(BookRating(id=feedback_id, rating=rating))

    items = [
        BookListItem(**BookOut.model_validate(b).model_dump(), feedbacks=ratings[b.id])
        for b in books
    ]
    return BookPage(data=items, pagination=meta)


def get_book(db: Session, book_id: str) -> BookOut:
    return BookOut.model_validate(_load(db, book_id))


def update_book(db: Session, book_id: str, patch: Union[BookUpdate, dict]) -> BookOut:
    if not isinstance(patch, BookUpdate):
        patch = BookUpdate.model_validate(patch)
    book = _load(db, book_id)
    # An explicit null clears an optional column; required columns ignore it
    changes = {
        field: value
        for field, value in patch.model_dump(exclude_unset=True).items()
        if value is not None or field in CLEARABLE_FIELDS
    }

    # A book keeping its own ISBN is not a conflict
    new_isbn = changes.get("isbn")
    if new_isbn and new_isbn != book.isbn and _isbn_taken(db, new_isbn):
        raise ConflictError(DUPLICATE_ISBN)

    for field, value in changes.items():
        setattr(book, field, value)

    _commit_unique(db, book.isbn)
    db.refresh(book)

    logger.info("Book %s updated (%s)", book_id, ", ".join(sorted(changes)) or "no changes")
    return BookOut.model_validate(book)


def remove_book(db: Session, book_id: str) -> MessageResponse:
    book = _load(db, book_id)
    db.delete(book)
    db.commit()

    logger.info("Book %s deleted", book_id)
    return MessageResponse(message="Book deleted successfully")
