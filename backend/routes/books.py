# backend/routes/books.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas import book as book_schemas
from schemas.common import MessageResponse
from services import books as books_service
from utils.audit import write_log, client_ip
from utils.tokenJWT import role_required

router = APIRouter(prefix="/books", tags=["Books"])

require_admin = role_required("ADMIN")


@router.post("", response_model=book_schemas.BookOut, status_code=status.HTTP_201_CREATED)
def create_book(
    payload: book_schemas.BookCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    book = books_service.create_book(db, payload)
    write_log(db, user_id=current_user.id, action="BOOK_CREATE", resource="books",
              ip=client_ip(request), meta={"book_id": book.id, "isbn": book.isbn})
    return book


# Public catalog listing
@router.get("", response_model=book_schemas.BookPage)
def list_books(
    title: Optional[str] = Query(None, description="Search term for book title"),
    author: Optional[str] = Query(None, description="Search term for book author"),
    isbn: Optional[str] = Query(None, description="Search by ISBN"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    filters = book_schemas.BookQuery(title=title, author=author, isbn=isbn, page=page, limit=limit)
    return books_service.list_books(db, filters)


@router.get("/{book_id}", response_model=book_schemas.BookOut)
def get_book(book_id: str, db: Session = Depends(get_db)):
    return books_service.get_book(db, book_id)


@router.patch("/{book_id}", response_model=book_schemas.BookOut)
def update_book(
    book_id: str,
    payload: book_schemas.BookUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    book = books_service.update_book(db, book_id, payload)
    write_log(db, user_id=current_user.id, action="BOOK_UPDATE", resource="books",
              ip=client_ip(request), meta={"book_id": book_id,
                                           "fields": sorted(payload.model_dump(exclude_unset=True))})
    return book


@router.delete("/{book_id}", response_model=MessageResponse)
def delete_book(
    book_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    result = books_service.remove_book(db, book_id)
    write_log(db, user_id=current_user.id, action="BOOK_DELETE", resource="books",
              ip=client_ip(request), meta={"book_id": book_id})
    return result
