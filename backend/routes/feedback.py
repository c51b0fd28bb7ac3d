# backend/routes/feedback.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas import feedback as feedback_schemas
from schemas.common import MessageResponse
from services import feedback as feedback_service
from services.policy import Actor
from utils.audit import write_log, client_ip
from utils.tokenJWT import get_current_actor, role_required

router = APIRouter(prefix="/feedback", tags=["Feedback"])

require_admin = role_required("ADMIN")


def feedback_filters(
    filter_book_id: Optional[str] = Query(None, alias="bookId", description="Filter feedback by book ID"),
    filter_user_id: Optional[str] = Query(None, alias="userId", description="Filter feedback by user ID"),
    is_approved: Optional[str] = Query(None, alias="isApproved", description="Filter by approval status"),
    min_rating: Optional[int] = Query(None, alias="minRating", ge=1, description="Filter by minimum rating"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
) -> feedback_schemas.FeedbackQuery:
    # Parameter names must not shadow the {book_id} / {user_id} path params of the routes using this
    return feedback_schemas.FeedbackQuery(
        book_id=filter_book_id, user_id=filter_user_id, is_approved=is_approved,
        min_rating=min_rating, page=page, limit=limit,
    )


# Submit feedback for a book (always pending until an admin approves it)
@router.post("", response_model=feedback_schemas.FeedbackOut, status_code=status.HTTP_201_CREATED)
def create_feedback(
    payload: feedback_schemas.FeedbackCreate,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    feedback = feedback_service.create_feedback(db, actor.id, payload)
    write_log(db, user_id=actor.id, action="FEEDBACK_CREATE", resource="feedback",
              ip=client_ip(request), meta={"feedback_id": feedback.id, "book_id": feedback.book_id})
    return feedback


# Moderation queue (Admin only)
@router.get("", response_model=feedback_schemas.FeedbackPage)
def list_feedback(
    filters: feedback_schemas.FeedbackQuery = Depends(feedback_filters),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return feedback_service.list_feedback(db, filters)


# Public: approved feedback for one book
@router.get("/book/{book_id}", response_model=feedback_schemas.FeedbackPage)
def get_book_feedback(
    book_id: str,
    filters: feedback_schemas.FeedbackQuery = Depends(feedback_filters),
    db: Session = Depends(get_db),
):
    return feedback_service.get_book_feedback(db, book_id, filters)


@router.get("/user/{user_id}", response_model=feedback_schemas.FeedbackPage)
def get_user_feedback(
    user_id: str,
    filters: feedback_schemas.FeedbackQuery = Depends(feedback_filters),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return feedback_service.get_user_feedback(db, user_id, filters)


@router.get("/my-feedback", response_model=feedback_schemas.FeedbackPage)
def get_my_feedback(
    filters: feedback_schemas.FeedbackQuery = Depends(feedback_filters),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return feedback_service.get_user_feedback(db, actor.id, filters)


@router.get("/{feedback_id}", response_model=feedback_schemas.FeedbackOut)
def get_feedback(
    feedback_id: str,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return feedback_service.get_feedback(db, feedback_id)


# Update feedback (owner or admin)
@router.patch("/{feedback_id}", response_model=feedback_schemas.FeedbackOut)
def update_feedback(
    feedback_id: str,
    payload: feedback_schemas.FeedbackUpdate,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    feedback = feedback_service.update_feedback(db, feedback_id, payload, actor.id, actor.role)
    write_log(db, user_id=actor.id, action="FEEDBACK_UPDATE", resource="feedback",
              ip=client_ip(request), meta={"feedback_id": feedback_id, "is_approved": feedback.is_approved})
    return feedback


# Delete feedback (owner or admin)
@router.delete("/{feedback_id}", response_model=MessageResponse)
def delete_feedback(
    feedback_id: str,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    result = feedback_service.remove_feedback(db, feedback_id, actor.id, actor.role)
    write_log(db, user_id=actor.id, action="FEEDBACK_DELETE", resource="feedback",
              ip=client_ip(request), meta={"feedback_id": feedback_id})
    return result


@router.patch("/{feedback_id}/approve", response_model=feedback_schemas.FeedbackOut)
def approve_feedback(
    feedback_id: str,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    feedback = feedback_service.approve_feedback(db, feedback_id, actor=actor)
    write_log(db, user_id=actor.id, action="FEEDBACK_APPROVE", resource="feedback",
              ip=client_ip(request), meta={"feedback_id": feedback_id})
    return feedback


@router.patch("/{feedback_id}/reject", response_model=feedback_schemas.FeedbackOut)
def reject_feedback(
    feedback_id: str,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    feedback = feedback_service.reject_feedback(db, feedback_id, actor=actor)
    write_log(db, user_id=actor.id, action="FEEDBACK_REJECT", resource="feedback",
              ip=client_ip(request), meta={"feedback_id": feedback_id})
    return feedback
