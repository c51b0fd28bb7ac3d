# backend/services/feedback.py
"""Feedback lifecycle.

A feedback record is either pending (``is_approved = False``) or approved.
Approve and reject flip between the two; delete removes the row. Every
operation returns ``FeedbackOut``, the record joined with the restricted
user/book projection.
"""
import logging
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.book import Book
from models.feedback import Feedback
from models.users import User
from schemas.common import MessageResponse
from schemas.feedback import FeedbackCreate, FeedbackOut, FeedbackPage, FeedbackQuery, FeedbackUpdate
from services.policy import Action, Actor, FeedbackResource, ensure_allowed
from utils.errors import BadRequestError, ConflictError, NotFoundError
from utils.pagination import paginate

logger = logging.getLogger(__name__)

DUPLICATE_FEEDBACK = "You have already provided feedback for this book"


def _load(db: Session, feedback_id: str) -> Feedback:
    feedback = db.get(Feedback, feedback_id)
    if feedback is None:
        raise NotFoundError(f"Feedback with ID {feedback_id} not found")
    return feedback


def _find_existing(db: Session, user_id: str, book_id: str) -> Optional[Feedback]:
    return (
        db.query(Feedback)
        .filter(Feedback.user_id == user_id, Feedback.book_id == book_id)
        .first()
    )


def _as_resource(feedback: Feedback) -> FeedbackResource:
    return FeedbackResource(owner_id=feedback.user_id, is_approved=feedback.is_approved)


def _coerce_query(filters: Union[FeedbackQuery, dict, None]) -> FeedbackQuery:
    if isinstance(filters, FeedbackQuery):
        return filters
    return FeedbackQuery.model_validate(filters or {})


def _save(db: Session, feedback: Feedback) -> FeedbackOut:
    db.commit()
    db.refresh(feedback)
    return FeedbackOut.model_validate(feedback)


def create_feedback(db: Session, user_id: str, payload: Union[FeedbackCreate, dict]) -> FeedbackOut:
    if not isinstance(payload, FeedbackCreate):
        payload = FeedbackCreate.model_validate(payload)

    if db.get(Book, payload.book_id) is None:
        raise NotFoundError(f"Book with ID {payload.book_id} not found")

    if _find_existing(db, user_id, payload.book_id) is not None:
        raise ConflictError(DUPLICATE_FEEDBACK)

    feedback = Feedback(
        rating=payload.rating,
        comment=payload.comment,
        user_id=user_id,
        book_id=payload.book_id,
        # New feedback always waits for moderation
        is_approved=False,
    )
    db.add(feedback)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        # A concurrent insert won the unique constraint after our pre-check
        if _find_existing(db, user_id, payload.book_id) is not None:
            logger.warning("Duplicate feedback insert for user=%s book=%s", user_id, payload.book_id)
            raise ConflictError(DUPLICATE_FEEDBACK)
        raise

    db.refresh(feedback)
    logger.info("Feedback %s created by user %s for book %s", feedback.id, user_id, payload.book_id)
    return FeedbackOut.model_validate(feedback)


def list_feedback(db: Session, filters: Union[FeedbackQuery, dict, None] = None) -> FeedbackPage:
    query_params = _coerce_query(filters)

    query = db.query(Feedback)
    if query_params.book_id:
        query = query.filter(Feedback.book_id == query_params.book_id)
    if query_params.user_id:
        query = query.filter(Feedback.user_id == query_params.user_id)
    if query_params.is_approved is not None:
        query = query.filter(Feedback.is_approved == query_params.is_approved)
    if query_params.min_rating is not None:
        query = query.filter(Feedback.rating >= query_params.min_rating)

    query = query.order_by(Feedback.created_at.desc())
    items, meta = paginate(query, query_params.page, query_params.limit)

    return FeedbackPage(data=[FeedbackOut.model_validate(f) for f in items], pagination=meta)


def get_feedback(db: Session, feedback_id: str) -> FeedbackOut:
    return FeedbackOut.model_validate(_load(db, feedback_id))


def update_feedback(
    db: Session,
    feedback_id: str,
    patch: Union[FeedbackUpdate, dict],
    actor_id: str,
    actor_role: str,
) -> FeedbackOut:
    if not isinstance(patch, FeedbackUpdate):
        patch = FeedbackUpdate.model_validate(patch)
    feedback = _load(db, feedback_id)
    actor = Actor(id=actor_id, role=actor_role)
    changes = patch.model_dump(exclude_unset=True, exclude_none=True)

    ensure_allowed(actor, _as_resource(feedback), Action.UPDATE)
    if "is_approved" in changes:
        ensure_allowed(actor, _as_resource(feedback), Action.CHANGE_APPROVAL)

    for field in ("rating", "comment", "is_approved"):
        if field in changes:
            setattr(feedback, field, changes[field])

    # An author editing their own feedback sends it back to moderation
    if not actor.is_admin:
        feedback.is_approved = False

    result = _save(db, feedback)
    logger.info("Feedback %s updated by %s (%s)", feedback_id, actor_id, actor.role)
    return result


def remove_feedback(db: Session, feedback_id: str, actor_id: str, actor_role: str) -> MessageResponse:
    feedback = _load(db, feedback_id)
    ensure_allowed(Actor(id=actor_id, role=actor_role), _as_resource(feedback), Action.DELETE)

    db.delete(feedback)
    db.commit()
    logger.info("Feedback %s deleted by %s", feedback_id, actor_id)
    return MessageResponse(message="Feedback deleted successfully")


def approve_feedback(db: Session, feedback_id: str, actor: Optional[Actor] = None) -> FeedbackOut:
    feedback = _load(db, feedback_id)
    if actor is not None:
        ensure_allowed(actor, _as_resource(feedback), Action.APPROVE)
    if feedback.is_approved:
        raise BadRequestError("Feedback is already approved")

    feedback.is_approved = True
    result = _save(db, feedback)
    logger.info("Feedback %s approved", feedback_id)
    return result


def reject_feedback(db: Session, feedback_id: str, actor: Optional[Actor] = None) -> FeedbackOut:
    feedback = _load(db, feedback_id)
    if actor is not None:
        ensure_allowed(actor, _as_resource(feedback), Action.REJECT)
    if not feedback.is_approved:
        raise BadRequestError("Feedback is already rejected")

    feedback.is_approved = False
    result = _save(db, feedback)
    logger.info("Feedback %s rejected", feedback_id)
    return result


def get_book_feedback(db: Session, book_id: str, filters: Union[FeedbackQuery, dict, None] = None) -> FeedbackPage:
    """Public listing: approved feedback only, whatever the caller asked for."""
    if db.get(Book, book_id) is None:
        raise NotFoundError(f"Book with ID {book_id} not found")

    query_params = _coerce_query(filters).model_copy(update={"book_id": book_id, "is_approved": True})
    return list_feedback(db, query_params)


def get_user_feedback(db: Session, user_id: str, filters: Union[FeedbackQuery, dict, None] = None) -> FeedbackPage:
    if db.get(User, user_id) is None:
        raise NotFoundError(f"User with ID {user_id} not found")

    query_params = _coerce_query(filters).model_copy(update={"user_id": user_id})
    return list_feedback(db, query_params)
