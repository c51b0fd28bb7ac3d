# backend/services/users.py
import logging
from typing import Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.feedback import Feedback
from models.role import Role
from models.users import User
from schemas.common import MessageResponse
from schemas.user import ChangeRoleRequest, SignupRequest, UserOut, UserPage, UserQuery, UserStats, UserUpdate
from utils.errors import BadRequestError, ConflictError, NotFoundError
from utils.hashing import get_password_hash
from utils.pagination import paginate

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL = "User with this email already exists"
DEFAULT_ROLE_ID = "user"
USER_HAS_FEEDBACK = "Cannot delete user with existing feedback. Please delete feedback first."


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _load(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User with ID {user_id} not found")
    return user


def find_by_email(db: Session, email: str):
    return db.query(User).filter(func.lower(User.email) == normalize_email(email)).first()


def _commit_unique(db: Session, email: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if find_by_email(db, email) is not None:
            raise ConflictError(DUPLICATE_EMAIL)
        raise


def _default_role(db: Session) -> Role:
    role = db.get(Role, DEFAULT_ROLE_ID)
    if role is None:
        role = Role(id=DEFAULT_ROLE_ID, name="USER", description="Regular user")
        db.add(role)
        db.flush()
    return role


def signup(db: Session, payload: Union[SignupRequest, dict]) -> User:
    if not isinstance(payload, SignupRequest):
        payload = SignupRequest.model_validate(payload)
    email = normalize_email(payload.email)

    if find_by_email(db, email) is not None:
        raise ConflictError(DUPLICATE_EMAIL)

    user = User(
        email=email,
        password_hash=get_password_hash(payload.password),
        name=payload.name,
        role_id=_default_role(db).id,
    )
    db.add(user)
    _commit_unique(db, email)
    db.refresh(user)

    logger.info("User %s signed up", user.id)
    return user


def list_users(db: Session, filters: Union[UserQuery, dict, None] = None) -> UserPage:
    query_params = filters if isinstance(filters, UserQuery) else UserQuery.model_validate(filters or {})

    query = db.query(User)
    if query_params.name:
        query = query.filter(User.name.ilike(f"%{query_params.name}%"))
    if query_params.email:
        query = query.filter(User.email.ilike(f"%{query_params.email}%"))
    if query_params.role:
        query = query.join(Role, User.role_id == Role.id).filter(Role.name == query_params.role.upper())

    query = query.order_by(User.created_at.desc())
    users, meta = paginate(query, query_params.page, query_params.limit)
    return UserPage(data=[UserOut.model_validate(u) for u in users], pagination=meta)


def get_user(db: Session, user_id: str) -> UserOut:
    return UserOut.model_validate(_load(db, user_id))


def update_user(db: Session, user_id: str, patch: Union[UserUpdate, dict]) -> UserOut:
    if not isinstance(patch, UserUpdate):
        patch = UserUpdate.model_validate(patch)
    user = _load(db, user_id)
    changes = patch.model_dump(exclude_unset=True, exclude_none=True)
    changed_fields = sorted(changes)

    if "email" in changes:
        changes["email"] = normalize_email(changes["email"])
        if changes["email"] != user.email and find_by_email(db, changes["email"]) is not None:
            raise ConflictError(DUPLICATE_EMAIL)

    # The plaintext never reaches the model
    password = changes.pop("password", None)
    if password:
        user.password_hash = get_password_hash(password)

    for field, value in changes.items():
        setattr(user, field, value)

    _commit_unique(db, user.email)
    db.refresh(user)

    logger.info("User %s updated (%s)", user_id, ", ".join(changed_fields) or "no changes")
    return UserOut.model_validate(user)


def _has_feedback(db: Session, user_id: str) -> bool:
    return db.query(Feedback.id).filter(Feedback.user_id == user_id).first() is not None


def remove_user(db: Session, user_id: str) -> MessageResponse:
    user = _load(db, user_id)

    # Referential guard: feedback is never deleted along with its author
    if _has_feedback(db, user_id):
        raise BadRequestError(USER_HAS_FEEDBACK)

    db.delete(user)
    try:
        db.commit()
    except IntegrityError:
        # Feedback written after the guard ran still holds the foreign key
        db.rollback()
        raise BadRequestError(USER_HAS_FEEDBACK)
    logger.info("User %s deleted", user_id)
    return MessageResponse(message="User deleted successfully")


def change_role(db: Session, user_id: str, payload: Union[ChangeRoleRequest, dict]) -> UserOut:
    if not isinstance(payload, ChangeRoleRequest):
        payload = ChangeRoleRequest.model_validate(payload)
    user = _load(db, user_id)

    role = db.get(Role, payload.role_id)
    if role is None:
        raise NotFoundError(f"Role with ID {payload.role_id} not found")

    if user.role_id == role.id:
        raise BadRequestError("User already has this role")

    user.role_id = role.id
    user.role = role
    db.commit()
    db.refresh(user)

    logger.info("User %s role changed to %s", user_id, role.name)
    return UserOut.model_validate(user)


def get_user_stats(db: Session) -> UserStats:
    def _count_role(name: str) -> int:
        return db.query(User).join(Role, User.role_id == Role.id).filter(Role.name == name).count()

    return UserStats(
        total_users=db.query(User).count(),
        user_role_count=_count_role("USER"),
        admin_role_count=_count_role("ADMIN"),
    )
