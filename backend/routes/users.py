# backend/routes/users.py
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas import user as user_schemas
from schemas.common import MessageResponse
from services import users as users_service
from utils.audit import write_log, client_ip
from utils.errors import BadRequestError
from utils.tokenJWT import get_current_user, role_required

router = APIRouter(prefix="/users", tags=["Users"])

require_admin = role_required("ADMIN")


# Retrieve a list of users with filtering and pagination (Admin only)
@router.get("", response_model=user_schemas.UserPage)
def list_users(
    name: Optional[str] = Query(None, description="Search users by name"),
    email: Optional[str] = Query(None, description="Search users by email"),
    role: Optional[str] = Query(None, description="Filter users by role name"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    filters = user_schemas.UserQuery(name=name, email=email, role=role, page=page, limit=limit)
    return users_service.list_users(db, filters)


@router.get("/stats", response_model=user_schemas.UserStats)
def user_stats(db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return users_service.get_user_stats(db)


@router.get("/me", response_model=user_schemas.UserOut)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user


# Self-service profile update
@router.patch("/me", response_model=user_schemas.UserOut)
def update_me(
    payload: user_schemas.UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = users_service.update_user(db, current_user.id, payload)
    write_log(db, user_id=current_user.id, action="PROFILE_UPDATE", resource="users",
              ip=client_ip(request), meta={"fields": sorted(payload.model_dump(exclude_unset=True))})
    return user


@router.get("/{user_id}", response_model=user_schemas.UserOut)
def get_user(user_id: str, db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return users_service.get_user(db, user_id)


@router.patch("/{user_id}", response_model=user_schemas.UserOut)
def update_user(
    user_id: str,
    payload: user_schemas.UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = users_service.update_user(db, user_id, payload)
    write_log(db, user_id=current_user.id, action="USER_UPDATE", resource="users",
              ip=client_ip(request), meta={"target_id": user_id,
                                           "fields": sorted(payload.model_dump(exclude_unset=True))})
    return user


# Update user role (Admin only)
@router.patch("/{user_id}/role", response_model=user_schemas.UserOut)
def change_role(
    user_id: str,
    payload: user_schemas.ChangeRoleRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = users_service.change_role(db, user_id, payload)
    write_log(db, user_id=current_user.id, action="USER_ROLE_CHANGE", resource="users",
              ip=client_ip(request), meta={"target_id": user_id, "role_id": payload.role_id})
    return user


# Delete a user account (Admin only)
@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    # Prevent self-deletion
    if user_id == current_user.id:
        raise BadRequestError("You cannot delete your own account")

    result = users_service.remove_user(db, user_id)
    write_log(db, user_id=current_user.id, action="USER_DELETE", resource="users",
              ip=client_ip(request), meta={"target_id": user_id})
    return result
