from typing import List, Optional

from pydantic import EmailStr, Field, field_validator

from schemas.common import ORMBase, PageMeta, UTCDateTime, blank_to_none


# Schema for user registration requests
class SignupRequest(ORMBase):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=2)


# Schema for user authentication credentials
class LoginRequest(ORMBase):
    email: EmailStr
    password: str = Field(min_length=6)


class RoleOut(ORMBase):
    id: str
    name: str
    description: Optional[str] = None


# Output schema for user profile details (never carries the password hash)
class UserOut(ORMBase):
    id: str
    email: str
    name: str
    role_id: str
    role: RoleOut
    created_at: UTCDateTime
    updated_at: UTCDateTime


class UserUpdate(ORMBase):
    """Schema for PATCH requests - all fields optional."""
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, min_length=2)
    password: Optional[str] = Field(None, min_length=6)


# Schema for administrative role updates
class ChangeRoleRequest(ORMBase):
    role_id: str = Field(min_length=1)


class UserQuery(ORMBase):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)

    @field_validator("name", "email", "role", mode="before")
    @classmethod
    def _blank_is_omitted(cls, value):
        return blank_to_none(value)


class UserPage(ORMBase):
    data: List[UserOut]
    pagination: PageMeta


class UserStats(ORMBase):
    total_users: int
    user_role_count: int
    admin_role_count: int


# Login response keeps the conventional OAuth field name
class LoginResponse(ORMBase):
    user: UserOut
    access_token: str = Field(alias="access_token")
    token_type: str = Field("bearer", alias="token_type")
