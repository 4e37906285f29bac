"""Authentication, profile and user administration endpoints."""

import re
from datetime import datetime
from uuid import UUID

import structlog
from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from taskboard.api.deps import AuthServiceDep, CurrentUser, require_permission
from taskboard.models.enums import UserRole
from taskboard.models.user import User
from taskboard.services.auth import AuthResult
from taskboard.services.authorization import Permission

router = APIRouter()
logger = structlog.get_logger()

NAME_PATTERN = re.compile(r"^[^\W\d_]+(?:[\s'-][^\W\d_]+)*$")
PHONE_PATTERN = re.compile(r"^[+]?[0-9\s\-()]+$")


def check_password_strength(value: str) -> str:
    if not re.search(r"[a-z]", value) or not re.search(r"[A-Z]", value) or not re.search(r"\d", value):
        raise ValueError(
            "Password must contain at least one lowercase letter, one uppercase letter and one digit"
        )
    return value


class UserResponse(BaseModel):
    """User information response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    email: str
    role: UserRole
    is_active: bool
    phone: str | None
    department: str | None
    profile_image_url: str | None
    created_at: datetime
    updated_at: datetime


class UserSummary(BaseModel):
    """Compact user reference embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    first_name: str
    last_name: str
    email: str
    role: UserRole


class AuthResponse(BaseModel):
    """Token pair plus the authenticated user."""

    token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthResponse":
        return cls(
            token=result.token,
            refresh_token=result.refresh_token,
            expires_at=result.expires_at,
            user=UserResponse.model_validate(result.user),
        )


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=100)


class RegisterRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=100)
    confirm_password: str
    role: UserRole = UserRole.DEVELOPER
    phone: str | None = None
    department: str | None = Field(default=None, max_length=100)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if not NAME_PATTERN.match(value):
            raise ValueError("Name may contain only letters and spaces")
        return value

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info) -> str:
        if value != info.data.get("password"):
            raise ValueError("Passwords do not match")
        return value

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        if value and not PHONE_PATTERN.match(value):
            raise ValueError("Invalid phone number")
        return value or None


class RefreshTokenRequest(BaseModel):
    token: str
    refresh_token: str


class UpdateProfileRequest(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    phone: str | None = None
    department: str | None = Field(default=None, max_length=100)
    profile_image_url: str | None = Field(default=None, max_length=500)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        if value and not PHONE_PATTERN.match(value):
            raise ValueError("Invalid phone number")
        return value or None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6, max_length=100)
    confirm_new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)

    @field_validator("confirm_new_password")
    @classmethod
    def passwords_match(cls, value: str, info) -> str:
        if value != info.data.get("new_password"):
            raise ValueError("Passwords do not match")
        return value


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    email: EmailStr | None = None
    new_password: str = Field(min_length=6, max_length=100)
    confirm_new_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)

    @field_validator("confirm_new_password")
    @classmethod
    def passwords_match(cls, value: str, info) -> str:
        if value != info.data.get("new_password"):
            raise ValueError("Passwords do not match")
        return value


class MessageResponse(BaseModel):
    message: str


class TokenValidationResponse(BaseModel):
    valid: bool
    user: UserResponse


@router.post("/login", response_model=AuthResponse)
async def login(request: LoginRequest, auth: AuthServiceDep) -> AuthResponse:
    """Exchange email and password for a token pair."""
    return AuthResponse.from_result(await auth.login(request.email, request.password))


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, auth: AuthServiceDep) -> AuthResponse:
    result = await auth.register(
        email=request.email,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
        role=request.role,
        phone=request.phone,
        department=request.department,
    )
    return AuthResponse.from_result(result)


@router.post("/refresh-token", response_model=AuthResponse)
async def refresh_token(request: RefreshTokenRequest, auth: AuthServiceDep) -> AuthResponse:
    return AuthResponse.from_result(await auth.refresh_token(request.token, request.refresh_token))


@router.post("/logout", response_model=MessageResponse)
async def logout(current_user: CurrentUser, auth: AuthServiceDep) -> MessageResponse:
    await auth.logout(current_user.id)
    return MessageResponse(message="Logged out successfully")


@router.get("/profile", response_model=UserResponse)
async def get_profile(current_user: CurrentUser) -> User:
    return current_user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    request: UpdateProfileRequest,
    current_user: CurrentUser,
    auth: AuthServiceDep,
) -> User:
    return await auth.update_profile(current_user, request.model_dump(exclude_unset=True))


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    current_user: CurrentUser,
    auth: AuthServiceDep,
) -> MessageResponse:
    await auth.change_password(current_user, request.current_password, request.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(request: ForgotPasswordRequest, auth: AuthServiceDep) -> MessageResponse:
    """Always answers the same way so account existence is not revealed."""
    await auth.forgot_password(request.email)
    return MessageResponse(message="If the email exists, a reset link has been sent")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(request: ResetPasswordRequest, auth: AuthServiceDep) -> MessageResponse:
    await auth.reset_password(request.token, request.new_password, email=request.email)
    return MessageResponse(message="Password has been reset successfully")


@router.get("/validate-token", response_model=TokenValidationResponse)
async def validate_token(current_user: CurrentUser) -> TokenValidationResponse:
    return TokenValidationResponse(valid=True, user=UserResponse.model_validate(current_user))


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    current_user: CurrentUser,
    auth: AuthServiceDep,
    role: UserRole | None = Query(None),
    is_active: bool | None = Query(None),
    department: str | None = Query(None),
    search: str | None = Query(None, max_length=100),
) -> list[User]:
    require_permission(current_user, Permission.LIST_USERS)
    return list(
        await auth.list_users(role=role, is_active=is_active, department=department, term=search)
    )


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(user_id: UUID, current_user: CurrentUser, auth: AuthServiceDep) -> User:
    require_permission(current_user, Permission.VIEW_USER)
    return await auth.get_current_user(user_id)


@router.patch("/users/{user_id}/activate", response_model=UserResponse)
async def activate_user(user_id: UUID, current_user: CurrentUser, auth: AuthServiceDep) -> User:
    require_permission(current_user, Permission.MANAGE_USERS)
    return await auth.set_user_active(user_id, True, current_user)


@router.patch("/users/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(user_id: UUID, current_user: CurrentUser, auth: AuthServiceDep) -> User:
    require_permission(current_user, Permission.MANAGE_USERS)
    return await auth.set_user_active(user_id, False, current_user)
