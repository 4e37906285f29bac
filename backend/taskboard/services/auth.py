"""Authentication and account management."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence
from uuid import UUID

import structlog

from taskboard.config import get_settings
from taskboard.db.base import utcnow
from taskboard.exceptions import (
    AuthenticationError,
    BusinessRuleError,
    InvalidArgumentError,
    NotFoundError,
)
from taskboard.models.enums import UserRole
from taskboard.models.user import User
from taskboard.repositories.user import UserRepository
from taskboard.services import security

logger = structlog.get_logger()

PROFILE_FIELDS = ("first_name", "last_name", "phone", "department", "profile_image_url")


@dataclass
class AuthResult:
    """Token pair issued on login, registration or refresh."""

    token: str
    refresh_token: str
    expires_at: datetime
    user: User


class AuthService:
    """Registration, login, token refresh and password management."""

    def __init__(self, users: UserRepository):
        self.users = users

    def _issue(self, user: User) -> AuthResult:
        token, expires_at = security.create_access_token(user.id, user.role, user.email)
        return AuthResult(
            token=token,
            refresh_token=security.create_refresh_token(),
            expires_at=expires_at,
            user=user,
        )

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: UserRole = UserRole.DEVELOPER,
        phone: str | None = None,
        department: str | None = None,
    ) -> AuthResult:
        email = email.strip().lower()
        if await self.users.email_exists(email):
            raise BusinessRuleError("Email is already registered")

        user = await self.users.create(
            User(
                email=email,
                password_hash=security.hash_password(password),
                first_name=first_name.strip(),
                last_name=last_name.strip(),
                role=UserRole(role).value,
                phone=phone,
                department=department,
                is_active=True,
            )
        )
        logger.info("user_registered", user_id=str(user.id), role=user.role)
        return self._issue(user)

    async def validate_user_credentials(self, email: str, password: str) -> User | None:
        user = await self.users.get_by_email(email)
        if user is None or not user.is_active:
            return None
        if not security.verify_password(password, user.password_hash):
            return None
        return user

    async def login(self, email: str, password: str) -> AuthResult:
        user = await self.validate_user_credentials(email, password)
        if user is None:
            logger.info("login_failed", email=email)
            raise AuthenticationError("Invalid email or password")

        user.last_login_at = utcnow()
        await self.users.update(user)
        logger.info("user_logged_in", user_id=str(user.id))
        return self._issue(user)

    async def refresh_token(self, token: str, refresh_token: str) -> AuthResult:
        """Issue a fresh pair from an (possibly expired) access token.

        The refresh token is opaque and only checked for presence; the
        access token's signature is verified but its expiry is not.
        """
        if not refresh_token or not refresh_token.strip():
            raise AuthenticationError("Invalid refresh token")

        payload = security.decode_access_token(token, verify_exp=False)
        user = await self.users.get_by_id(security.user_id_from_payload(payload))
        if user is None or not user.is_active:
            raise AuthenticationError("Invalid refresh token")
        return self._issue(user)

    async def logout(self, user_id: UUID) -> None:
        # Tokens are stateless; nothing to revoke server-side
        logger.info("user_logged_out", user_id=str(user_id))

    async def get_current_user(self, user_id: UUID) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def update_profile(self, user: User, changes: dict[str, Any]) -> User:
        for name in PROFILE_FIELDS:
            if name in changes:
                setattr(user, name, changes[name])
        return await self.users.update(user)

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not security.verify_password(current_password, user.password_hash):
            raise InvalidArgumentError("Current password is incorrect")
        if current_password == new_password:
            raise InvalidArgumentError("New password must differ from the current password")
        user.password_hash = security.hash_password(new_password)
        await self.users.update(user)
        logger.info("password_changed", user_id=str(user.id))

    async def forgot_password(self, email: str) -> str | None:
        """Generate a reset link if the account exists.

        Callers must answer identically either way so accounts cannot be
        enumerated. Returns the link (or None) for logging and tests.
        """
        user = await self.users.get_by_email(email)
        if user is None or not user.is_active:
            logger.info("password_reset_requested_unknown", email=email)
            return None

        token = security.create_password_reset_token(user.id)
        reset_link = f"{get_settings().frontend_base_url}/reset-password?token={token}"
        # No mail transport; the link goes to the log
        logger.info("password_reset_link", user_id=str(user.id), email=user.email, link=reset_link)
        return reset_link

    async def reset_password(self, token: str, new_password: str, email: str | None = None) -> None:
        user_id = security.decode_password_reset_token(token)
        user = await self.users.get_by_id(user_id)
        if user is None or not user.is_active:
            raise NotFoundError("User", user_id)
        if email is not None and user.email.lower() != email.strip().lower():
            raise InvalidArgumentError("Invalid reset token")
        user.password_hash = security.hash_password(new_password)
        await self.users.update(user)
        logger.info("password_reset", user_id=str(user.id))

    async def list_users(
        self,
        role: UserRole | None = None,
        is_active: bool | None = None,
        department: str | None = None,
        term: str | None = None,
    ) -> Sequence[User]:
        return await self.users.search(
            role=role.value if role else None,
            is_active=is_active,
            department=department,
            term=term,
        )

    async def set_user_active(self, user_id: UUID, active: bool, actor: User) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        if not active and user.id == actor.id:
            raise BusinessRuleError("You cannot deactivate your own account")
        user.is_active = active
        user = await self.users.update(user)
        logger.info(
            "user_activated" if active else "user_deactivated",
            user_id=str(user.id),
            actor_id=str(actor.id),
        )
        return user
