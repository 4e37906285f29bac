"""Registration, login, token refresh and password management."""

from datetime import timedelta
from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import pytest

from taskboard.exceptions import (
    AuthenticationError,
    BusinessRuleError,
    InvalidArgumentError,
    NotFoundError,
)
from taskboard.models.enums import UserRole
from taskboard.repositories import UserRepository
from taskboard.services import security
from taskboard.services.auth import AuthService


@pytest.fixture
def auth(db) -> AuthService:
    return AuthService(UserRepository(db))


async def register(auth, email="new@example.com", role=UserRole.MANAGER):
    return await auth.register(
        email=email, password="Secret123", first_name="Nora", last_name="New", role=role
    )


async def test_register_returns_token_pair_and_user(auth):
    result = await register(auth, email="  New@Example.com ")

    assert result.user.email == "new@example.com"
    assert result.user.role == UserRole.MANAGER
    assert result.refresh_token
    payload = security.decode_access_token(result.token)
    assert payload["sub"] == str(result.user.id)
    assert payload["role"] == "manager"


async def test_register_duplicate_email_rejected(auth):
    await register(auth)
    with pytest.raises(BusinessRuleError, match="already registered"):
        await register(auth, email="NEW@example.com")


async def test_login(auth):
    registered = await register(auth)

    result = await auth.login("new@example.com", "Secret123")

    assert result.user.id == registered.user.id
    assert result.user.last_login_at is not None


@pytest.mark.parametrize("email,password", [("new@example.com", "wrong"), ("ghost@example.com", "Secret123")])
async def test_login_failures(auth, email, password):
    await register(auth)
    with pytest.raises(AuthenticationError):
        await auth.login(email, password)


async def test_inactive_user_cannot_login(auth, make_user):
    user = await make_user(is_active=False)
    with pytest.raises(AuthenticationError):
        await auth.login(user.email, "Secret123")


async def test_refresh_accepts_expired_access_token(auth, dev):
    expired, _ = security.create_access_token(
        dev.id, dev.role, dev.email, expires_delta=timedelta(minutes=-1)
    )
    result = await auth.refresh_token(expired, "anything-non-empty")
    assert result.user.id == dev.id
    assert security.decode_access_token(result.token)


async def test_refresh_requires_refresh_token(auth, dev):
    token, _ = security.create_access_token(dev.id, dev.role, dev.email)
    with pytest.raises(AuthenticationError):
        await auth.refresh_token(token, "  ")


async def test_change_password(auth, dev):
    with pytest.raises(InvalidArgumentError):
        await auth.change_password(dev, "wrong", "Another123")
    with pytest.raises(InvalidArgumentError):
        await auth.change_password(dev, "Secret123", "Secret123")

    await auth.change_password(dev, "Secret123", "Another123")
    assert (await auth.login(dev.email, "Another123")).user.id == dev.id


async def test_forgot_and_reset_password(auth, dev):
    assert await auth.forgot_password("nobody@example.com") is None

    link = await auth.forgot_password(dev.email)
    token = parse_qs(urlparse(link).query)["token"][0]

    with pytest.raises(InvalidArgumentError):
        await auth.reset_password(token, "Fresh123", email="someone@example.com")

    await auth.reset_password(token, "Fresh123", email=dev.email)
    assert (await auth.login(dev.email, "Fresh123")).user.id == dev.id


async def test_reset_with_garbage_token(auth):
    with pytest.raises(InvalidArgumentError):
        await auth.reset_password("not-a-token", "Fresh123")


async def test_update_profile_only_touches_profile_fields(auth, dev):
    user = await auth.update_profile(dev, {"department": "Platform", "role": "admin"})
    assert user.department == "Platform"
    assert user.role == UserRole.DEVELOPER


async def test_deactivate_and_reactivate(auth, admin, dev):
    with pytest.raises(BusinessRuleError):
        await auth.set_user_active(admin.id, False, actor=admin)

    user = await auth.set_user_active(dev.id, False, actor=admin)
    assert user.is_active is False
    with pytest.raises(AuthenticationError):
        await auth.login(dev.email, "Secret123")

    user = await auth.set_user_active(dev.id, True, actor=admin)
    assert user.is_active is True


async def test_get_current_user_missing(auth):
    with pytest.raises(NotFoundError):
        await auth.get_current_user(uuid4())


async def test_list_users_filters(auth, admin, pm, dev):
    developers = await auth.list_users(role=UserRole.DEVELOPER)
    assert [u.id for u in developers] == [dev.id]
    everyone = await auth.list_users(is_active=True)
    assert {u.id for u in everyone} == {admin.id, pm.id, dev.id}
