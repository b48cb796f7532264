"""Unit tests for registration and login (SQLite-backed)."""

import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from errors import AuthenticationError, ConflictError, ValidationError
from helpers import TEST_JWT_SECRET, TEST_PASSWORD, RaisingEmailProvider
from repositories.user_repository import UserRepository
from services.auth_service import (
    INVALID_CREDENTIALS_MESSAGE,
    AuthService,
    _conflict_from_integrity_error,
)
from services.otp_service import OTPService
from services.token_service import TokenService


@pytest.fixture
def tokens():
    return TokenService(TEST_JWT_SECRET)


@pytest.fixture
def auth(session, tokens, email_provider, attempt_counter):
    otp = OTPService(session, email_provider, attempt_counter)
    return AuthService(session, tokens, otp)


class TestRegister:
    async def test_creates_unverified_user_and_sends_otp(
        self, auth, tokens, email_provider
    ):
        result = await auth.register("Alice@Example.com", "alice", "pw12345")
        assert result.user.email == "alice@example.com"
        assert result.user.username == "alice"
        assert result.user.email_verified is False
        assert result.user.password_hash != "pw12345"
        assert result.verification_sent is True
        assert email_provider.verification_emails[-1]["email"] == "alice@example.com"

        claims = tokens.verify(result.token)
        assert claims.user_id == result.user.id
        assert claims.is_admin is False

    async def test_email_failure_does_not_fail_registration(
        self, auth, email_provider
    ):
        email_provider.succeed = False
        result = await auth.register("bob@example.com", "bob", "pw")
        assert result.verification_sent is False
        assert result.user.id is not None

    async def test_raising_email_provider_does_not_fail_registration(
        self, session, tokens, attempt_counter
    ):
        provider = RaisingEmailProvider(RuntimeError("template missing"))
        auth = AuthService(session, tokens, OTPService(session, provider, attempt_counter))
        result = await auth.register("bob@example.com", "bob", "pw")
        assert result.verification_sent is False
        assert tokens.verify(result.token).user_id == result.user.id

    @pytest.mark.parametrize(
        "email, username, password, field",
        [
            ("not-an-email", "alice", "pw", "email"),
            ("", "alice", "pw", "email"),
            ("alice@example.com", "al ice", "pw", "username"),
            ("alice@example.com", "", "pw", "username"),
            ("alice@example.com", "alice", "   ", "password"),
            ("alice@example.com", "alice", "x" * 1001, "password"),
        ],
    )
    async def test_field_validation(self, auth, email, username, password, field):
        with pytest.raises(ValidationError) as exc:
            await auth.register(email, username, password)
        assert exc.value.field == field

    async def test_duplicate_email_case_insensitive(self, auth, user):
        with pytest.raises(ConflictError) as exc:
            await auth.register("ALICE@example.com", "someone_else", "pw")
        assert exc.value.field == "email"

    async def test_duplicate_username_case_sensitive(self, auth, user):
        with pytest.raises(ConflictError) as exc:
            await auth.register("other@example.com", "alice", "pw")
        assert exc.value.field == "username"
        result = await auth.register("other@example.com", "Alice", "pw")
        assert result.user.username == "Alice"

    async def test_integrity_race_maps_to_field(self, auth, mocker):
        mocker.patch.object(
            UserRepository,
            "create",
            side_effect=IntegrityError(
                "INSERT", {}, Exception("UNIQUE constraint failed: users.username")
            ),
        )
        with pytest.raises(ConflictError) as exc:
            await auth.register("race@example.com", "racer", "pw")
        assert exc.value.field == "username"

    def test_integrity_message_mapping(self):
        pg = IntegrityError(
            "INSERT", {}, Exception('duplicate key value violates "users_email_key"')
        )
        assert _conflict_from_integrity_error(pg).field == "email"


class TestLogin:
    async def test_success(self, auth, tokens, user):
        result = await auth.login("alice@example.com", TEST_PASSWORD)
        assert result.user.id == user.id
        assert tokens.verify(result.token).user_id == user.id

    async def test_email_case_insensitive(self, auth, user):
        result = await auth.login("  ALICE@Example.com ", TEST_PASSWORD)
        assert result.user.id == user.id

    async def test_wrong_password_generic(self, auth, user):
        with pytest.raises(AuthenticationError) as exc:
            await auth.login("alice@example.com", "wrong")
        assert exc.value.message == INVALID_CREDENTIALS_MESSAGE

    async def test_unknown_email_generic_and_dummy_hash(self, auth, mocker):
        dummy = mocker.patch(
            "services.auth_service.verify_or_dummy", return_value=False
        )
        with pytest.raises(AuthenticationError) as exc:
            await auth.login("ghost@example.com", "whatever")
        assert exc.value.message == INVALID_CREDENTIALS_MESSAGE
        dummy.assert_called_once_with("whatever", None)

    async def test_unverified_users_may_log_in(self, auth, user):
        result = await auth.login(user.email, TEST_PASSWORD)
        assert result.user.email_verified is False

    async def test_malformed_email(self, auth):
        with pytest.raises(ValidationError) as exc:
            await auth.login("nope", "pw")
        assert exc.value.field == "email"

    @pytest.mark.parametrize("email", ["alice@example.com", "ghost@example.com"])
    @pytest.mark.parametrize("password", ["", "   ", "\t\n"])
    async def test_blank_password_rejected(self, auth, user, email, password):
        with pytest.raises(ValidationError) as exc:
            await auth.login(email, password)
        assert exc.value.field == "password"
        assert exc.value.message.startswith("Password")

    async def test_admin_flag_in_token(self, auth, tokens, session, user):
        user.is_admin = True
        await session.commit()
        result = await auth.login(user.email, TEST_PASSWORD)
        assert tokens.verify(result.token).is_admin is True


class TestGetUser:
    async def test_found(self, auth, user):
        assert (await auth.get_user(user.id)).id == user.id

    async def test_missing_is_authentication_error(self, auth):
        with pytest.raises(AuthenticationError):
            await auth.get_user(uuid.uuid4())
