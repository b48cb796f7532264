"""Test doubles and constants shared by unit and integration tests."""

TEST_JWT_SECRET = "s3cr3t-" + "a" * 64
TEST_PASSWORD = "correct horse battery staple"


class FakeEmailProvider:
    """EmailProvider that records calls instead of sending."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.verification_emails: list[dict] = []
        self.reset_emails: list[dict] = []

    async def send_verification_email(
        self, email, username, otp_code, expires_in_minutes
    ) -> bool:
        self.verification_emails.append(
            {
                "email": email,
                "username": username,
                "otp_code": otp_code,
                "expires_in_minutes": expires_in_minutes,
            }
        )
        return self.succeed

    async def send_password_reset_email(
        self, email, username, reset_link, expires_in_minutes
    ) -> bool:
        self.reset_emails.append(
            {
                "email": email,
                "username": username,
                "reset_link": reset_link,
                "expires_in_minutes": expires_in_minutes,
            }
        )
        return self.succeed

    @property
    def last_otp(self) -> str:
        return self.verification_emails[-1]["otp_code"]

    @property
    def last_reset_token(self) -> str:
        return self.reset_emails[-1]["reset_link"].split("token=", 1)[1]


class RaisingEmailProvider(FakeEmailProvider):
    """EmailProvider whose sends blow up, as a broken template or client would."""

    def __init__(self, exc: Exception) -> None:
        super().__init__()
        self.exc = exc

    async def send_verification_email(self, *args, **kwargs) -> bool:
        await super().send_verification_email(*args, **kwargs)
        raise self.exc

    async def send_password_reset_email(self, *args, **kwargs) -> bool:
        await super().send_password_reset_email(*args, **kwargs)
        raise self.exc


def sqlite_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
