"""Resend implementation of EmailProvider.

Sends through the Resend HTTP API with a shared httpx.AsyncClient:
- EmailSettings.email_retry_delays are the waits between attempts, so
  ``[1.0, 2.0]`` means three attempts
- 4xx responses are final (429 is logged as a rate limit); 5xx and transport
  errors are retried
- password-reset mail gets a single short attempt so the reset endpoint's
  latency does not depend on provider health
- every failure, template errors included, ends as ``False``; nothing is
  raised to callers
"""

from __future__ import annotations

import asyncio
import os
from typing import Awaitable, Callable, Optional, Sequence

import httpx
from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from config import EmailSettings
from shared.logging import get_logger

log = get_logger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
# Shipped as package data next to this module
_DEFAULT_TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")


class ResendEmailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: httpx.AsyncClient,
        app_name: str = "InstaClone",
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_name = app_name
        self._sleep = sleep
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def _send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        delays: Optional[Sequence[float]] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        if not self._settings.resend_api_key:
            log.error("email_send_failed", reason="api_key_not_configured")
            return False

        payload = {
            "from": self._settings.resend_from_email,
            "to": [to_email],
            "subject": subject,
            "html": html_body,
        }
        headers = {
            "Authorization": f"Bearer {self._settings.resend_api_key}",
            "Content-Type": "application/json",
        }

        if delays is None:
            delays = self._settings.email_retry_delays
        if timeout is None:
            timeout = self._settings.email_timeout_seconds
        attempts = len(delays) + 1
        for attempt in range(1, attempts + 1):
            try:
                response = await self._http.post(
                    _RESEND_API_URL,
                    json=payload,
                    headers=headers,
                    timeout=timeout,
                )
            except httpx.HTTPError as e:
                log.warning(
                    "email_send_attempt_failed",
                    to_email=to_email,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            else:
                if response.is_success:
                    message_id = _message_id(response)
                    log.info(
                        "email_sent_success",
                        to_email=to_email,
                        subject=subject,
                        message_id=message_id,
                    )
                    return True
                if 400 <= response.status_code < 500:
                    event = (
                        "email_rate_limited"
                        if response.status_code == 429
                        else "email_rejected"
                    )
                    log.error(
                        event,
                        to_email=to_email,
                        status_code=response.status_code,
                        response=response.text[:200],
                    )
                    return False
                log.warning(
                    "email_send_attempt_failed",
                    to_email=to_email,
                    attempt=attempt,
                    max_attempts=attempts,
                    status_code=response.status_code,
                )

            if attempt < attempts:
                await self._sleep(delays[attempt - 1])

        log.error("email_send_failed", to_email=to_email, attempts=attempts)
        return False

    def _render(self, template_name: str, **context) -> Optional[str]:
        try:
            template = self._jinja.get_template(template_name)
            return template.render(app_name=self._app_name, **context)
        except TemplateError as e:
            log.error(
                "email_template_failed",
                template=template_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def send_verification_email(
        self, email: str, username: str, otp_code: str, expires_in_minutes: int
    ) -> bool:
        html_body = self._render(
            "verification.html",
            otp_code=otp_code,
            username=username,
            expires_in_minutes=expires_in_minutes,
        )
        if html_body is None:
            return False
        subject = f"Verify your email - {self._app_name}"
        return await self._send(email, subject, html_body)

    async def send_password_reset_email(
        self, email: str, username: str, reset_link: str, expires_in_minutes: int
    ) -> bool:
        html_body = self._render(
            "password_reset.html",
            reset_link=reset_link,
            username=username,
            expires_in_minutes=expires_in_minutes,
        )
        if html_body is None:
            return False
        subject = f"Reset your password - {self._app_name}"
        return await self._send(
            email,
            subject,
            html_body,
            delays=(),
            timeout=self._settings.reset_email_timeout_seconds,
        )


def _message_id(response: httpx.Response):
    try:
        data = response.json()
    except ValueError:
        return None
    return data.get("id") if isinstance(data, dict) else None
