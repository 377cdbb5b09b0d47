"""Brevo transactional-email implementation of DeliveryChannel.

- async httpx via HttpClient
- API key and sender injected through EmailSettings, never literals
- HTML bodies rendered from Jinja2 templates under templates/emails/
"""

import os
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from config import EmailSettings
from infrastructure.email.protocol import CodeDelivery
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"
_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)

# purpose → (subject, template, text heading)
_MESSAGES = {
    "email_verify": (
        "Verify your email",
        "verification.html",
        "Your verification code is",
    ),
    "password_reset": (
        "Reset your password",
        "password_reset.html",
        "Your password reset code is",
    ),
}


class BrevoEmailProvider:
    def __init__(
        self,
        settings: EmailSettings,
        http_client: HttpClient,
        app_name: str = "otp-service",
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._settings = settings
        self._http = http_client
        self._app_name = app_name
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def _post(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        if not self._settings.brevo_api_key or not self._settings.brevo_sender_email:
            log.error("brevo_send_failed", reason="sender_not_configured")
            return False

        payload: dict = {
            "sender": {
                "email": self._settings.brevo_sender_email,
                "name": self._settings.brevo_sender_name,
            },
            "to": [{"email": to_email}],
            "subject": subject,
            "htmlContent": html_body,
        }
        if text_body:
            payload["textContent"] = text_body

        headers = {
            "api-key": self._settings.brevo_api_key,
            "accept": "application/json",
        }

        try:
            response = await self._http.post_json(
                _BREVO_API_URL, payload, headers=headers
            )
        except Exception as e:
            log.error(
                "email_send_error",
                to_email=to_email,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if response.status_code in (200, 201, 202):
            log.info("email_sent_success", to_email=to_email, subject=subject)
            return True
        log.error(
            "email_sent_failed",
            to_email=to_email,
            subject=subject,
            status_code=response.status_code,
            response=response.text[:200],
        )
        return False

    async def send(self, destination: str, payload: CodeDelivery) -> bool:
        try:
            subject, template_name, heading = _MESSAGES[payload.purpose]
        except KeyError:
            log.error("email_send_failed", reason="unknown_purpose", purpose=payload.purpose)
            return False

        template = self._jinja.get_template(template_name)
        html_body = template.render(
            otp_code=payload.code,
            ttl_minutes=payload.ttl_minutes,
            app_name=self._app_name,
        )
        text_body = (
            f"{subject} - {self._app_name}\n\n"
            f"{heading}: {payload.code}\n\n"
            f"This code expires in {payload.ttl_minutes} minutes. "
            f"If you did not request it, you can ignore this email."
        )
        return await self._post(destination, f"{subject} - {self._app_name}", html_body, text_body)
