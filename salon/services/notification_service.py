"""
Notification delivery

Email goes out over SMTP with Jinja2-rendered bodies; SMS goes through the
Twilio Messages API. Both senders report failure by return value so the
caller decides whether a failed delivery is fatal.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from salon.config import Settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "emails"

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json"


class EmailService:
    """Service for sending emails with template support"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def _send_email(
        self,
        to_email: str | list[str],
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> bool:
        """
        Send an email using SMTP.

        Returns:
            bool: True if email sent successfully, False otherwise
        """
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = self.settings.smtp_from
            msg["To"] = to_email if isinstance(to_email, str) else ", ".join(to_email)

            if text_body:
                msg.attach(MIMEText(text_body, "plain"))
            msg.attach(MIMEText(html_body, "html"))

            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port) as server:
                server.starttls()
                if self.settings.smtp_user and self.settings.smtp_password:
                    server.login(self.settings.smtp_user, self.settings.smtp_password.get_secret_value())
                server.send_message(msg)

            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

    def send_two_factor_code(self, to_email: str, code: str, ttl_minutes: int) -> bool:
        template = self.env.get_template("two_factor_code.html")
        html_body = template.render(code=code, ttl_minutes=ttl_minutes, app_name=self.settings.app_name)
        text_body = f"Seu código de verificação é: {code}\nEste código expira em {ttl_minutes} minutos."

        return self._send_email(
            to_email=to_email,
            subject="Código de verificação - BarberSalon",
            html_body=html_body,
            text_body=text_body,
        )


class SmsService:
    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def configured(self) -> bool:
        return bool(
            self.settings.twilio_account_sid and self.settings.twilio_auth_token and self.settings.twilio_from_number
        )

    async def send_sms(self, to_phone: str, body: str) -> tuple[bool, str | None]:
        """
        Send an SMS via Twilio.

        Returns:
            Tuple of (success, error message)
        """
        if not to_phone:
            return False, "No phone number provided"
        if not to_phone.startswith("+"):
            logger.warning(f"Phone number not in E.164 format: {to_phone}")
            return False, "Phone number must be in E.164 format (e.g., +5511999999999)"
        if not self.configured:
            logger.error("Twilio credentials are not configured")
            return False, "SMS provider not configured"

        account_sid = self.settings.twilio_account_sid
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    TWILIO_MESSAGES_URL.format(account_sid=account_sid),
                    auth=(account_sid, self.settings.twilio_auth_token.get_secret_value()),
                    data={"To": to_phone, "From": self.settings.twilio_from_number, "Body": body},
                    timeout=10.0,
                )
        except httpx.HTTPError as e:
            logger.error(f"Twilio request failed: {e}")
            return False, str(e)

        if response.status_code in (200, 201):
            logger.info(f"SMS sent to {to_phone} (sid={response.json().get('sid')})")
            return True, None

        error = response.text
        logger.error(f"Twilio rejected SMS to {to_phone}: {response.status_code} {error}")
        return False, error
