from __future__ import annotations

import html
import logging
import smtplib
from typing import Optional

from .mailer import Mailer

logger = logging.getLogger(__name__)


def _layout(title: str, body: str, app_name: str) -> str:
    return f"""
    <html><body style="font-family:Arial,sans-serif;background:#f6f7fb;padding:32px">
    <div style="max-width:560px;margin:0 auto;background:#fff;border-radius:12px;padding:32px">
      <h1 style="margin-top:0;font-size:24px">{html.escape(title)}</h1>
      {body}
      <p style="color:#888;font-size:12px;margin-top:32px">{html.escape(app_name)}</p>
    </div></body></html>
    """


def _button(url: str, label: str) -> str:
    return (
        f'<p><a href="{html.escape(url, quote=True)}" '
        'style="background:#4f46e5;color:#fff;padding:12px 24px;border-radius:8px;text-decoration:none">'
        f"{html.escape(label)}</a></p>"
        f'<p style="font-size:12px;color:#666">Or open this link: {html.escape(url)}</p>'
    )


class NotificationService:
    """Account emails. Every method returns False instead of raising on delivery failure."""

    def __init__(self, mailer: Mailer, *, app_url: str, app_name: str):
        self._mailer = mailer
        self._app_url = app_url.rstrip("/")
        self._app_name = app_name

    def _deliver(self, *, to: str, subject: str, body: str, text: str) -> bool:
        try:
            self._mailer.send(to=to, subject=subject, html=_layout(subject, body, self._app_name), text=text)
            return True
        except (smtplib.SMTPException, OSError):
            logger.exception("mail delivery failed to=%s subject=%r", to, subject)
            return False

    def send_email_verification(self, *, email: str, full_name: str, token: str) -> bool:
        url = f"{self._app_url}/register/verify-email?token={token}"
        body = (
            f"<p>Hello {html.escape(full_name)},</p>"
            "<p>Please confirm your email address to continue your registration.</p>"
            + _button(url, "Verify email")
            + "<p>This link expires in 24 hours.</p>"
        )
        text = f"Hello {full_name},\n\nVerify your email: {url}\n\nThis link expires in 24 hours."
        return self._deliver(to=email, subject="Verify Your Email Address", body=body, text=text)

    def send_password_reset(self, *, email: str, full_name: str, token: str) -> bool:
        url = f"{self._app_url}/reset-password?token={token}"
        body = (
            f"<p>Hello {html.escape(full_name)},</p>"
            "<p>We received a request to reset your password.</p>"
            + _button(url, "Reset password")
            + "<p>This link expires in 1 hour. If you did not ask for it, ignore this email.</p>"
        )
        text = f"Hello {full_name},\n\nReset your password: {url}\n\nThis link expires in 1 hour."
        return self._deliver(to=email, subject="Reset Your Password", body=body, text=text)

    def send_registration_decision(
        self, *, email: str, full_name: str, approved: bool, reason: Optional[str] = None
    ) -> bool:
        if approved:
            subject = "Registration Approved"
            message = "Your registration has been approved. You can now sign in."
            body = f"<p>Hello {html.escape(full_name)},</p><p>{message}</p>" + _button(
                f"{self._app_url}/login", "Sign in"
            )
        else:
            subject = "Registration Status Update"
            message = "Unfortunately your registration was not approved."
            if reason:
                message += f" Reason: {reason}"
            body = f"<p>Hello {html.escape(full_name)},</p><p>{html.escape(message)}</p>"
        return self._deliver(to=email, subject=subject, body=body, text=f"Hello {full_name},\n\n{message}")

    def send_welcome(self, *, email: str, full_name: str) -> bool:
        subject = f"Welcome to {self._app_name}"
        message = "Your account is fully set up. Check in to your classes with face recognition."
        body = f"<p>Welcome {html.escape(full_name)}!</p><p>{message}</p>"
        return self._deliver(to=email, subject=subject, body=body, text=f"Welcome {full_name}!\n\n{message}")
