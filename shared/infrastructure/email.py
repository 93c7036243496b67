"""
Email notifications over SMTP.

Messages are dispatched post-commit on a small thread pool; callers never
wait for delivery and failures are only logged.
"""

from __future__ import annotations

import smtplib
from concurrent.futures import Future, ThreadPoolExecutor
from email.message import EmailMessage
from html import escape

from shared.config.logging import email_logger as logger
from shared.config.logging import mask_email
from shared.config.settings import Settings


class EmailService:
    """SMTP sender with fire-and-forget dispatch."""

    def __init__(
        self,
        host: str = "",
        port: int = 587,
        username: str = "",
        password: str = "",
        from_email: str = "",
        max_workers: int = 4,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def from_settings(cls, cfg: Settings) -> "EmailService":
        return cls(
            host=cfg.smtp_host,
            port=cfg.smtp_port,
            username=cfg.smtp_username,
            password=cfg.smtp_password,
            from_email=cfg.smtp_from,
            max_workers=cfg.email_workers,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.port and self.from_email)

    def send(self, to: str, subject: str, html_body: str) -> None:
        """
        Send one HTML email synchronously.

        Raises:
            RuntimeError: SMTP is not configured.
            smtplib.SMTPException / OSError: Delivery failed.
        """
        if not self.configured:
            raise RuntimeError("SMTP not configured")

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to
        msg.set_content("This message requires an HTML-capable email client.")
        msg.add_alternative(html_body, subtype="html")

        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)

        logger.info("Email sent", to=mask_email(to), subject=subject)

    def dispatch(self, to: str, subject: str, html_body: str) -> Future | None:
        """Queue an email without waiting for it."""
        if not self.configured:
            logger.debug("Email disabled, skipping", to=mask_email(to), subject=subject)
            return None
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers, thread_name_prefix="email"
            )
        future = self._executor.submit(self.send, to, subject, html_body)
        future.add_done_callback(lambda f: self._log_failure(f, to, subject))
        return future

    @staticmethod
    def _log_failure(future: Future, to: str, subject: str) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Failed to send email", to=mask_email(to), subject=subject, error=str(exc))

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    # =========================================================================
    # Templates
    # =========================================================================

    def send_welcome_email(self, email: str, name: str) -> None:
        first = escape(_first_name(name))
        body = (
            f"<h2>Welcome to Grabbi, {first}!</h2>"
            "<p>Thank you for creating your account. You can now:</p>"
            "<ul>"
            "<li>Browse and order from local stores</li>"
            "<li>Earn loyalty points on every order</li>"
            "<li>Track your deliveries in real-time</li>"
            "</ul>"
            "<p>Happy shopping!</p><p>The Grabbi Team</p>"
        )
        self.dispatch(email, "Welcome to Grabbi!", body)

    def send_order_confirmation(self, email: str, name: str, order_number: str, total: float) -> None:
        body = (
            "<h2>Order Confirmed!</h2>"
            f"<p>Hi {escape(_first_name(name))},</p>"
            f"<p>Your order <strong>{escape(order_number)}</strong> has been placed successfully.</p>"
            f"<p>Order total: <strong>£{total:.2f}</strong></p>"
            "<p>We'll notify you when your order status changes.</p>"
            "<p>The Grabbi Team</p>"
        )
        self.dispatch(email, f"Order Confirmed - {order_number}", body)

    def send_order_status_update(self, email: str, name: str, order_number: str, status: str) -> None:
        body = (
            "<h2>Order Status Update</h2>"
            f"<p>Hi {escape(_first_name(name))},</p>"
            f"<p>Your order <strong>{escape(order_number)}</strong> status has been updated to: "
            f"<strong>{escape(status.replace('_', ' '))}</strong></p>"
            "<p>The Grabbi Team</p>"
        )
        self.dispatch(email, f"Order {order_number} - Status Update", body)

    def send_password_reset_email(self, email: str, name: str, token: str, frontend_url: str) -> None:
        link = f"{frontend_url.rstrip('/')}/reset-password?token={token}"
        body = (
            "<h2>Password Reset Request</h2>"
            f"<p>Hi {escape(_first_name(name))},</p>"
            "<p>We received a request to reset your password. "
            "Click the link below to set a new password:</p>"
            f'<p><a href="{escape(link)}">Reset Password</a></p>'
            "<p>This link will expire in 1 hour.</p>"
            "<p>If you didn't request this, you can safely ignore this email.</p>"
            "<p>The Grabbi Team</p>"
        )
        self.dispatch(email, "Reset Your Password - Grabbi", body)

    def send_staff_invite(
        self,
        email: str,
        name: str,
        franchise_name: str,
        role: str,
        portal_url: str,
        password: str | None = None,
    ) -> None:
        """Invitation for a new staff account, or a notice for an existing user."""
        parts = [
            f"<h2>You've been added to {escape(franchise_name)}</h2>",
            f"<p>Hi {escape(_first_name(name))},</p>",
            f"<p>You have been added as <strong>{escape(role)}</strong> "
            "on the Grabbi franchise portal.</p>",
        ]
        if password:
            parts.append(f"<p>Login email: {escape(email)}<br>Temporary password: "
                         f"<strong>{escape(password)}</strong></p>")
            parts.append("<p>Please change it after your first login.</p>")
        parts.append(f'<p><a href="{escape(portal_url)}">Open the franchise portal</a></p>')
        parts.append("<p>The Grabbi Team</p>")
        self.dispatch(email, f"Welcome to the {franchise_name} team", "".join(parts))


def _first_name(name: str) -> str:
    return (name or "").split(" ")[0] or "there"
