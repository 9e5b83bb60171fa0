"""Notification service: in-app notifications plus SMTP email with a logged simulated fallback."""

import asyncio
import html
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from artisans.config import settings
from artisans.models.notification import Notification, NotificationPriority

logger = logging.getLogger(__name__)

HTML_TEMPLATE_BASE = """
<!DOCTYPE html>
<html>
<head>
    <style>
        body { font-family: Arial, sans-serif; background-color: #f8f9fa; color: #333; margin: 0; padding: 0; }
        .container { max-width: 600px; margin: 40px auto; background: #ffffff; border-radius: 12px; overflow: hidden; }
        .header { background: #4f46e5; padding: 30px 40px; text-align: center; }
        .header h1 { color: #ffffff; margin: 0; font-size: 24px; }
        .content { padding: 40px; line-height: 1.6; }
        .link-box { background: #f4f4f4; padding: 10px; word-break: break-all; }
        .button-wrap { text-align: center; margin: 30px 0; }
        .btn { display: inline-block; background: #4f46e5; color: #ffffff; text-decoration: none; padding: 12px 24px; border-radius: 4px; font-weight: bold; }
        .footer { background: #f1f3f5; padding: 20px; text-align: center; color: #6c757d; font-size: 13px; }
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>{app_name}</h1>
        </div>
        <div class="content">
            {body}
        </div>
        <div class="footer">
            <p>Best regards,<br>The {app_name} Team</p>
        </div>
    </div>
</body>
</html>
"""


def _render(body: str) -> str:
    return HTML_TEMPLATE_BASE.replace("{app_name}", settings.APP_NAME).replace("{body}", body)


def _send_email_sync(recipient_email: str, subject: str, html_body: str):
    """Synchronous function to actually send or simulate the email."""
    if not settings.SMTP_USERNAME or not settings.SMTP_PASSWORD:
        logger.info(f"Simulated email to {recipient_email} | subject: {subject}")
        logger.debug(html_body)
        return

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.APP_NAME} <{settings.SMTP_USERNAME}>"
    msg["To"] = recipient_email
    msg.attach(MIMEText(html_body, "html"))

    # Failures are logged, not raised.
    try:
        server = smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT)
        server.starttls()
        server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.send_message(msg)
        server.quit()
        logger.info(f"Email sent to {recipient_email}")
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {recipient_email}: {e}")


def invitation_link(token: str) -> str:
    return f"{settings.APP_URL.rstrip('/')}/join/{token}"


async def send_invitation_email(
    recipient_email: str,
    project_name: str,
    role: str,
    invite_token: str,
    inviter_name: Optional[str] = None,
):
    """Send the join link for a team invitation."""
    role_label = role.replace("_", " ")
    link = invitation_link(invite_token)
    subject = f"You've been invited to join the {project_name} project on {settings.APP_NAME}"

    body = f"""
    <p>Hello,</p>
    <p>You have been invited to join the <strong>"{html.escape(project_name)}"</strong> project
    as a <strong>{role_label}</strong>.</p>
    """
    if inviter_name:
        body += f"<p>Invitation sent by <strong>{html.escape(inviter_name)}</strong>.</p>"
    body += f"""
    <div class="button-wrap"><a href="{link}" class="btn">Accept Invitation</a></div>
    <p>Or copy and paste this link into your browser:</p>
    <p class="link-box">{link}</p>
    <p>This invitation will expire in {settings.INVITATION_EXPIRE_DAYS} days.</p>
    """

    # Run synchronous SMTP in a threadpool to avoid blocking the event loop
    await asyncio.to_thread(_send_email_sync, recipient_email, subject, _render(body))


async def send_award_email(recipient_email: str, provider_name: str, service_type: str, request_id: int):
    """Tell the winning provider their bid was accepted."""
    subject = f"Your bid has been accepted: {service_type} request #{request_id}"
    body = f"""
    <p>Hello {html.escape(provider_name)},</p>
    <p>Good news! Your bid on <strong>{html.escape(service_type)}</strong> service request
    <strong>#{request_id}</strong> has been accepted and the work has been awarded to you.</p>
    <div class="button-wrap">
        <a href="{settings.APP_URL.rstrip('/')}/provider/projects" class="btn">View Project</a>
    </div>
    """
    await asyncio.to_thread(_send_email_sync, recipient_email, subject, _render(body))


def create_notification(
    db: AsyncSession,
    user_id: int,
    title: str,
    message: str,
    type: str = "system",
    priority: NotificationPriority = NotificationPriority.NORMAL,
    link: Optional[str] = None,
) -> Notification:
    """Stage an in-app notification on the caller's session; committed with the caller's work."""
    notif = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        priority=priority,
        link=link,
    )
    db.add(notif)
    return notif
