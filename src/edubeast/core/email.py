"""
Email Service using Resend

Transactional emails for the approval and onboarding workflows.
When RESEND_API_KEY is not configured, emails are logged instead of sent.
"""

import asyncio
import logging
from html import escape

import resend

from edubeast.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key

_STYLES = """
    body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
    .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
    .header { color: #1e3a8a; margin-bottom: 24px; }
    .box { background-color: #f9fafb; border: 1px solid #e5e7eb; padding: 16px; border-radius: 8px; margin: 16px 0; }
    .box p { margin: 8px 0; }
    .warning { background-color: #fef3c7; border: 1px solid #f59e0b; padding: 12px 16px; border-radius: 8px; margin: 16px 0; font-size: 14px; }
    .button { display: inline-block; background-color: #3b82f6; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
    .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


def _render(title: str, body: str) -> str:
    """Wrap an HTML fragment in the shared email layout. ``body`` must already be escaped."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head><style>{_STYLES}</style></head>
    <body>
        <div class="container">
            <h1 class="header">{escape(title)}</h1>
            {body}
            <div class="footer">
                <p>EduBeast - School Management System</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if the email was sent (or logged in place of sending)
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }
        # Resend's client is synchronous
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_account_approved(
    to_email: str,
    full_name: str,
    role: str,
    temp_password: str,
    student_code: str | None = None,
) -> bool:
    """Send approval notice with login credentials to a newly approved user."""
    login_url = f"{settings.frontend_url}/login"
    student_line = (
        f"<p><strong>Student ID:</strong> {escape(student_code)}</p>" if student_code else ""
    )
    body = f"""
        <p>Dear {escape(full_name)},</p>
        <p>Your application to join EduBeast as a <strong>{escape(role)}</strong> has been approved.</p>
        <div class="box">
            <p><strong>Login URL:</strong> <a href="{login_url}">{login_url}</a></p>
            <p><strong>Email:</strong> {escape(to_email)}</p>
            <p><strong>Temporary Password:</strong> <code>{escape(temp_password)}</code></p>
            {student_line}
        </div>
        <div class="warning">
            <strong>Important:</strong> You will be required to change your password on first login.
        </div>
        <a href="{login_url}" class="button">Log In Now</a>
    """
    return await send_email(
        to_email=to_email,
        subject="Your EduBeast account has been approved",
        html_content=_render("Welcome to EduBeast!", body),
    )


async def send_application_rejected(
    to_email: str,
    full_name: str,
    rejection_reason: str,
) -> bool:
    """Send notification that an application was rejected."""
    body = f"""
        <p>Hello {escape(full_name)},</p>
        <p>Thank you for your interest in EduBeast. After reviewing your application, we're unable to approve it at this time.</p>
        <div class="box">
            <p><strong>Reason:</strong></p>
            <p>{escape(rejection_reason)}</p>
        </div>
        <p>You are welcome to submit a new application once the above has been addressed.</p>
    """
    return await send_email(
        to_email=to_email,
        subject="Update on your EduBeast application",
        html_content=_render("Update on Your Application", body),
    )


async def send_school_ready(
    to_email: str,
    school_name: str,
    slug: str,
) -> bool:
    """Send confirmation that a new school (tenant) has been provisioned."""
    dashboard_url = f"{settings.frontend_url}/dashboard"
    body = f"""
        <p>Your school <strong>{escape(school_name)}</strong> is set up and ready to use.</p>
        <div class="box">
            <p><strong>School address:</strong> {escape(slug)}</p>
            <p><strong>Plan:</strong> Trial</p>
        </div>
        <a href="{dashboard_url}" class="button">Open Dashboard</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"{school_name} is ready on EduBeast",
        html_content=_render("Your school is ready", body),
    )


async def send_pending_applications_digest(
    to_email: str,
    counts_by_role: dict[str, int],
    threshold_hours: int,
) -> bool:
    """Send reviewers a summary of applications waiting longer than the threshold."""
    review_url = f"{settings.frontend_url}/admin/user-approvals"
    rows = "".join(
        f"<p><strong>{escape(role.title())}:</strong> {count}</p>"
        for role, count in sorted(counts_by_role.items())
    )
    total = sum(counts_by_role.values())
    body = f"""
        <p>{total} application(s) have been waiting for review for more than {threshold_hours} hours.</p>
        <div class="box">{rows}</div>
        <a href="{review_url}" class="button">Review Applications</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"{total} pending application(s) awaiting review",
        html_content=_render("Pending applications", body),
    )
