"""
Email Service for the Task Manager backend
SMTP delivery for registration and password reset emails
"""
import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime
from typing import Optional, Dict, Any

from taskmanager_backend.config import environment

logger = logging.getLogger(__name__)


class EmailService:
    """SMTP email service; disabled when no credentials are configured"""

    def __init__(self, host=None, port=None, user=None, password=None, sender=None):
        self.host = host or environment.SMTP_HOST
        self.port = port or environment.SMTP_PORT
        self.user = user if user is not None else environment.SMTP_USER
        self.password = password if password is not None else environment.SMTP_PASSWORD
        self.sender_email = sender or environment.SMTP_SENDER
        self.sender_name = "Task Manager"

        if not self.user or not self.password:
            logger.warning("SMTP credentials not configured. Email service will be disabled.")
            self.enabled = False
        else:
            self.enabled = True
            logger.info("Email service initialized successfully")

    def send_password_reset(self, to_email: str, reset_link: str, user_name: Optional[str] = None,
                            expires_in_minutes: int = 10) -> Dict[str, Any]:
        """
        Send password reset link via email

        Args:
            to_email: Recipient email address
            reset_link: Full URL of the reset page including the code
            user_name: Optional user name for personalization
            expires_in_minutes: Validity shown in the email body

        Returns:
            Dict with success status and details
        """
        if not self.enabled:
            return {
                'success': False,
                'error': 'Email service not configured',
                'method': 'disabled'
            }

        subject = "Reset your Task Manager password"
        html_body = self._create_password_reset_template(reset_link, user_name, expires_in_minutes)
        result = self._send_email(to_email, subject, html_body)

        if result['success']:
            logger.info(f"Password reset email sent successfully to {to_email}")
            return {
                'success': True,
                'method': 'smtp',
                'to': to_email,
                'sent_at': datetime.utcnow().isoformat(),
                'message': 'Password reset email sent successfully'
            }
        return result

    def send_registration_email(self, to_email: str, user_name: Optional[str] = None) -> Dict[str, Any]:
        """Send the welcome email after signup"""
        if not self.enabled:
            return {
                'success': False,
                'error': 'Email service not configured',
                'method': 'disabled'
            }

        result = self._send_email(to_email, "Welcome to Task Manager", self._create_registration_template(user_name))
        if result['success']:
            logger.info(f"Registration email sent successfully to {to_email}")
        return result

    def _send_email(self, to_email: str, subject: str, html_body: str) -> Dict[str, Any]:
        """
        Internal method to send email via SMTP over SSL

        Returns:
            Dict with success status
        """
        try:
            msg = MIMEMultipart('alternative')
            msg['From'] = f"{self.sender_name} <{self.sender_email}>"
            msg['To'] = to_email
            msg['Subject'] = subject
            msg.attach(MIMEText(html_body, 'html', 'utf-8'))

            with smtplib.SMTP_SSL(self.host, self.port) as server:
                server.login(self.user, self.password)
                server.send_message(msg)

            return {
                'success': True,
                'message': 'Email sent successfully'
            }

        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP authentication failed - check credentials")
            return {
                'success': False,
                'error': 'Email authentication failed',
                'method': 'smtp_auth_error'
            }
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error: {str(e)}")
            return {
                'success': False,
                'error': f'SMTP error: {str(e)}',
                'method': 'smtp_error'
            }

    def _create_password_reset_template(self, reset_link: str, user_name: Optional[str], expires_in_minutes: int) -> str:
        greeting = f"Hello {user_name}," if user_name else "Hello,"
        return f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #2E2E2E; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #1E3A8A;">Task Manager password reset</h2>
            <p>{greeting}</p>
            <p>We received a request to reset your password. Use the link below to choose a new one:</p>
            <p style="text-align: center; margin: 30px 0;">
                <a href="{reset_link}" style="background: #1E3A8A; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px;">Reset Password</a>
            </p>
            <p style="font-size: 14px; color: #6B7280;">This link expires in {expires_in_minutes} minutes. If you didn't request a reset, ignore this email.</p>
            <p style="font-size: 12px; color: #6B7280; word-break: break-all;">{reset_link}</p>
        </body>
        </html>
        """

    def _create_registration_template(self, user_name: Optional[str]) -> str:
        greeting = f"Hello {user_name}," if user_name else "Hello,"
        return f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #2E2E2E; max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #1E3A8A;">Welcome to Task Manager</h2>
            <p>{greeting}</p>
            <p>Your account has been created. You can now sign in and start organizing your tasks.</p>
        </body>
        </html>
        """

    def get_service_status(self) -> Dict[str, Any]:
        """Get email service status"""
        return {
            'enabled': self.enabled,
            'sender_email': self.sender_email if self.enabled else None,
            'mode': 'smtp' if self.enabled else 'disabled'
        }


# Singleton instance
_email_service = None


def get_email_service() -> EmailService:
    """Get or create email service singleton"""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
