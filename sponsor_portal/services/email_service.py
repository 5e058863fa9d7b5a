"""
Email delivery for portal notifications.

Mailgun HTTP API is the primary provider with SMTP as a fallback.  Auth
emails (invites, magic links) are sent by Supabase itself; this module only
covers the portal's own notices, such as telling super admins that a
promotion is waiting for approval.

Usage:
    from sponsor_portal.services.email_service import email_service

    result = email_service.send_email(
        to=["admin@example.com"],
        subject="Promotion pending approval",
        html=html,
        text=text,
    )
"""

import logging
import os
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional, Union
from uuid import uuid4

import requests

from sponsor_portal.utils.sanitize import sanitize_plain_text, truncate_plain_text

logger = logging.getLogger(__name__)

DEFAULT_FROM_NAME = 'Sponsor Portal'


@dataclass
class EmailResult:
    """Outcome of one send attempt."""
    success: bool
    provider: str
    message_id: Optional[str] = None
    error: Optional[str] = None
    http_status: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'provider': self.provider,
            'message_id': self.message_id,
            'error': self.error,
            'http_status': self.http_status,
        }


def _from_address(from_name: Optional[str], from_email: Optional[str], domain: str) -> tuple[str, str]:
    name = from_name or os.getenv('EMAIL_FROM_NAME', DEFAULT_FROM_NAME)
    address = from_email or os.getenv('EMAIL_FROM_ADDRESS', f'no-reply@{domain}')
    return f"{name} <{address}>", address


class EmailProvider(ABC):

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    def send(
        self,
        recipients: List[str],
        subject: str,
        html: str,
        text: str,
        from_name: Optional[str] = None,
        from_email: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> EmailResult:
        pass


class MailgunProvider(EmailProvider):
    """Send through the Mailgun messages endpoint."""

    @property
    def name(self) -> str:
        return 'mailgun'

    def is_configured(self) -> bool:
        return bool(os.getenv('MAILGUN_API_KEY') and os.getenv('MAILGUN_DOMAIN'))

    def send(self, recipients, subject, html, text, from_name=None, from_email=None, tags=None) -> EmailResult:
        api_key = os.getenv('MAILGUN_API_KEY')
        domain = os.getenv('MAILGUN_DOMAIN')
        api_url = os.getenv('MAILGUN_API_URL', 'https://api.mailgun.net/v3').rstrip('/')
        if not api_key or not domain:
            return EmailResult(success=False, provider=self.name, error='Mailgun not configured')

        from_addr, _ = _from_address(from_name, from_email, domain)
        data = {
            'from': from_addr,
            'to': recipients,
            'subject': subject,
            'text': text,
            'html': html,
        }
        if tags:
            data['o:tag'] = tags

        try:
            response = requests.post(
                f"{api_url}/{domain}/messages",
                auth=('api', api_key),
                data=data,
                timeout=30,
            )
        except requests.exceptions.Timeout:
            logger.error('Mailgun API timeout')
            return EmailResult(success=False, provider=self.name, error='Request timeout')
        except requests.exceptions.RequestException as e:
            logger.exception('Mailgun API request failed')
            return EmailResult(success=False, provider=self.name, error=str(e))

        if response.ok:
            return EmailResult(
                success=True,
                provider=self.name,
                message_id=response.json().get('id'),
                http_status=response.status_code,
            )
        error_msg = response.text[:500] if response.text else f'HTTP {response.status_code}'
        logger.warning('Mailgun API error: status=%s body=%s', response.status_code, error_msg)
        return EmailResult(success=False, provider=self.name, error=error_msg, http_status=response.status_code)


class SMTPProvider(EmailProvider):
    """Fallback provider over SMTP (STARTTLS by default)."""

    @property
    def name(self) -> str:
        return 'smtp'

    def is_configured(self) -> bool:
        return bool(os.getenv('SMTP_HOST') and os.getenv('SMTP_USERNAME') and os.getenv('SMTP_PASSWORD'))

    def send(self, recipients, subject, html, text, from_name=None, from_email=None, tags=None) -> EmailResult:
        host = os.getenv('SMTP_HOST')
        port = int(os.getenv('SMTP_PORT', '587'))
        username = os.getenv('SMTP_USERNAME')
        password = os.getenv('SMTP_PASSWORD')
        use_tls = os.getenv('SMTP_USE_TLS', 'true').lower() in ('true', '1', 'yes')
        if not host or not username or not password:
            return EmailResult(success=False, provider=self.name, error='SMTP not configured')

        domain = username.split('@')[-1] if '@' in username else host
        from_addr, envelope_from = _from_address(from_name, from_email, domain)

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = from_addr
        msg['To'] = ', '.join(recipients)
        msg.attach(MIMEText(text, 'plain', 'utf-8'))
        msg.attach(MIMEText(html, 'html', 'utf-8'))

        try:
            if use_tls:
                server = smtplib.SMTP(host, port, timeout=30)
                server.starttls()
            else:
                server = smtplib.SMTP_SSL(host, port, timeout=30)
            server.login(username, password)
            server.sendmail(envelope_from, recipients, msg.as_string())
            server.quit()
        except smtplib.SMTPException as e:
            logger.exception('SMTP error')
            return EmailResult(success=False, provider=self.name, error=str(e))
        except OSError as e:
            logger.exception('SMTP connection error')
            return EmailResult(success=False, provider=self.name, error=str(e))

        message_id = f"<smtp-{uuid4().hex[:16]}@{envelope_from.split('@')[-1]}>"
        return EmailResult(success=True, provider=self.name, message_id=message_id)


class EmailService:
    """Mailgun first (retried on 5xx), then SMTP."""

    def __init__(self):
        self.mailgun = MailgunProvider()
        self.smtp = SMTPProvider()

    def is_configured(self) -> bool:
        return self.mailgun.is_configured() or self.smtp.is_configured()

    def send_email(
        self,
        to: Union[str, List[str]],
        subject: str,
        html: str,
        text: str,
        from_name: Optional[str] = None,
        from_email: Optional[str] = None,
        tags: Optional[List[str]] = None,
        max_retries: int = 1,
    ) -> EmailResult:
        recipients = [to] if isinstance(to, str) else list(to)
        masked = [self._mask_email(r) for r in recipients]
        logger.info('Sending email: to=%s subject=%s', masked, subject[:50])
        result = None

        if self.mailgun.is_configured():
            for attempt in range(max_retries + 1):
                result = self.mailgun.send(recipients, subject, html, text, from_name, from_email, tags)
                if result.success:
                    logger.info('Email sent via Mailgun: to=%s message_id=%s', masked, result.message_id)
                    return result
                # Client errors will not improve on retry
                if result.http_status and 400 <= result.http_status < 500:
                    break
                if attempt < max_retries:
                    logger.warning('Mailgun attempt %d failed, retrying: %s', attempt + 1, result.error)

        if self.smtp.is_configured():
            result = self.smtp.send(recipients, subject, html, text, from_name, from_email)
            if result.success:
                logger.info('Email sent via SMTP fallback: to=%s', masked)
            return result

        if result is not None:
            logger.error('Mailgun failed with no SMTP fallback: to=%s error=%s', masked, result.error)
            return result
        return EmailResult(success=False, provider='none', error='All email providers failed or not configured')

    @staticmethod
    def _mask_email(email: str) -> str:
        """u***@example.com"""
        if '@' not in email:
            return '***'
        local, domain = email.split('@', 1)
        if len(local) <= 1:
            return f'*@{domain}'
        return f'{local[0]}***@{domain}'

    def send_promotion_pending(
        self,
        recipients: List[str],
        promotion_title: str,
        sponsor_name: str,
        approval_url: str,
        description: Optional[str] = None,
    ) -> EmailResult:
        """Tell super admins that a sponsor submitted a promotion for review."""
        title = sanitize_plain_text(promotion_title)
        sponsor = sanitize_plain_text(sponsor_name)
        summary = truncate_plain_text(description, 300)
        subject = f"Promotion pending approval: {title}"

        html = f"""
<!DOCTYPE html>
<html>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2>{sponsor} submitted a promotion</h2>
        <p><strong>{title}</strong></p>
        <p>{summary}</p>
        <p><a href="{approval_url}">Review and approve</a></p>
    </div>
</body>
</html>
"""
        text = f"""{sponsor} submitted a promotion for approval.

{title}

{summary}

Review it here:
{approval_url}
"""
        return self.send_email(
            to=recipients,
            subject=subject,
            html=html,
            text=text,
            tags=['promotion-pending'],
        )


email_service = EmailService()
