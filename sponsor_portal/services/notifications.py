"""Fire-and-forget dispatch for Slack and email side effects.

A notification never blocks or fails the request that triggered it.  With
``NOTIFICATIONS_ASYNC`` enabled the work runs on a daemon thread inside a
fresh app context; otherwise it runs inline (tests rely on this).
"""
import logging
import threading

from flask import current_app

from sponsor_portal.errors import NotFound
from sponsor_portal.models.portal import Promotion, db
from sponsor_portal.services import slack_service
from sponsor_portal.services.email_service import email_service
from sponsor_portal.services.promotion_service import super_admin_emails

logger = logging.getLogger(__name__)


def _run_safely(label, func, args, kwargs):
    try:
        func(*args, **kwargs)
    except Exception:
        logger.exception('Notification %s failed', label)


def dispatch(label: str, func, *args, **kwargs) -> None:
    app = current_app._get_current_object()
    if not app.config.get('NOTIFICATIONS_ASYNC', True):
        _run_safely(label, func, args, kwargs)
        return

    def _in_background():
        with app.app_context():
            _run_safely(label, func, args, kwargs)

    thread = threading.Thread(target=_in_background, name=f'notify-{label}', daemon=True)
    thread.start()


# Jobs below run inside an app context, either inline or on the dispatch thread.

def slack_notice(notification_type: str, payload: dict) -> None:
    result = slack_service.send_notification(
        db.session, notification_type, payload, current_app.config['PUBLIC_APP_URL'],
    )
    if not result.get('success'):
        logger.info('Slack %s skipped: %s', notification_type, result.get('error'))


def slack_channel_post(promotion_id: str, channel: str | None) -> None:
    slack_service.post_promotion(
        db.session,
        promotion_id,
        channel or current_app.config.get('SLACK_DEFAULT_CHANNEL'),
        current_app.config.get('SLACK_BOT_TOKEN'),
        current_app.config['PUBLIC_APP_URL'],
    )


def promotion_pending_email(promotion_id: str) -> dict:
    """Email every super admin about a promotion waiting for review."""
    promotion = db.session.get(Promotion, promotion_id)
    if promotion is None:
        raise NotFound('Promotion not found')
    recipients = super_admin_emails(db.session)
    if not recipients:
        raise NotFound('No super admins found')
    approval_url = f"{current_app.config['PUBLIC_APP_URL']}/admin/promotions/{promotion_id}/approve"
    result = email_service.send_promotion_pending(
        recipients,
        promotion.title,
        promotion.sponsor.name if promotion.sponsor else '',
        approval_url,
        description=promotion.description,
    )
    if not result.success:
        logger.warning('Pending promotion email not sent promotion=%s error=%s', promotion_id, result.error)
    return {'admins': recipients, 'emailSent': result.success}
