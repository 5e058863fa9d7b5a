"""
Slack delivery: incoming-webhook notices and bot channel posts.

Webhook notices are gated per type by the enabled ``slack_config`` row and
every attempt is logged to ``slack_notifications``.  Channel posts use the
Web API ``chat.postMessage`` with the bot token.
"""

import logging
from datetime import datetime, timezone

import requests
from sqlalchemy.exc import SQLAlchemyError

from sponsor_portal.errors import Internal, NotFound, UpstreamFailure, ValidationFailed
from sponsor_portal.models.content import BlogPost, SlackConfig, SlackNotification
from sponsor_portal.models.portal import Promotion, Sponsor
from sponsor_portal.utils.formatters import format_date
from sponsor_portal.utils.sanitize import sanitize_plain_text, truncate_plain_text

logger = logging.getLogger(__name__)

SLACK_POST_MESSAGE_URL = 'https://slack.com/api/chat.postMessage'
NOTIFICATION_TYPES = ('new_promotion', 'featured_promotion', 'new_sponsor', 'blog_post')
DEFAULT_CHANNEL = 'sponsor-news'


def get_active_config(session) -> SlackConfig | None:
    return (
        session.query(SlackConfig)
        .filter(SlackConfig.is_enabled.is_(True))
        .order_by(SlackConfig.created_at.asc())
        .first()
    )


# ---------------------------------------------------------------------------
# Message builders
# ---------------------------------------------------------------------------

def _promotion_message(promotion: Promotion, app_url: str, featured: bool = False) -> str:
    sponsor = promotion.sponsor
    heading = 'Featured offer' if featured else 'New Sponsor Offer'
    lines = [
        f"{heading} from {sanitize_plain_text(sponsor.name)}!",
        '',
        sanitize_plain_text(promotion.title),
        '',
        truncate_plain_text(promotion.description, 150),
    ]
    if promotion.end_date:
        lines.append(f"Valid until: {format_date(promotion.end_date)}")
    if promotion.coupon_code:
        lines.append(f"Code: {promotion.coupon_code}")
    lines.append(f"View details: {app_url}/sponsors/{sponsor.slug}")
    return '\n'.join(lines)


def _sponsor_message(sponsor: Sponsor, app_url: str) -> str:
    lines = [f"Welcome our newest sponsor: {sanitize_plain_text(sponsor.name)}!"]
    if sponsor.tagline:
        lines += ['', sanitize_plain_text(sponsor.tagline)]
    if sponsor.description:
        lines += ['', truncate_plain_text(sponsor.description, 200)]
    lines.append(f"Explore their offers: {app_url}/sponsors/{sponsor.slug}")
    return '\n'.join(lines)


def _blog_message(post: BlogPost, app_url: str) -> str:
    summary = truncate_plain_text(post.excerpt or post.content, 200)
    return '\n'.join([
        f"Sponsor News: {sanitize_plain_text(post.title)}",
        '',
        summary,
        f"Read more: {app_url}/news/{post.slug}",
    ])


def build_message(session, notification_type: str, payload: dict, app_url: str) -> str | None:
    """Render the text for a webhook notice, or None if the subject row is gone."""
    payload = payload or {}
    if notification_type in ('new_promotion', 'featured_promotion'):
        promotion = session.get(Promotion, payload.get('promotionId'))
        if promotion is None or promotion.sponsor is None:
            return None
        return _promotion_message(promotion, app_url, featured=notification_type == 'featured_promotion')
    if notification_type == 'new_sponsor':
        sponsor = session.get(Sponsor, payload.get('sponsorId'))
        return _sponsor_message(sponsor, app_url) if sponsor else None
    if notification_type == 'blog_post':
        post = session.get(BlogPost, payload.get('postId'))
        return _blog_message(post, app_url) if post else None
    return None


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

def _log_notification(session, notification_type, payload, ok, error=None, attempts=1):
    session.add(SlackNotification(
        notification_type=notification_type,
        payload=payload or {},
        status='sent' if ok else 'failed',
        error_message=None if ok else error,
        attempts=attempts,
        sent_at=datetime.now(timezone.utc) if ok else None,
    ))
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception('Failed to log slack notification type=%s', notification_type)


def send_notification(session, notification_type: str, payload: dict, app_url: str) -> dict:
    """Post a typed notice to the configured webhook.

    Returns ``{'success': False, ...}`` (not an error) when the type is
    switched off or unknown; raises when Slack is not configured or rejects
    the post.
    """
    config = get_active_config(session)
    if config is None:
        raise ValidationFailed('Slack not configured')

    if notification_type not in NOTIFICATION_TYPES or not config.allows(notification_type):
        return {'success': False, 'error': 'Notification not enabled or invalid type'}

    message = build_message(session, notification_type, payload, app_url)
    if not message:
        return {'success': False, 'error': 'Notification not enabled or invalid type'}

    try:
        response = requests.post(config.webhook_url, json={'text': message}, timeout=10)
        ok, error = response.ok, (None if response.ok else response.text[:500])
    except requests.exceptions.RequestException as exc:
        ok, error = False, str(exc)

    _log_notification(session, notification_type, payload, ok, error)
    if not ok:
        logger.warning('Slack webhook failed type=%s error=%s', notification_type, error)
        raise UpstreamFailure('Failed to send to Slack')
    return {'success': True}


def post_promotion(session, promotion_id: str, channel: str | None, bot_token: str | None, app_url: str) -> dict:
    """Post an approved promotion to a channel via ``chat.postMessage``."""
    if not promotion_id:
        raise ValidationFailed('Missing promotionId')
    if not bot_token:
        raise Internal('Slack Bot Token not configured')
    promotion = session.get(Promotion, promotion_id)
    if promotion is None:
        raise NotFound('Promotion not found')

    channel = channel or DEFAULT_CHANNEL
    sponsor = promotion.sponsor
    promotion_url = f"{app_url}/sponsors/{sponsor.slug}/promotions/{promotion.id}"
    lines = [
        f"*New Sponsor Offer from {sanitize_plain_text(sponsor.name)}!*",
        '',
        f"*{sanitize_plain_text(promotion.title)}*",
        '',
        truncate_plain_text(promotion.description, 300),
        '',
    ]
    if promotion.coupon_code:
        lines.append(f"*Coupon Code:* `{promotion.coupon_code}`")
    if promotion.end_date:
        lines.append(f"*Valid until:* {format_date(promotion.end_date)}")
    lines.append(f"<{promotion_url}|View full details>")

    try:
        response = requests.post(
            SLACK_POST_MESSAGE_URL,
            headers={'Authorization': f'Bearer {bot_token}'},
            json={'channel': channel, 'text': '\n'.join(lines), 'unfurl_links': True, 'unfurl_media': True},
            timeout=10,
        )
        result = response.json()
    except (requests.exceptions.RequestException, ValueError) as exc:
        raise UpstreamFailure(f'Slack API error: {exc}') from exc

    if not result.get('ok'):
        logger.error('Slack API error: %s', result)
        raise UpstreamFailure(f"Slack API error: {result.get('error') or 'Unknown error'}")

    _log_notification(
        session,
        'promotion_approved',
        {'promotionId': promotion_id, 'channel': channel, 'messageId': result.get('ts')},
        ok=True,
    )
    return {
        'message': 'Promotion posted to Slack',
        'channel': channel,
        'messageId': result.get('ts'),
    }
