"""
Promotion lifecycle: submission, approval, status changes and expiry.

Two independent fields describe a promotion: ``status`` (draft, active,
expired, archived, pending_approval) and ``approval_status`` (pending,
approved, rejected).  Sponsor admins can only submit; super admins approve,
feature and publish.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError

from sponsor_portal.errors import Forbidden, Internal, NotFound, ValidationFailed
from sponsor_portal.models.portal import Profile, Promotion, Sponsor, _as_utc
from sponsor_portal.schemas import AdminPromotionSchema, AdminPromotionUpdateSchema, ApprovalRequest, PromotionSchema

logger = logging.getLogger(__name__)

CONTENT_FIELDS = (
    'title', 'description', 'promotion_type', 'start_date', 'end_date',
    'coupon_code', 'external_link', 'terms', 'image_url',
)
ADMIN_FIELDS = ('is_featured', 'status', 'publish_to_site', 'publish_to_slack', 'slack_channel')


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------

def is_publicly_visible(promotion: Promotion, now: datetime | None = None) -> bool:
    """True when an anonymous visitor may see ``promotion``.

    Active, started, and either open-ended or not yet past ``end_date``.
    """
    now = _as_utc(now) or datetime.now(timezone.utc)
    if promotion.status != 'active':
        return False
    start = _as_utc(promotion.start_date)
    if start is None or start > now:
        return False
    end = _as_utc(promotion.end_date)
    return end is None or end >= now


def visible_filter(now: datetime | None = None):
    """SQL form of :func:`is_publicly_visible`."""
    now = now or datetime.now(timezone.utc)
    return and_(
        Promotion.status == 'active',
        Promotion.start_date <= now,
        or_(Promotion.end_date.is_(None), Promotion.end_date >= now),
    )


def list_public_promotions(session, sponsor_id: str, now: datetime | None = None) -> list[Promotion]:
    return (
        session.query(Promotion)
        .filter(Promotion.sponsor_id == sponsor_id, visible_filter(now))
        .order_by(Promotion.is_featured.desc(), Promotion.start_date.desc())
        .all()
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _content_values(data, promotion: Promotion | None = None) -> dict:
    """Content fields to write, checked against the row they will produce.

    On create every field is taken from ``data``.  On update only the fields
    the client sent are applied and everything else keeps its stored value.
    """
    if promotion is None:
        values = {field: getattr(data, field) for field in CONTENT_FIELDS}
        current = {}
    else:
        values = {field: getattr(data, field) for field in CONTENT_FIELDS if field in data.model_fields_set}
        current = {field: getattr(promotion, field) for field in CONTENT_FIELDS}
    if 'start_date' in values and values['start_date'] is None:
        values['start_date'] = datetime.now(timezone.utc)
    _check_dates({**current, **values})
    return values


def _check_dates(row: dict) -> None:
    start = _as_utc(row.get('start_date'))
    end = _as_utc(row.get('end_date'))
    if row.get('promotion_type') == 'time_limited' and end is None:
        raise ValidationFailed(
            'Validation failed',
            errors={'end_date': 'End date is required for time-limited promotions'},
        )
    if end is not None and start is not None and not start < end:
        raise ValidationFailed('Validation failed', errors={'end_date': 'End date must be after start date'})


def _commit(session, action: str):
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception('Failed to %s promotion', action)
        raise Internal(f'Failed to {action} promotion: {exc}') from exc


def get_owned_promotion(session, promotion_id: str | None, sponsor_id: str) -> Promotion:
    if not promotion_id:
        raise ValidationFailed('Promotion ID is required')
    promotion = session.get(Promotion, promotion_id)
    if promotion is None:
        raise NotFound('Promotion not found')
    if promotion.sponsor_id != sponsor_id:
        raise Forbidden('You do not have permission to update this promotion')
    return promotion


# ---------------------------------------------------------------------------
# Sponsor admin
# ---------------------------------------------------------------------------

def list_sponsor_promotions(session, sponsor_id: str) -> list[Promotion]:
    return (
        session.query(Promotion)
        .filter(Promotion.sponsor_id == sponsor_id)
        .order_by(Promotion.created_at.desc())
        .all()
    )


def submit_promotion(session, sponsor_id: str, user_id: str, data: PromotionSchema) -> Promotion:
    """Create a promotion on behalf of a sponsor admin.

    Whatever the payload says, the row starts as ``pending_approval`` /
    ``pending`` and unfeatured.
    """
    if data.is_featured or (data.status and data.status != 'pending_approval'):
        logger.info(
            'Ignoring client status=%s is_featured=%s for sponsor admin create user=%s',
            data.status,
            data.is_featured,
            user_id,
        )
    promotion = Promotion(
        sponsor_id=sponsor_id,
        created_by=user_id,
        status='pending_approval',
        approval_status='pending',
        is_featured=False,
        **_content_values(data),
    )
    session.add(promotion)
    _commit(session, 'create')
    logger.info('Promotion %s submitted by user=%s sponsor=%s', promotion.id, user_id, sponsor_id)
    return promotion


def update_sponsor_promotion(session, sponsor_id: str, promotion_id: str, data: PromotionSchema) -> Promotion:
    """Apply the content fields the client sent.

    Unsent fields, ``is_featured`` and the approval fields keep their stored values.
    """
    promotion = get_owned_promotion(session, promotion_id, sponsor_id)
    for field, value in _content_values(data, promotion).items():
        setattr(promotion, field, value)
    _commit(session, 'update')
    return promotion


def change_status(session, sponsor_id: str, promotion_id: str, new_status: str) -> Promotion:
    promotion = get_owned_promotion(session, promotion_id, sponsor_id)
    if new_status == 'active' and promotion.approval_status != 'approved':
        raise Forbidden('Promotion must be approved before it can be activated')
    promotion.status = new_status
    _commit(session, 'update status of')
    return promotion


def delete_sponsor_promotion(session, sponsor_id: str, promotion_id: str) -> None:
    promotion = get_owned_promotion(session, promotion_id, sponsor_id)
    session.delete(promotion)
    _commit(session, 'delete')


# ---------------------------------------------------------------------------
# Super admin
# ---------------------------------------------------------------------------

def create_admin_promotion(session, user_id: str, data: AdminPromotionSchema) -> Promotion:
    """Create for any sponsor; anything but a draft is approved on the spot."""
    if session.get(Sponsor, data.sponsor_id) is None:
        raise NotFound('Sponsor not found')
    approved = data.status != 'draft'
    now = datetime.now(timezone.utc)
    promotion = Promotion(
        sponsor_id=data.sponsor_id,
        created_by=user_id,
        is_featured=data.is_featured,
        status=data.status if approved else 'draft',
        approval_status='approved' if approved else 'pending',
        approved_by=user_id if approved else None,
        approved_at=now if approved else None,
        publish_to_site=data.publish_to_site,
        publish_to_slack=data.publish_to_slack,
        slack_channel=data.slack_channel,
        **_content_values(data),
    )
    session.add(promotion)
    _commit(session, 'create')
    logger.info('Super admin %s created promotion %s for sponsor=%s', user_id, promotion.id, data.sponsor_id)
    return promotion


def update_admin_promotion(session, promotion_id: str, data: AdminPromotionUpdateSchema) -> Promotion:
    """Partial edit: fields absent from the payload are left untouched."""
    promotion = session.get(Promotion, promotion_id)
    if promotion is None:
        raise NotFound('Promotion not found')
    values = _content_values(data, promotion)
    for field in ADMIN_FIELDS:
        if field in data.model_fields_set:
            values[field] = getattr(data, field)
    for field, value in values.items():
        setattr(promotion, field, value)
    _commit(session, 'update')
    return promotion


def delete_admin_promotion(session, promotion_id: str) -> None:
    promotion = session.get(Promotion, promotion_id)
    if promotion is None:
        raise NotFound('Promotion not found')
    session.delete(promotion)
    _commit(session, 'delete')


def review_promotion(session, approver_id: str, data: ApprovalRequest) -> Promotion:
    """Approve or reject.

    Approval records the approver, publish flags and featured flag, and goes
    live only when ``publish_to_site`` is set.  Rejection touches approval
    fields alone.  Slack posting is left to the caller.
    """
    promotion = session.get(Promotion, data.promotion_id)
    if promotion is None:
        raise NotFound('Promotion not found')

    now = datetime.now(timezone.utc)
    if data.action == 'approve':
        promotion.approval_status = 'approved'
        promotion.publish_to_site = data.publish_to_site
        promotion.publish_to_slack = data.publish_to_slack
        promotion.slack_channel = data.slack_channel
        promotion.is_featured = data.is_featured
        if data.publish_to_site:
            promotion.status = 'active'
    else:
        promotion.approval_status = 'rejected'
    promotion.approved_by = approver_id
    promotion.approved_at = now
    promotion.approval_notes = data.approval_notes
    _commit(session, data.action)
    logger.info('Promotion %s %sd by %s', promotion.id, data.action, approver_id)
    return promotion


def super_admin_emails(session) -> list[str]:
    rows = session.query(Profile.email).filter(Profile.role == 'super_admin').all()
    return [row[0] for row in rows if row[0]]


def expire_stale_promotions(session, now: datetime | None = None) -> int:
    """Move active promotions past their end date to ``expired``; returns the count."""
    now = now or datetime.now(timezone.utc)
    count = (
        session.query(Promotion)
        .filter(
            Promotion.status == 'active',
            Promotion.end_date.isnot(None),
            Promotion.end_date < now,
        )
        .update({'status': 'expired', 'updated_at': now}, synchronize_session=False)
    )
    _commit(session, 'expire')
    logger.info('Expired %d promotions', count)
    return count
