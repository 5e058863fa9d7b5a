"""Anonymous engagement events from the public sponsor pages."""
import logging

from sponsor_portal.errors import ValidationFailed
from sponsor_portal.models.content import ANALYTICS_EVENT_TYPES, AnalyticsEvent
from sponsor_portal.models.portal import Promotion, Sponsor

logger = logging.getLogger(__name__)


def record_event(session, payload: dict) -> AnalyticsEvent:
    payload = payload or {}
    event_type = payload.get('eventType') or payload.get('event_type')
    if event_type not in ANALYTICS_EVENT_TYPES:
        raise ValidationFailed('Invalid event type', errors={'event_type': 'Unsupported event type'})

    sponsor_id = payload.get('sponsorId') or payload.get('sponsor_id')
    promotion_id = payload.get('promotionId') or payload.get('promotion_id')
    # Unknown ids are dropped rather than rejected; the event itself is still useful
    if sponsor_id and session.get(Sponsor, sponsor_id) is None:
        sponsor_id = None
    if promotion_id:
        promotion = session.get(Promotion, promotion_id)
        if promotion is None:
            promotion_id = None
        elif sponsor_id is None:
            sponsor_id = promotion.sponsor_id

    metadata = payload.get('metadata')
    event = AnalyticsEvent(
        event_type=event_type,
        sponsor_id=sponsor_id,
        promotion_id=promotion_id,
        event_metadata=metadata if isinstance(metadata, dict) else None,
    )
    session.add(event)
    session.commit()
    return event
