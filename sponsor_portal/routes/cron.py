import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify

from sponsor_portal.auth import require_shared_secret
from sponsor_portal.clients import get_service_client
from sponsor_portal.errors import PortalError, _safe_error_payload
from sponsor_portal.services.promotion_service import expire_stale_promotions

logger = logging.getLogger(__name__)

cron_bp = Blueprint('cron', __name__)


@cron_bp.route('/cron/expire-promotions', methods=['GET', 'POST'])
@require_shared_secret('CRON_SECRET')
def expire_promotions():
    """Scheduled job: mark active promotions past their end date as expired."""
    try:
        now = datetime.now(timezone.utc)
        count = expire_stale_promotions(get_service_client().session, now)
        return jsonify({
            'success': True,
            'expiredCount': count,
            'timestamp': now.isoformat(),
        })
    except PortalError:
        raise
    except Exception as e:
        logger.exception('Expire promotions job failed')
        return jsonify(_safe_error_payload(e, 'Internal server error')), 500
