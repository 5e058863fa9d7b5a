import logging

from flask import Blueprint, current_app, jsonify, request

from sponsor_portal.auth import require_shared_secret
from sponsor_portal.clients import get_service_client
from sponsor_portal.services import slack_service

logger = logging.getLogger(__name__)

slack_bp = Blueprint('slack', __name__)


@slack_bp.route('/slack/notify', methods=['POST'])
@require_shared_secret('SLACK_WEBHOOK_SECRET_KEY')
def notify():
    """Relay a typed notice to the configured Slack webhook."""
    body = request.get_json(silent=True) or {}
    result = slack_service.send_notification(
        get_service_client().session,
        body.get('notificationType'),
        body.get('payload') or {},
        current_app.config['PUBLIC_APP_URL'],
    )
    return jsonify(result)


@slack_bp.route('/slack/post-promotion', methods=['POST'])
@require_shared_secret('SLACK_WEBHOOK_SECRET_KEY')
def post_promotion():
    """Post a promotion to a channel with the bot token."""
    body = request.get_json(silent=True) or {}
    result = slack_service.post_promotion(
        get_service_client().session,
        body.get('promotionId'),
        body.get('channel') or current_app.config.get('SLACK_DEFAULT_CHANNEL'),
        current_app.config.get('SLACK_BOT_TOKEN'),
        current_app.config['PUBLIC_APP_URL'],
    )
    return jsonify({'success': True, **result})
