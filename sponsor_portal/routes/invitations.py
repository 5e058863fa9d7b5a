import logging

from flask import Blueprint, current_app, jsonify, request

from sponsor_portal.auth import get_user_state, require_session
from sponsor_portal.clients import get_service_client
from sponsor_portal.errors import Forbidden, PortalError, ValidationFailed, _safe_error_payload
from sponsor_portal.extensions import INVITATION_RATE_LIMIT, limiter
from sponsor_portal.models.portal import Profile, db
from sponsor_portal.schemas import AcceptInvitationRequest, InvitationRequest, parse_payload
from sponsor_portal.services.invitation_service import accept_invitation, issue_invitation, validate_invitation
from sponsor_portal.services.sponsor_service import find_sponsor_link

logger = logging.getLogger(__name__)

invitations_bp = Blueprint('invitations', __name__)


def _check_may_invite(service, user_id: str, data: InvitationRequest) -> None:
    """Super admins invite anyone; sponsor admins only teammates for their own sponsor."""
    profile = service.session.get(Profile, user_id)
    if profile is not None and profile.is_super_admin:
        return
    link = find_sponsor_link(service.session, user_id)
    if link is None or data.role != 'sponsor_admin' or data.sponsor_id != link.sponsor_id:
        logger.warning('Invitation refused for user=%s role=%s sponsor=%s', user_id, data.role, data.sponsor_id)
        raise Forbidden('You do not have permission to send this invitation')


@invitations_bp.route('/invitations/send', methods=['POST'])
@require_session
def send_invitation():
    """Create an invitation and email the sign-in link."""
    data = parse_payload(InvitationRequest, request.get_json(silent=True))
    state = get_user_state()
    try:
        service = get_service_client()
        _check_may_invite(service, state.user_id, data)
        result = issue_invitation(
            service,
            data,
            created_by=state.user_id,
            app_url=current_app.config['PUBLIC_APP_URL'],
            ttl_days=current_app.config.get('INVITATION_TTL_DAYS', 7),
        )
        return jsonify({'success': True, **result})
    except PortalError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception('Send invitation error')
        return jsonify(_safe_error_payload(e, 'Failed to create invitation')), 500


@invitations_bp.route('/invitations/validate', methods=['GET'])
@limiter.limit(INVITATION_RATE_LIMIT)
def validate_invitation_token():
    """Public: check a token before showing the sign-up form."""
    token = (request.args.get('token') or '').strip()
    if not token:
        raise ValidationFailed('Token is required')
    invitation = validate_invitation(get_service_client().session, token)
    return jsonify({'success': True, 'invitation': invitation.to_dict()})


@invitations_bp.route('/invitations/accept', methods=['POST'])
@limiter.limit(INVITATION_RATE_LIMIT)
@require_session
def accept():
    """Provision the signed-in user from their invitation."""
    data = parse_payload(AcceptInvitationRequest, request.get_json(silent=True), message='Missing required fields')
    state = get_user_state()
    try:
        result = accept_invitation(get_service_client(), state.user, data)
        return jsonify({'success': True, **result})
    except PortalError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception('Accept invitation error user=%s', data.user_id)
        return jsonify(_safe_error_payload(e, 'Internal server error')), 500
