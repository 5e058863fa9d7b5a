"""Anonymous endpoints: public sponsor pages, analytics and the auth callback."""
import logging
from urllib.parse import quote

from flask import Blueprint, current_app, jsonify, make_response, redirect, request

from sponsor_portal.clients import SESSION_COOKIE, get_session_client
from sponsor_portal.errors import _is_production
from sponsor_portal.extensions import limiter
from sponsor_portal.models.portal import db
from sponsor_portal.services.analytics_service import record_event
from sponsor_portal.services.promotion_service import list_public_promotions
from sponsor_portal.services.sponsor_service import get_public_sponsor

logger = logging.getLogger(__name__)

public_bp = Blueprint('public', __name__)
auth_callback_bp = Blueprint('auth_callback', __name__)


# Public reads go through the plain session and are filtered to what anonymous
# visitors may see; no service-role client is involved.

@public_bp.route('/public/sponsors/<slug>', methods=['GET'])
def sponsor_page(slug):
    sponsor = get_public_sponsor(db.session, slug)
    return jsonify({'success': True, 'sponsor': sponsor.to_dict()})


@public_bp.route('/public/sponsors/<slug>/promotions', methods=['GET'])
def sponsor_promotions(slug):
    sponsor = get_public_sponsor(db.session, slug)
    promotions = list_public_promotions(db.session, sponsor.id)
    return jsonify({'success': True, 'promotions': [p.to_dict() for p in promotions]})


@public_bp.route('/public/analytics', methods=['POST'])
@limiter.limit('120 per minute')
def track_event():
    event = record_event(db.session, request.get_json(silent=True) or {})
    return jsonify({'success': True, 'id': event.id}), 201


def _local_path(value: str | None) -> str:
    """Only same-site paths are allowed as post-login destinations."""
    if not value or not value.startswith('/') or value.startswith('//') or '\\' in value:
        return '/'
    return value


@auth_callback_bp.route('/auth/callback', methods=['GET'])
def auth_callback():
    """Finish a magic-link / invite sign-in and forward the browser."""
    app_url = current_app.config['PUBLIC_APP_URL']
    code = request.args.get('code')
    token = request.args.get('token')

    access_token = get_session_client().exchange_code_for_session(code) if code else None

    if token:
        target = f"{app_url}/auth/accept-invitation?token={quote(token)}"
    else:
        target = f"{app_url}{_local_path(request.args.get('redirect'))}"

    response = make_response(redirect(target, code=303))
    if access_token:
        response.set_cookie(
            SESSION_COOKIE,
            access_token,
            httponly=True,
            secure=_is_production(),
            samesite='Lax',
            path='/',
        )
    return response
