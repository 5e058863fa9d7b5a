"""Authentication decorators and utilities.

This module contains shared authentication code used across blueprints:
- require_session: any signed-in caller (anon-scoped session lookup)
- require_super_admin: signed-in caller whose profile role is super_admin
- require_sponsor_admin: signed-in caller linked to a sponsor via sponsor_admins
- require_shared_secret: machine-to-machine endpoints (cron, Slack relays)

Role checks always re-read the profile/link server-side with the privileged
client; roles claimed by the client are never trusted.
"""

import hmac
import logging
from functools import wraps

from flask import current_app, g, jsonify, make_response, request

from sponsor_portal.clients import extract_access_token, get_service_client, get_session_client
from sponsor_portal.errors import Forbidden, NotFound, PortalError, Unauthenticated
from sponsor_portal.models.portal import Profile
from sponsor_portal.services.sponsor_service import find_sponsor_link
from sponsor_portal.user_state import UserState

logger = logging.getLogger(__name__)


def mask_secret(value: str | None) -> str:
    """Shorten tokens and keys for log output."""
    if not value:
        return '(none)'
    trimmed = value.strip()
    if len(trimmed) <= 8:
        return trimmed[:2] + '...'
    return f"{trimmed[:4]}...{trimmed[-4:]}"


def _error_response(exc: PortalError):
    return jsonify(exc.to_payload()), exc.status_code


def get_user_state() -> UserState:
    state = g.get('user_state')
    if state is None:
        state = UserState()
        g.user_state = state
    return state


def _load_session_user() -> UserState:
    state = get_user_state()
    if state.user is not None:
        return state
    user = get_session_client().get_user(extract_access_token())
    if user is None:
        state.reset()
        raise Unauthenticated()
    return state.set_user(user)


# ---------------------------------------------------------------------------
# Auth decorators
# ---------------------------------------------------------------------------

def require_session(f):
    """Decorator to require a signed-in caller. Sets g.user_state.user."""
    @wraps(f)
    def decorated(*args, **kwargs):
        if request.method == 'OPTIONS':
            return make_response('', 204)
        try:
            _load_session_user()
        except PortalError as exc:
            return _error_response(exc)
        return f(*args, **kwargs)
    return decorated


def require_super_admin(f):
    """Decorator to require a super admin.

    Order of checks: session (401), privileged client configured (500),
    profile role re-read with the privileged client (403).
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        if request.method == 'OPTIONS':
            return make_response('', 204)
        try:
            state = _load_session_user()
            service = get_service_client()
            profile = service.session.get(Profile, state.user_id)
            state.set_profile(profile)
            if profile is None or not profile.is_super_admin:
                logger.warning(
                    "Super admin check failed user=%s role=%s endpoint=%s",
                    state.user_id,
                    getattr(profile, 'role', None),
                    request.endpoint,
                )
                raise Forbidden('Unauthorized - super admin only')
        except PortalError as exc:
            return _error_response(exc)
        return f(*args, **kwargs)
    return decorated


def require_sponsor_admin(f=None, *, missing_status: int = 403):
    """Decorator to require a caller linked to a sponsor.

    Sets g.user_state.sponsor_id from the sponsor_admins link.  A caller with
    a sponsor_admin profile but no link is rejected, never given a default
    sponsor.  ``missing_status`` picks 403 or 404 for that case.
    """
    def decorator(func):
        @wraps(func)
        def decorated(*args, **kwargs):
            if request.method == 'OPTIONS':
                return make_response('', 204)
            try:
                state = _load_session_user()
                service = get_service_client()
                link = find_sponsor_link(service.session, state.user_id)
                if link is None:
                    logger.warning(
                        "No sponsor_admins link for user=%s endpoint=%s",
                        state.user_id,
                        request.endpoint,
                    )
                    message = 'No sponsor associated with your account'
                    if missing_status == 404:
                        raise NotFound(message)
                    raise Forbidden(message)
                state.sponsor_id = link.sponsor_id
                state.set_profile(service.session.get(Profile, state.user_id))
            except PortalError as exc:
                return _error_response(exc)
            return func(*args, **kwargs)
        return decorated

    if f is not None:
        return decorator(f)
    return decorator


def require_shared_secret(config_key: str):
    """Decorator for machine endpoints guarded by ``Authorization: Bearer <secret>``.

    When the secret is not configured the endpoint is open, matching how the
    scheduled job and Slack relays are deployed in development.
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            expected = current_app.config.get(config_key)
            if expected:
                provided = request.headers.get('Authorization', '')
                if not hmac.compare_digest(provided, f'Bearer {expected}'):
                    logger.warning(
                        "Shared secret rejected endpoint=%s key=%s provided=%s",
                        request.endpoint,
                        config_key,
                        mask_secret(provided[7:] if provided.startswith('Bearer ') else provided),
                    )
                    return _error_response(Unauthenticated('Unauthorized'))
            return f(*args, **kwargs)
        return decorated
    return decorator


def current_user_id() -> str | None:
    return get_user_state().user_id


def init_request_state(app) -> None:
    """Drop per-request caller state and client handles before each request.

    An app context can outlive a single request (CLI shells, test clients),
    so nothing resolved for one caller may leak into the next.
    """
    @app.before_request
    def _reset_request_state():
        for key in ('user_state', '_session_client', '_service_client'):
            g.pop(key, None)
