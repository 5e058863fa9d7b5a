"""Error taxonomy shared by route handlers and services.

Handlers raise these instead of building error responses by hand; the
registered error handler renders ``{"success": false, "error": ...}`` with the
matching HTTP status.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from uuid import uuid4

from flask import jsonify

logger = logging.getLogger(__name__)


class PortalError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message: str | None = None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_payload(self) -> dict:
        payload = {'success': False, 'error': self.message}
        payload.update(self.extra)
        return payload


class Unauthenticated(PortalError):
    status_code = 401
    default_message = 'Not authenticated'


class Forbidden(PortalError):
    status_code = 403
    default_message = 'Forbidden'


class NotFound(PortalError):
    status_code = 404
    default_message = 'Not found'


class ValidationFailed(PortalError):
    status_code = 400
    default_message = 'Validation failed'

    def __init__(self, message: str | None = None, errors: dict[str, str] | None = None, **extra):
        if errors:
            extra['errors'] = errors
        super().__init__(message, **extra)


class Conflict(PortalError):
    status_code = 409
    default_message = 'Conflict'


class UpstreamFailure(PortalError):
    status_code = 502
    default_message = 'Upstream service failed'


class Internal(PortalError):
    status_code = 500


class ServiceRoleNotConfigured(Internal):
    default_message = 'Service role key not configured'


# ---------------------------------------------------------------------------
# Invitation workflow
# ---------------------------------------------------------------------------

class InvalidOrExpiredToken(NotFound):
    default_message = 'Invalid or expired invitation link'


class InvitationExpired(ValidationFailed):
    default_message = 'This invitation has expired'


class AlreadyAccepted(ValidationFailed):
    default_message = 'This invitation has already been accepted'


class InvitationMalformed(ValidationFailed):
    default_message = 'Sponsor admin invitation is missing sponsor_id'


@dataclass(eq=False)
class InvitationWriteError(Internal):
    """Failure while provisioning an accepted invitation."""

    reason: str
    user_id: str | None = None
    sponsor_id: str | None = None
    context: dict = field(default_factory=dict)

    prefix = 'Invitation write failed'

    def __post_init__(self) -> None:
        super().__init__(f'{self.prefix}: {self.reason}')


class ProfileWriteFailed(InvitationWriteError):
    prefix = 'Failed to create profile'


class LinkWriteFailed(InvitationWriteError):
    prefix = 'Failed to link sponsor admin'


class LinkVerificationFailed(InvitationWriteError):
    prefix = 'Failed to verify sponsor admin link was created'


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------

def _is_production() -> bool:
    env = (os.getenv('ENV') or os.getenv('FLASK_ENV') or os.getenv('APP_ENV') or '').strip().lower()
    return env in ('prod', 'production')


def _safe_error_payload(exc: Exception, fallback_message: str, include_detail: bool = False) -> dict:
    """Return a sanitized error payload, hiding internal details in production."""
    payload = {'success': False, 'error': fallback_message}
    if include_detail or not _is_production():
        payload['detail'] = str(exc)
    else:
        reference = uuid4().hex[:8]
        payload['reference'] = reference
        logger.error('Error reference=%s: %s', reference, exc, exc_info=True)
    return payload


def register_error_handlers(app) -> None:
    @app.errorhandler(PortalError)
    def _handle_portal_error(exc: PortalError):
        if exc.status_code >= 500:
            logger.error('%s: %s', type(exc).__name__, exc.message)
        return jsonify(exc.to_payload()), exc.status_code


__all__ = [
    'PortalError', 'Unauthenticated', 'Forbidden', 'NotFound', 'ValidationFailed', 'Conflict',
    'UpstreamFailure', 'Internal', 'ServiceRoleNotConfigured',
    'InvalidOrExpiredToken', 'InvitationExpired', 'AlreadyAccepted', 'InvitationMalformed',
    'ProfileWriteFailed', 'LinkWriteFailed', 'LinkVerificationFailed',
    '_safe_error_payload', 'register_error_handlers',
]
