"""
Invitation issuance, validation and acceptance.

Lifecycle of an invitation row: issued -> accepted (terminal), or expired
(terminal).  Acceptance provisions the profile and, for sponsor admins, the
sponsor_admins link with the privileged client, then closes the invitation.

Usage:
    result = issue_invitation(service, request_model, created_by=user_id, app_url=url)
    invitation = validate_invitation(service.session, token)
    result = accept_invitation(service, session_user, accept_model)
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError

from sponsor_portal.errors import (
    AlreadyAccepted,
    InvalidOrExpiredToken,
    InvitationExpired,
    InvitationMalformed,
    LinkVerificationFailed,
    LinkWriteFailed,
    NotFound,
    ProfileWriteFailed,
    Unauthenticated,
    UpstreamFailure,
)
from sponsor_portal.models.portal import Invitation, Sponsor
from sponsor_portal.services.sponsor_service import link_exists, upsert_profile, upsert_sponsor_link

logger = logging.getLogger(__name__)

DEFAULT_TTL_DAYS = 7
TOKEN_BYTES = 32


def _mask_token(token: str | None) -> str:
    if not token:
        return '(none)'
    return f"{token[:6]}...{token[-4:]}" if len(token) > 12 else token[:3] + '...'


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def build_invitation_url(app_url: str, token: str) -> str:
    return f"{app_url.rstrip('/')}/auth/accept-invitation?token={token}"


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------

def _deliver(service, invitation: Invitation, invitation_url: str, metadata: dict) -> tuple[bool, str | None]:
    """Send the sign-in link.  Returns (email_sent, warning)."""
    try:
        service.invite_user_by_email(invitation.email, redirect_to=invitation_url, data=metadata)
        return True, None
    except UpstreamFailure as invite_exc:
        # Existing auth users cannot be re-invited; a magic link still signs them in
        logger.warning(
            "Invite email failed for invitation=%s, trying magic link: %s",
            invitation.id,
            invite_exc.message,
        )
        try:
            service.send_magic_link(invitation.email, redirect_to=invitation_url)
            return True, None
        except UpstreamFailure as link_exc:
            logger.error(
                "Magic link failed for invitation=%s: %s",
                invitation.id,
                link_exc.message,
            )
            return False, invite_exc.message


def issue_invitation(
    service,
    data,
    created_by: str | None,
    app_url: str,
    ttl_days: int = DEFAULT_TTL_DAYS,
) -> dict:
    """Persist an invitation and attempt delivery.

    The row is committed before delivery; a delivery failure is reported as
    ``emailSent: False`` with a warning and never rolls the row back.
    """
    session = service.session
    if data.sponsor_id and session.get(Sponsor, data.sponsor_id) is None:
        raise NotFound('Sponsor not found')

    token = generate_token()
    invitation = Invitation(
        email=str(data.email).lower(),
        role=data.role,
        sponsor_id=data.sponsor_id if data.role == 'sponsor_admin' else None,
        token=token,
        expires_at=datetime.now(timezone.utc) + timedelta(days=ttl_days),
        created_by=created_by,
    )
    session.add(invitation)
    session.commit()
    logger.info(
        "Created invitation id=%s role=%s sponsor=%s token=%s",
        invitation.id,
        invitation.role,
        invitation.sponsor_id,
        _mask_token(token),
    )

    invitation_url = build_invitation_url(app_url, token)
    email_sent, warning = _deliver(
        service,
        invitation,
        invitation_url,
        {
            'role': invitation.role,
            'sponsor_id': invitation.sponsor_id,
            'invitation_token': token,
            'sponsor_name': data.sponsor_name,
            'admin_name': data.admin_name,
        },
    )

    result = {
        'invitationId': invitation.id,
        'invitationUrl': invitation_url,
        'emailSent': email_sent,
    }
    if email_sent:
        result['message'] = 'Invitation email sent successfully'
    else:
        result['message'] = 'Invitation created successfully, but automatic email sending failed.'
        result['warning'] = warning or 'Email service unavailable'
    return result


def resend_invitation(service, invitation_id: str, app_url: str) -> dict:
    """Re-deliver an open invitation with its existing token."""
    invitation = service.session.get(Invitation, invitation_id)
    if invitation is None:
        raise NotFound('Invitation not found')
    _ensure_usable(invitation)
    invitation_url = build_invitation_url(app_url, invitation.token)
    email_sent, warning = _deliver(
        service,
        invitation,
        invitation_url,
        {'role': invitation.role, 'sponsor_id': invitation.sponsor_id, 'invitation_token': invitation.token},
    )
    result = {'invitationId': invitation.id, 'invitationUrl': invitation_url, 'emailSent': email_sent}
    if warning:
        result['warning'] = warning
    return result


def list_open_invitations(session, sponsor_id: str | None = None) -> list[Invitation]:
    query = session.query(Invitation).filter(Invitation.accepted_at.is_(None))
    if sponsor_id:
        query = query.filter(Invitation.sponsor_id == sponsor_id)
    return query.order_by(Invitation.created_at.desc()).all()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _ensure_usable(invitation: Invitation) -> None:
    # Expiry is checked first so an expired row is refused regardless of accepted_at
    if invitation.is_expired():
        raise InvitationExpired()
    if invitation.is_accepted:
        raise AlreadyAccepted()


def find_invitation(session, token: str | None) -> Invitation:
    """Exact token lookup; no fallback matching."""
    if not token:
        raise InvalidOrExpiredToken()
    invitation = session.query(Invitation).filter(Invitation.token == token).first()
    if invitation is None:
        raise InvalidOrExpiredToken()
    return invitation


def validate_invitation(session, token: str | None) -> Invitation:
    invitation = find_invitation(session, token)
    _ensure_usable(invitation)
    return invitation


# ---------------------------------------------------------------------------
# Acceptance
# ---------------------------------------------------------------------------

def accept_invitation(service, session_user, data) -> dict:
    """Provision the accepting user from the invitation identified by ``data.token``.

    Gates (no writes happen past a failed gate):
      1. the session user id equals ``data.user_id``
      2. the token resolves to an unexpired, unaccepted invitation
      3. sponsor admin invitations carry their own sponsor_id

    Effects, each committed on its own:
      profile upsert -> sponsor link upsert -> link read-back -> accepted_at.
    The last step is best-effort; earlier writes are not rolled back if it fails.
    """
    log_ctx = {
        'token': _mask_token(data.token),
        'user_id': data.user_id,
        'request_sponsor_id': data.sponsor_id,
    }

    if session_user is None or session_user.id != data.user_id:
        logger.warning("Invitation accept rejected: session mismatch %s session_user=%s",
                       log_ctx, getattr(session_user, 'id', None))
        raise Unauthenticated('Unauthorized')

    session = service.session
    try:
        invitation = validate_invitation(session, data.token)
    except (InvalidOrExpiredToken, InvitationExpired, AlreadyAccepted) as exc:
        logger.warning("Invitation accept rejected: %s %s", exc.message, log_ctx)
        raise

    # The invitation row is authoritative for role and sponsor; request values are ignored
    role = invitation.role
    sponsor_id = invitation.sponsor_id
    log_ctx.update({'invitation_id': invitation.id, 'role': role, 'sponsor_id': sponsor_id})
    if data.sponsor_id and data.sponsor_id != sponsor_id:
        logger.warning("Ignoring request sponsor_id in favour of invitation sponsor_id %s", log_ctx)

    if role == 'sponsor_admin' and not sponsor_id:
        logger.error("Sponsor admin invitation without sponsor_id %s", log_ctx)
        raise InvitationMalformed()

    email = getattr(session_user, 'email', None) or data.email or invitation.email

    try:
        upsert_profile(session, data.user_id, email, role)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Profile upsert failed %s", log_ctx)
        raise ProfileWriteFailed(str(exc), user_id=data.user_id, sponsor_id=sponsor_id, context=log_ctx) from exc

    if role == 'sponsor_admin':
        try:
            upsert_sponsor_link(session, sponsor_id, data.user_id)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Sponsor admin link upsert failed %s", log_ctx)
            raise LinkWriteFailed(str(exc), user_id=data.user_id, sponsor_id=sponsor_id, context=log_ctx) from exc

        if not link_exists(session, sponsor_id, data.user_id):
            logger.error("Sponsor admin link missing after upsert %s", log_ctx)
            raise LinkVerificationFailed(
                'link not visible after write', user_id=data.user_id, sponsor_id=sponsor_id, context=log_ctx,
            )
        logger.info("Sponsor admin linked %s", log_ctx)

    marked = mark_accepted(session, invitation.id)
    if not marked:
        logger.error("Invitation provisioned but not marked accepted %s", log_ctx)

    return {
        'message': 'Invitation accepted successfully',
        'role': role,
        'sponsorId': sponsor_id,
        'invitationClosed': marked,
    }


def mark_accepted(session, invitation_id: str) -> bool:
    """Stamp accepted_at once.  Failures are logged and reported, never raised."""
    try:
        (
            session.query(Invitation)
            .filter(Invitation.id == invitation_id, Invitation.accepted_at.is_(None))
            .update({'accepted_at': datetime.now(timezone.utc)}, synchronize_session=False)
        )
        session.commit()
        return True
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Failed to mark invitation %s accepted", invitation_id)
        return False
