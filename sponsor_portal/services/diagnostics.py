"""
Read-mostly checks behind the operational scripts in ``scripts/``.

Every function takes the privileged session and returns plain dicts so the
scripts can print them and the tests can assert on them.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, text

from sponsor_portal.models.portal import Invitation, Profile, Promotion, Sponsor, SponsorAdmin, _as_utc
from sponsor_portal.services.promotion_service import is_publicly_visible
from sponsor_portal.services.sponsor_service import find_sponsor_link, link_exists, upsert_sponsor_link

logger = logging.getLogger(__name__)

RECURSIVE_TEAM_POLICY = 'Sponsor admins can view team members'


# ---------------------------------------------------------------------------
# Sponsor admin links
# ---------------------------------------------------------------------------

def find_unlinked_sponsor_admins(session) -> list[Profile]:
    linked = select(SponsorAdmin.user_id)
    return (
        session.query(Profile)
        .filter(Profile.role == 'sponsor_admin', Profile.id.notin_(linked))
        .order_by(Profile.email.asc())
        .all()
    )


def match_sponsor_by_email(session, email: str) -> Sponsor | None:
    """Guess a sponsor from the local part of an email (name or slug match)."""
    prefix = (email or '').split('@')[0].strip().lower()
    if not prefix:
        return None
    return (
        session.query(Sponsor)
        .filter((func.lower(Sponsor.name) == prefix) | (Sponsor.slug == prefix))
        .order_by(Sponsor.created_at.asc())
        .first()
    )


def fix_unlinked_sponsor_admins(session, dry_run: bool = False) -> list[dict]:
    results = []
    for profile in find_unlinked_sponsor_admins(session):
        sponsor = match_sponsor_by_email(session, profile.email)
        entry = {
            'user_id': profile.id,
            'email': profile.email,
            'sponsor_id': sponsor.id if sponsor else None,
            'sponsor_name': sponsor.name if sponsor else None,
            'action': 'no_match',
        }
        if sponsor is not None:
            if dry_run:
                entry['action'] = 'would_link'
            else:
                upsert_sponsor_link(session, sponsor.id, profile.id)
                session.commit()
                entry['action'] = 'linked'
                logger.info('Linked %s to sponsor %s', profile.id, sponsor.id)
        results.append(entry)
    return results


def describe_user_link(session, email: str) -> dict:
    profile = session.query(Profile).filter(func.lower(Profile.email) == email.lower()).first()
    if profile is None:
        return {'email': email, 'profile': None, 'links': [], 'suggestion': None}
    links = session.query(SponsorAdmin).filter(SponsorAdmin.user_id == profile.id).all()
    suggestion = None
    if not links and profile.role == 'sponsor_admin':
        sponsor = match_sponsor_by_email(session, profile.email)
        suggestion = sponsor.to_dict() if sponsor else None
    return {
        'email': email,
        'profile': profile.to_dict(),
        'links': [
            {**link.to_dict(), 'sponsor_name': link.sponsor.name if link.sponsor else None}
            for link in links
        ],
        'suggestion': suggestion,
    }


def ensure_user_link(session, email: str, sponsor_id: str | None = None) -> dict:
    """Make sure ``email`` is a sponsor admin linked to a sponsor.

    Without ``sponsor_id`` the sponsor is guessed from the email.
    """
    profile = session.query(Profile).filter(func.lower(Profile.email) == email.lower()).first()
    if profile is None:
        return {'email': email, 'actions': [], 'error': 'Profile not found'}

    actions = []
    if profile.role != 'sponsor_admin' and not profile.is_super_admin:
        profile.role = 'sponsor_admin'
        actions.append('set_role')

    existing = find_sponsor_link(session, profile.id)
    if existing is not None and sponsor_id is None:
        session.commit()
        return {'email': email, 'actions': actions, 'sponsor_id': existing.sponsor_id}

    sponsor = session.get(Sponsor, sponsor_id) if sponsor_id else match_sponsor_by_email(session, email)
    if sponsor is None:
        session.commit()
        return {'email': email, 'actions': actions, 'error': 'No sponsor to link'}

    if not link_exists(session, sponsor.id, profile.id):
        upsert_sponsor_link(session, sponsor.id, profile.id)
        actions.append('linked')
    session.commit()
    return {'email': email, 'actions': actions, 'sponsor_id': sponsor.id}


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------

def explain_visibility(promotion: Promotion, now: datetime | None = None) -> list[str]:
    """Reasons an anonymous visitor cannot see ``promotion``; empty when visible."""
    now = _as_utc(now) or datetime.now(timezone.utc)
    reasons = []
    if promotion.status != 'active':
        reasons.append(f"status is '{promotion.status}', not 'active'")
    start = _as_utc(promotion.start_date)
    if start is None or start > now:
        reasons.append('start_date is in the future')
    end = _as_utc(promotion.end_date)
    if end is not None and end < now:
        reasons.append('end_date has passed')
    return reasons


def check_promotions(session, sponsor_id: str, now: datetime | None = None) -> list[dict]:
    promotions = (
        session.query(Promotion)
        .filter(Promotion.sponsor_id == sponsor_id)
        .order_by(Promotion.created_at.desc())
        .all()
    )
    return [
        {
            'id': promotion.id,
            'title': promotion.title,
            'status': promotion.status,
            'approval_status': promotion.approval_status,
            'visible': is_publicly_visible(promotion, now),
            'reasons': explain_visibility(promotion, now),
        }
        for promotion in promotions
    ]


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

def invitation_state(session, invitation: Invitation, now: datetime | None = None) -> str:
    """accepted, expired, provisioned_unclosed (user set up but row still open) or pending."""
    if invitation.is_accepted:
        return 'accepted'
    if invitation.is_expired(now):
        return 'expired'
    profile = (
        session.query(Profile)
        .filter(func.lower(Profile.email) == invitation.email.lower(), Profile.role == invitation.role)
        .first()
    )
    if profile is not None:
        if invitation.role != 'sponsor_admin' or (
            invitation.sponsor_id and link_exists(session, invitation.sponsor_id, profile.id)
        ):
            return 'provisioned_unclosed'
    return 'pending'


def check_invitation_flow(session, email: str, now: datetime | None = None) -> list[dict]:
    invitations = (
        session.query(Invitation)
        .filter(func.lower(Invitation.email) == email.lower())
        .order_by(Invitation.created_at.desc())
        .all()
    )
    return [
        {**invitation.to_dict(), 'state': invitation_state(session, invitation, now)}
        for invitation in invitations
    ]


# ---------------------------------------------------------------------------
# Row Level Security
# ---------------------------------------------------------------------------

def fetch_policies(session, table: str = 'sponsor_admins') -> list[dict]:
    """Read policies from ``pg_policies``.  Postgres only."""
    bind = session.get_bind()
    if bind.dialect.name != 'postgresql':
        raise RuntimeError(f'pg_policies is not available on {bind.dialect.name}')
    rows = session.execute(
        text(
            "SELECT policyname, cmd, qual, with_check FROM pg_policies "
            "WHERE schemaname = 'public' AND tablename = :table ORDER BY policyname"
        ),
        {'table': table},
    ).mappings().all()
    return [dict(row) for row in rows]


def find_recursive_policies(policies: list[dict], table: str = 'sponsor_admins') -> dict:
    """Flag policies on ``table`` whose USING clause queries ``table`` again."""
    flagged = [
        policy['policyname']
        for policy in policies
        if table in str(policy.get('qual') or '') and 'EXISTS' in str(policy.get('qual') or '').upper()
    ]
    known = any(policy['policyname'] == RECURSIVE_TEAM_POLICY for policy in policies)
    return {'known_recursive_policy': known, 'possibly_recursive': flagged}


def replay_policy_decision(session, user_id: str, sponsor_id: str, now: datetime | None = None) -> dict:
    """Re-evaluate, in Python, what the user-scoped policies would let ``user_id`` see.

    * sponsor_admins "own records": rows where user_id equals the caller
    * promotions public read: rows passing the visibility predicate
    """
    own_links = session.query(SponsorAdmin).filter(SponsorAdmin.user_id == user_id).all()
    promotions = session.query(Promotion).filter(Promotion.sponsor_id == sponsor_id).all()
    return {
        'user_id': user_id,
        'sponsor_id': sponsor_id,
        'own_link_rows': [link.sponsor_id for link in own_links],
        'can_manage_sponsor': any(link.sponsor_id == sponsor_id for link in own_links),
        'public_promotions': [p.id for p in promotions if is_publicly_visible(p, now)],
        'hidden_promotions': [p.id for p in promotions if not is_publicly_visible(p, now)],
    }
