"""Sponsor, team and sponsor-admin link operations.

All functions take the privileged session explicitly; callers are
responsible for having checked the caller's role first.
"""
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from sponsor_portal.errors import Conflict, Forbidden, Internal, NotFound
from sponsor_portal.models.portal import Profile, Sponsor, SponsorAdmin
from sponsor_portal.schemas import SponsorSchema, SponsorUpdateSchema
from sponsor_portal.utils.slug import generate_slug, generate_unique_slug
from sponsor_portal.utils.upsert import upsert_row

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------

def find_sponsor_link(session, user_id: str | None) -> SponsorAdmin | None:
    """Return the caller's sponsor_admins link, or None.

    A user is expected to administer exactly one sponsor; if several links
    exist the oldest wins and the anomaly is logged for the diagnostics CLIs.
    """
    if not user_id:
        return None
    links = (
        session.query(SponsorAdmin)
        .filter(SponsorAdmin.user_id == user_id)
        .order_by(SponsorAdmin.created_at.asc())
        .all()
    )
    if not links:
        return None
    if len(links) > 1:
        logger.warning(
            "User %s has %d sponsor_admins links (%s); using %s",
            user_id,
            len(links),
            [link.sponsor_id for link in links],
            links[0].sponsor_id,
        )
    return links[0]


def link_exists(session, sponsor_id: str, user_id: str) -> bool:
    return (
        session.query(SponsorAdmin.id)
        .filter(SponsorAdmin.sponsor_id == sponsor_id, SponsorAdmin.user_id == user_id)
        .first()
        is not None
    )


def upsert_sponsor_link(session, sponsor_id: str, user_id: str) -> None:
    """Insert the (sponsor_id, user_id) link; an existing link is left as is."""
    upsert_row(
        session,
        SponsorAdmin,
        {'sponsor_id': sponsor_id, 'user_id': user_id},
        conflict_columns=('sponsor_id', 'user_id'),
    )


def upsert_profile(session, user_id: str, email: str, role: str, display_name: str | None = None) -> None:
    """Create or update the profile keyed by the auth user id."""
    upsert_row(
        session,
        Profile,
        {
            'id': user_id,
            'email': email,
            'role': role,
            'display_name': display_name or (email or '').split('@')[0],
        },
        conflict_columns=('id',),
        update_columns=('email', 'role', 'display_name'),
    )


# ---------------------------------------------------------------------------
# Sponsor admin views
# ---------------------------------------------------------------------------

def get_sponsor_summary(session, sponsor_id: str) -> dict:
    sponsor = session.get(Sponsor, sponsor_id)
    if sponsor is None:
        raise NotFound('No sponsor associated with your account')
    return {
        'sponsorId': sponsor.id,
        'sponsorName': sponsor.name,
        'sponsorSlug': sponsor.slug,
    }


def update_sponsor_profile(session, sponsor_id: str, data: SponsorUpdateSchema) -> Sponsor:
    """Apply the sponsor-admin editable fields; name and slug are never touched."""
    sponsor = session.get(Sponsor, sponsor_id)
    if sponsor is None:
        raise NotFound('Sponsor not found')
    values = data.model_dump()
    for field in Sponsor.PROFILE_FIELDS:
        value = values.get(field)
        if field == 'contact_email' and value is not None:
            value = str(value)
        setattr(sponsor, field, value)
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise Internal(f'Failed to update sponsor: {exc}') from exc
    return sponsor


def list_team_members(session, sponsor_id: str) -> list[dict]:
    links = (
        session.query(SponsorAdmin)
        .filter(SponsorAdmin.sponsor_id == sponsor_id)
        .order_by(SponsorAdmin.created_at.desc())
        .all()
    )
    return [link.to_dict(include_profile=True) for link in links]


def remove_team_member(session, sponsor_id: str, acting_user_id: str, member_user_id: str) -> None:
    if member_user_id == acting_user_id:
        raise Forbidden('You cannot remove yourself from the team')
    link = (
        session.query(SponsorAdmin)
        .filter(SponsorAdmin.sponsor_id == sponsor_id, SponsorAdmin.user_id == member_user_id)
        .first()
    )
    if link is None:
        raise NotFound('Team member not found')
    session.delete(link)
    session.commit()
    logger.info("Removed sponsor admin user=%s from sponsor=%s by %s", member_user_id, sponsor_id, acting_user_id)


# ---------------------------------------------------------------------------
# Super admin management
# ---------------------------------------------------------------------------

def _existing_slugs(session, exclude_id: str | None = None) -> set[str]:
    query = session.query(Sponsor.slug)
    if exclude_id:
        query = query.filter(Sponsor.id != exclude_id)
    return {row[0] for row in query.all()}


def list_sponsors(session, status: str | None = None) -> list[Sponsor]:
    query = session.query(Sponsor)
    if status:
        query = query.filter(Sponsor.status == status)
    return query.order_by(Sponsor.name.asc()).all()


def create_sponsor(session, data: SponsorSchema) -> Sponsor:
    values = data.model_dump()
    requested_slug = generate_slug(values.pop('slug') or '')
    existing = _existing_slugs(session)
    if requested_slug:
        if requested_slug in existing:
            raise Conflict(f'Slug "{requested_slug}" is already in use')
        slug = requested_slug
    else:
        slug = generate_unique_slug(values['name'], existing)
    if values.get('contact_email') is not None:
        values['contact_email'] = str(values['contact_email'])
    sponsor = Sponsor(slug=slug, **values)
    session.add(sponsor)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise Conflict(f'Failed to create sponsor: {exc.orig}') from exc
    logger.info("Created sponsor id=%s slug=%s", sponsor.id, sponsor.slug)
    return sponsor


def update_sponsor(session, sponsor_id: str, data: SponsorSchema) -> Sponsor:
    sponsor = session.get(Sponsor, sponsor_id)
    if sponsor is None:
        raise NotFound('Sponsor not found')
    values = data.model_dump()
    slug = generate_slug(values.pop('slug') or '') or sponsor.slug
    if slug != sponsor.slug and slug in _existing_slugs(session, exclude_id=sponsor.id):
        raise Conflict(f'Slug "{slug}" is already in use')
    if values.get('contact_email') is not None:
        values['contact_email'] = str(values['contact_email'])
    for field, value in values.items():
        setattr(sponsor, field, value)
    sponsor.slug = slug
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise Conflict(f'Failed to update sponsor: {exc.orig}') from exc
    return sponsor


def delete_sponsor(session, sponsor_id: str) -> None:
    sponsor = session.get(Sponsor, sponsor_id)
    if sponsor is None:
        raise NotFound('Sponsor not found')
    session.delete(sponsor)
    session.commit()
    logger.info("Deleted sponsor id=%s", sponsor_id)


def get_public_sponsor(session, slug: str) -> Sponsor:
    sponsor = session.query(Sponsor).filter(Sponsor.slug == slug, Sponsor.status == 'active').first()
    if sponsor is None:
        raise NotFound('Sponsor not found')
    return sponsor


def assign_role(session, user_id: str, role: str, sponsor_id: str | None = None) -> Profile:
    """Change a profile's role; sponsor admins are linked to ``sponsor_id`` in the same call."""
    profile = session.get(Profile, user_id)
    if profile is None:
        raise NotFound('Profile not found')
    if role == 'sponsor_admin':
        if session.get(Sponsor, sponsor_id) is None:
            raise NotFound('Sponsor not found')
        upsert_sponsor_link(session, sponsor_id, user_id)
    profile.role = role
    session.commit()
    logger.info("Assigned role=%s to user=%s sponsor=%s", role, user_id, sponsor_id)
    return profile
