from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, timezone
from uuid import uuid4


def _as_utc(dt: datetime | None) -> datetime | None:
    """Normalize naive datetimes to UTC-aware values."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


def _iso(dt: datetime | None) -> str | None:
    dt = _as_utc(dt)
    return dt.isoformat() if dt else None


db = SQLAlchemy()


PROFILE_ROLES = ('super_admin', 'sponsor_admin')
SPONSOR_STATUSES = ('pending', 'active', 'inactive')
PROMOTION_TYPES = ('evergreen', 'time_limited', 'coupon_code', 'external_link')
PROMOTION_STATUSES = ('draft', 'active', 'expired', 'archived', 'pending_approval')
APPROVAL_STATUSES = ('pending', 'approved', 'rejected')


class Profile(db.Model):
    __tablename__ = 'profiles'

    # Keyed by the auth provider's user id
    id = db.Column(db.String(36), primary_key=True)
    email = db.Column(db.String(255), nullable=False, index=True)
    display_name = db.Column(db.String(120))
    avatar_url = db.Column(db.Text)
    role = db.Column(db.String(20), nullable=False, default='sponsor_admin')
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @property
    def is_super_admin(self) -> bool:
        return self.role == 'super_admin'

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'display_name': self.display_name,
            'avatar_url': self.avatar_url,
            'role': self.role,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Sponsor(db.Model):
    __tablename__ = 'sponsors'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(220), unique=True, nullable=False)
    tagline = db.Column(db.String(150))
    description = db.Column(db.Text)
    logo_url = db.Column(db.Text)
    banner_url = db.Column(db.Text)
    category = db.Column(db.JSON, nullable=False, default=list)
    website_url = db.Column(db.Text)
    contact_email = db.Column(db.String(255))
    contact_phone = db.Column(db.String(50))
    address_street = db.Column(db.String(200))
    address_city = db.Column(db.String(120))
    address_state = db.Column(db.String(80))
    address_zip = db.Column(db.String(20))
    social_instagram = db.Column(db.Text)
    social_facebook = db.Column(db.Text)
    social_strava = db.Column(db.Text)
    social_twitter = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='pending')
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    promotions = db.relationship('Promotion', backref='sponsor', lazy=True, cascade='all, delete-orphan')
    admins = db.relationship('SponsorAdmin', backref='sponsor', lazy=True, cascade='all, delete-orphan')

    # Fields a sponsor admin may edit; name and slug stay with super admins
    PROFILE_FIELDS = (
        'tagline', 'description', 'category', 'website_url', 'contact_email', 'contact_phone',
        'address_street', 'address_city', 'address_state', 'address_zip',
        'social_instagram', 'social_facebook', 'social_strava', 'social_twitter',
    )

    def to_dict(self):
        payload = {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'logo_url': self.logo_url,
            'banner_url': self.banner_url,
            'status': self.status,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        for field in self.PROFILE_FIELDS:
            payload[field] = getattr(self, field)
        payload['category'] = list(self.category or [])
        return payload


class SponsorAdmin(db.Model):
    """Link between a profile and the sponsor it administers."""
    __tablename__ = 'sponsor_admins'
    __table_args__ = (
        db.UniqueConstraint('sponsor_id', 'user_id', name='uq_sponsor_admins_sponsor_user'),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    sponsor_id = db.Column(db.String(36), db.ForeignKey('sponsors.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    profile = db.relationship('Profile', lazy='joined')

    def to_dict(self, include_profile: bool = False):
        payload = {
            'id': self.id,
            'sponsor_id': self.sponsor_id,
            'user_id': self.user_id,
            'created_at': _iso(self.created_at),
        }
        if include_profile:
            profile = self.profile
            payload['profiles'] = {
                'id': profile.id,
                'email': profile.email,
                'display_name': profile.display_name,
                'role': profile.role,
            } if profile else None
        return payload


class Promotion(db.Model):
    __tablename__ = 'promotions'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    sponsor_id = db.Column(db.String(36), db.ForeignKey('sponsors.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)
    promotion_type = db.Column(db.String(20), nullable=False)
    start_date = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    end_date = db.Column(db.DateTime(timezone=True))
    coupon_code = db.Column(db.String(100))
    external_link = db.Column(db.Text)
    terms = db.Column(db.Text)
    image_url = db.Column(db.Text)
    is_featured = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(20), nullable=False, default='draft', index=True)
    approval_status = db.Column(db.String(20), nullable=False, default='pending')
    approved_by = db.Column(db.String(36))
    approved_at = db.Column(db.DateTime(timezone=True))
    approval_notes = db.Column(db.Text)
    publish_to_site = db.Column(db.Boolean, nullable=False, default=False)
    publish_to_slack = db.Column(db.Boolean, nullable=False, default=False)
    slack_channel = db.Column(db.String(120))
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self, include_sponsor: bool = False):
        payload = {
            'id': self.id,
            'sponsor_id': self.sponsor_id,
            'title': self.title,
            'description': self.description,
            'promotion_type': self.promotion_type,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'coupon_code': self.coupon_code,
            'external_link': self.external_link,
            'terms': self.terms,
            'image_url': self.image_url,
            'is_featured': bool(self.is_featured),
            'status': self.status,
            'approval_status': self.approval_status,
            'approved_by': self.approved_by,
            'approved_at': _iso(self.approved_at),
            'approval_notes': self.approval_notes,
            'publish_to_site': bool(self.publish_to_site),
            'publish_to_slack': bool(self.publish_to_slack),
            'slack_channel': self.slack_channel,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        if include_sponsor and self.sponsor is not None:
            payload['sponsors'] = {'name': self.sponsor.name, 'slug': self.sponsor.slug}
        return payload


class Invitation(db.Model):
    """Single-use invitation token."""
    __tablename__ = 'invitations'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    email = db.Column(db.String(255), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False)
    sponsor_id = db.Column(db.String(36), db.ForeignKey('sponsors.id', ondelete='SET NULL'))
    token = db.Column(db.String(128), unique=True, nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    accepted_at = db.Column(db.DateTime(timezone=True))
    created_by = db.Column(db.String(36))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    sponsor = db.relationship('Sponsor', lazy=True)

    def is_expired(self, now: datetime | None = None) -> bool:
        now = _as_utc(now) or _utcnow()
        return _as_utc(self.expires_at) < now

    @property
    def is_accepted(self) -> bool:
        return self.accepted_at is not None

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'role': self.role,
            'sponsor_id': self.sponsor_id,
            'token': self.token,
            'expires_at': _iso(self.expires_at),
            'accepted_at': _iso(self.accepted_at),
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
        }


__all__ = [
    'db', 'Profile', 'Sponsor', 'SponsorAdmin', 'Promotion', 'Invitation',
    'PROFILE_ROLES', 'SPONSOR_STATUSES', 'PROMOTION_TYPES', 'PROMOTION_STATUSES', 'APPROVAL_STATUSES',
    '_as_utc', '_utcnow', '_iso',
]
