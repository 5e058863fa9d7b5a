from datetime import datetime, timedelta, timezone

import pytest
from flask import Flask
import sqlalchemy as sa

from fakes import FakeSupabase
from sponsor_portal.auth import init_request_state
from sponsor_portal.config import apply_to_app
from sponsor_portal.errors import register_error_handlers
from sponsor_portal.extensions import limiter
from sponsor_portal.models import content  # noqa: F401  (register tables for create_all)
from sponsor_portal.models.portal import Invitation, Profile, Promotion, Sponsor, SponsorAdmin, db
from sponsor_portal.routes.admin import admin_bp
from sponsor_portal.routes.cron import cron_bp
from sponsor_portal.routes.invitations import invitations_bp
from sponsor_portal.routes.public import auth_callback_bp, public_bp
from sponsor_portal.routes.slack import slack_bp
from sponsor_portal.routes.sponsor_admin import sponsor_admin_bp


@pytest.fixture
def supabase(monkeypatch):
    backend = FakeSupabase()
    monkeypatch.setattr('sponsor_portal.clients.create_supabase_client', backend.client_for)
    return backend


@pytest.fixture
def app(supabase):
    app = Flask(__name__)
    app.config.update(
        TESTING=True,
        SECRET_KEY='test-secret',
        SQLALCHEMY_DATABASE_URI='sqlite:///:memory:',
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        RATELIMIT_ENABLED=False,
        SUPABASE_URL='https://project.supabase.co',
        SUPABASE_ANON_KEY='anon-key',
        SUPABASE_SERVICE_ROLE_KEY='service-role-key',
        PUBLIC_APP_URL='https://portal.example.com',
        CRON_SECRET=None,
        SLACK_BOT_TOKEN=None,
        SLACK_WEBHOOK_SECRET_KEY=None,
        SLACK_DEFAULT_CHANNEL='sponsor-news',
        INVITATION_TTL_DAYS=7,
        NOTIFICATIONS_ASYNC=False,
    )
    apply_to_app(app)

    db.init_app(app)
    limiter.init_app(app)
    for blueprint in (admin_bp, sponsor_admin_bp, invitations_bp, slack_bp, cron_bp, public_bp):
        app.register_blueprint(blueprint, url_prefix='/api')
    app.register_blueprint(auth_callback_bp)
    register_error_handlers(app)
    init_request_state(app)

    ctx = app.app_context()
    ctx.push()
    db.create_all()

    yield app

    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sqlite_memory_engine():
    engine = sa.create_engine('sqlite:///:memory:')
    try:
        yield engine
    finally:
        engine.dispose()


# ---------------------------------------------------------------------------
# Row factories
# ---------------------------------------------------------------------------

def make_profile(user_id='user-1', email=None, role='sponsor_admin'):
    profile = Profile(id=user_id, email=email or f'{user_id}@example.com', role=role, display_name=user_id)
    db.session.add(profile)
    db.session.commit()
    return profile


def make_sponsor(name='Spoke & Chain', slug=None, status='active', **fields):
    sponsor = Sponsor(
        name=name,
        slug=slug or name.lower().replace(' & ', '-').replace(' ', '-'),
        status=status,
        category=fields.pop('category', ['bike_shop']),
        **fields,
    )
    db.session.add(sponsor)
    db.session.commit()
    return sponsor


def link_admin(sponsor, profile):
    link = SponsorAdmin(sponsor_id=sponsor.id, user_id=profile.id)
    db.session.add(link)
    db.session.commit()
    return link


def make_promotion(sponsor, **fields):
    now = datetime.now(timezone.utc)
    values = {
        'title': 'Spring tune-up',
        'description': '20% off a full service',
        'promotion_type': 'evergreen',
        'start_date': now - timedelta(days=1),
        'end_date': None,
        'status': 'active',
        'approval_status': 'approved',
    }
    values.update(fields)
    promotion = Promotion(sponsor_id=sponsor.id, **values)
    db.session.add(promotion)
    db.session.commit()
    return promotion


def make_invitation(email='new@example.com', role='sponsor_admin', sponsor=None, token='tok-123', **fields):
    invitation = Invitation(
        email=email,
        role=role,
        sponsor_id=sponsor.id if sponsor is not None else fields.pop('sponsor_id', None),
        token=token,
        expires_at=fields.pop('expires_at', datetime.now(timezone.utc) + timedelta(days=7)),
        **fields,
    )
    db.session.add(invitation)
    db.session.commit()
    return invitation


@pytest.fixture
def bearer(supabase):
    """Sign a user in with the fake auth service and return request headers."""
    def _bearer(user_id, email=None):
        token = supabase.sign_in(user_id, email or f'{user_id}@example.com')
        return {'Authorization': f'Bearer {token}'}
    return _bearer


@pytest.fixture
def super_admin(app, bearer):
    profile = make_profile('admin-1', 'admin@example.com', role='super_admin')
    return profile, bearer(profile.id, profile.email)


@pytest.fixture
def sponsor_admin(app, bearer):
    """A sponsor admin linked to an active sponsor."""
    sponsor = make_sponsor()
    profile = make_profile('owner-1', 'owner@spokeandchain.com')
    link_admin(sponsor, profile)
    return sponsor, profile, bearer(profile.id, profile.email)
