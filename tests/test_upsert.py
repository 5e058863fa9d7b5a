from conftest import make_profile, make_sponsor
from sponsor_portal.models.portal import Profile, SponsorAdmin, db
from sponsor_portal.services.sponsor_service import link_exists, upsert_profile, upsert_sponsor_link


def test_link_upsert_is_idempotent(app):
    sponsor = make_sponsor()
    make_profile('u1')

    for _ in range(3):
        upsert_sponsor_link(db.session, sponsor.id, 'u1')
        db.session.commit()

    assert SponsorAdmin.query.filter_by(sponsor_id=sponsor.id, user_id='u1').count() == 1
    assert link_exists(db.session, sponsor.id, 'u1')


def test_profile_upsert_updates_in_place(app):
    upsert_profile(db.session, 'u1', 'first@example.com', 'sponsor_admin')
    db.session.commit()
    upsert_profile(db.session, 'u1', 'second@example.com', 'super_admin', display_name='Second')
    db.session.commit()

    profile = db.session.get(Profile, 'u1')
    assert Profile.query.count() == 1
    assert profile.email == 'second@example.com'
    assert profile.role == 'super_admin'
    assert profile.display_name == 'Second'
