from datetime import datetime, timedelta, timezone

import pytest

from conftest import link_admin, make_profile, make_promotion, make_sponsor
from sponsor_portal.models.portal import Promotion, _as_utc, db
from sponsor_portal.services import email_service as email_module
from sponsor_portal.services.email_service import EmailResult


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    def _send(recipients, title, sponsor_name, approval_url, description=None):
        sent.append({'recipients': recipients, 'title': title, 'sponsor': sponsor_name, 'url': approval_url})
        return EmailResult(success=True, provider='test')

    monkeypatch.setattr(email_module.email_service, 'send_promotion_pending', _send)
    return sent


def _promotion_body(**overrides):
    body = {
        'title': 'Free chain wax',
        'description': 'With any drivetrain service',
        'promotion_type': 'evergreen',
    }
    body.update(overrides)
    return body


class TestSponsorAdminPromotions:

    def test_create_forces_pending_and_unfeatured(self, client, sponsor_admin, super_admin, sent_emails):
        sponsor, owner, headers = sponsor_admin

        res = client.post(
            '/api/sponsor-admin/promotions/create',
            json=_promotion_body(is_featured=True, status='active'),
            headers=headers,
        )

        assert res.status_code == 200
        promotion = res.get_json()['promotion']
        assert promotion['status'] == 'pending_approval'
        assert promotion['approval_status'] == 'pending'
        assert promotion['is_featured'] is False
        assert promotion['sponsor_id'] == sponsor.id
        assert promotion['created_by'] == owner.id

        (email,) = sent_emails
        assert email['recipients'] == ['admin@example.com']
        assert email['sponsor'] == sponsor.name
        assert email['url'] == f"https://portal.example.com/admin/promotions/{promotion['id']}/approve"

    def test_create_succeeds_when_notification_fails(self, client, sponsor_admin, monkeypatch):
        _, _, headers = sponsor_admin

        def _explode(*args, **kwargs):
            raise RuntimeError('mail relay down')

        monkeypatch.setattr(email_module.email_service, 'send_promotion_pending', _explode)
        res = client.post('/api/sponsor-admin/promotions/create', json=_promotion_body(), headers=headers)

        assert res.status_code == 200
        assert Promotion.query.count() == 1

    def test_create_validates_payload(self, client, sponsor_admin):
        _, _, headers = sponsor_admin
        res = client.post(
            '/api/sponsor-admin/promotions/create',
            json=_promotion_body(promotion_type='time_limited', title=''),
            headers=headers,
        )
        assert res.status_code == 400
        errors = res.get_json()['errors']
        assert errors['title'] == 'Title is required'
        assert errors['end_date'] == 'End date is required for time-limited promotions'

    def test_end_before_start_is_rejected(self, client, sponsor_admin):
        _, _, headers = sponsor_admin
        res = client.post(
            '/api/sponsor-admin/promotions/create',
            json=_promotion_body(
                promotion_type='time_limited',
                start_date='2026-05-10T00:00:00Z',
                end_date='2026-05-01T00:00:00Z',
            ),
            headers=headers,
        )
        assert res.status_code == 400
        assert res.get_json()['errors']['end_date'] == 'End date must be after start date'

    def test_update_keeps_stored_featured_flag(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        promotion = make_promotion(sponsor, is_featured=False)

        res = client.post('/api/sponsor-admin/promotions/update', json={
            'promotionId': promotion.id,
            **_promotion_body(title='New title', is_featured=True),
        }, headers=headers)

        assert res.status_code == 200
        stored = db.session.get(Promotion, promotion.id)
        assert stored.title == 'New title'
        assert stored.is_featured is False

    def test_update_keeps_featured_true(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        promotion = make_promotion(sponsor, is_featured=True)

        res = client.put('/api/sponsor-admin/promotions/update', json={
            'id': promotion.id,
            **_promotion_body(is_featured=False),
        }, headers=headers)

        assert res.status_code == 200
        assert db.session.get(Promotion, promotion.id).is_featured is True

    def test_past_end_date_without_start_is_rejected(self, client, sponsor_admin):
        _, _, headers = sponsor_admin
        ended = (datetime.now(timezone.utc) - timedelta(days=2)).isoformat()
        res = client.post(
            '/api/sponsor-admin/promotions/create',
            json=_promotion_body(promotion_type='time_limited', end_date=ended),
            headers=headers,
        )
        assert res.status_code == 400
        assert res.get_json()['errors']['end_date'] == 'End date must be after start date'
        assert Promotion.query.count() == 0

    def test_update_keeps_unsent_image_and_start(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        started = datetime.now(timezone.utc) - timedelta(days=10)
        promotion = make_promotion(sponsor, start_date=started, image_url='https://cdn.example.com/wax.png')

        res = client.post('/api/sponsor-admin/promotions/update', json={
            'promotionId': promotion.id, **_promotion_body(title='Chain wax, again'),
        }, headers=headers)

        assert res.status_code == 200
        stored = db.session.get(Promotion, promotion.id)
        assert stored.title == 'Chain wax, again'
        assert stored.image_url == 'https://cdn.example.com/wax.png'
        assert abs(_as_utc(stored.start_date) - started) < timedelta(seconds=1)

    def test_update_checks_end_date_against_stored_start(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        promotion = make_promotion(sponsor, start_date=datetime.now(timezone.utc) - timedelta(days=1))
        ended = (datetime.now(timezone.utc) - timedelta(days=3)).isoformat()

        res = client.post('/api/sponsor-admin/promotions/update', json={
            'promotionId': promotion.id, **_promotion_body(promotion_type='time_limited', end_date=ended),
        }, headers=headers)

        assert res.status_code == 400
        assert res.get_json()['errors']['end_date'] == 'End date must be after start date'
        assert db.session.get(Promotion, promotion.id).end_date is None

    def test_cannot_touch_other_sponsors_promotion(self, client, sponsor_admin):
        _, _, headers = sponsor_admin
        other = make_sponsor('Other Shop')
        promotion = make_promotion(other)

        res = client.post('/api/sponsor-admin/promotions/update', json={
            'promotionId': promotion.id, **_promotion_body(),
        }, headers=headers)
        assert res.status_code == 403
        assert res.get_json()['error'] == 'You do not have permission to update this promotion'

        res = client.post('/api/sponsor-admin/promotions/delete', json={'promotionId': promotion.id}, headers=headers)
        assert res.status_code == 403
        assert db.session.get(Promotion, promotion.id) is not None

    def test_unknown_promotion_is_404(self, client, sponsor_admin):
        _, _, headers = sponsor_admin
        res = client.post('/api/sponsor-admin/promotions/toggle-status', json={
            'promotionId': 'missing', 'newStatus': 'archived',
        }, headers=headers)
        assert res.status_code == 404

    def test_unapproved_promotion_cannot_be_activated(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        promotion = make_promotion(sponsor, status='pending_approval', approval_status='pending')

        res = client.post('/api/sponsor-admin/promotions/toggle-status', json={
            'promotionId': promotion.id, 'newStatus': 'active',
        }, headers=headers)

        assert res.status_code == 403
        assert db.session.get(Promotion, promotion.id).status == 'pending_approval'

    def test_approved_promotion_can_be_paused_and_resumed(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        promotion = make_promotion(sponsor)

        for new_status in ('draft', 'active'):
            res = client.post('/api/sponsor-admin/promotions/toggle-status', json={
                'promotionId': promotion.id, 'newStatus': new_status,
            }, headers=headers)
            assert res.status_code == 200
            assert res.get_json()['promotion']['status'] == new_status

    def test_toggle_rejects_pending_approval_as_target(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        promotion = make_promotion(sponsor)
        res = client.post('/api/sponsor-admin/promotions/toggle-status', json={
            'promotionId': promotion.id, 'newStatus': 'pending_approval',
        }, headers=headers)
        assert res.status_code == 400

    def test_list_returns_only_own_promotions(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        mine = make_promotion(sponsor)
        make_promotion(make_sponsor('Other Shop'))

        res = client.get('/api/sponsor-admin/promotions/list', headers=headers)

        assert [p['id'] for p in res.get_json()['promotions']] == [mine.id]

    def test_delete_own_promotion(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        promotion = make_promotion(sponsor)
        res = client.delete(f'/api/sponsor-admin/promotions/delete?promotionId={promotion.id}', headers=headers)
        assert res.status_code == 200
        assert Promotion.query.count() == 0


class TestApproval:

    def test_approve_with_publish_to_site_goes_live(self, client, super_admin):
        admin, headers = super_admin
        sponsor = make_sponsor()
        promotion = make_promotion(sponsor, status='pending_approval', approval_status='pending')

        res = client.post('/api/admin/promotions/approve', json={
            'promotionId': promotion.id,
            'action': 'approve',
            'publishToSite': True,
            'isFeatured': True,
            'approvalNotes': 'Looks good',
        }, headers=headers)

        assert res.status_code == 200
        assert res.get_json()['message'] == 'Promotion approved successfully'
        stored = db.session.get(Promotion, promotion.id)
        assert stored.approval_status == 'approved'
        assert stored.status == 'active'
        assert stored.is_featured is True
        assert stored.approved_by == admin.id
        assert stored.approved_at is not None
        assert stored.approval_notes == 'Looks good'

    def test_approve_without_publish_to_site_stays_pending(self, client, super_admin):
        _, headers = super_admin
        promotion = make_promotion(make_sponsor(), status='pending_approval', approval_status='pending')

        client.post('/api/admin/promotions/approve', json={
            'promotionId': promotion.id, 'action': 'approve',
        }, headers=headers)

        stored = db.session.get(Promotion, promotion.id)
        assert stored.approval_status == 'approved'
        assert stored.status == 'pending_approval'

    def test_reject_only_touches_approval_fields(self, client, super_admin):
        admin, headers = super_admin
        promotion = make_promotion(make_sponsor(), status='pending_approval', approval_status='pending')

        res = client.post('/api/admin/promotions/approve', json={
            'promotionId': promotion.id, 'action': 'reject', 'approvalNotes': 'Needs a coupon code',
        }, headers=headers)

        assert res.get_json()['message'] == 'Promotion rejected'
        stored = db.session.get(Promotion, promotion.id)
        assert stored.approval_status == 'rejected'
        assert stored.status == 'pending_approval'
        assert stored.approved_by == admin.id
        assert stored.approval_notes == 'Needs a coupon code'

    def test_invalid_action(self, client, super_admin):
        _, headers = super_admin
        res = client.post('/api/admin/promotions/approve', json={
            'promotionId': 'p', 'action': 'maybe',
        }, headers=headers)
        assert res.status_code == 400

    def test_sponsor_admin_cannot_approve(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        promotion = make_promotion(sponsor, status='pending_approval', approval_status='pending')

        res = client.post('/api/admin/promotions/approve', json={
            'promotionId': promotion.id, 'action': 'approve', 'publishToSite': True,
        }, headers=headers)

        assert res.status_code == 403
        assert db.session.get(Promotion, promotion.id).approval_status == 'pending'

    def test_approve_with_slack_posts_to_channel(self, app, client, super_admin, monkeypatch):
        _, headers = super_admin
        app.config['SLACK_BOT_TOKEN'] = 'xoxb-test'
        promotion = make_promotion(make_sponsor(), status='pending_approval', approval_status='pending')
        posted = []

        class _Response:
            status_code = 200

            def json(self):
                return {'ok': True, 'ts': '1700000000.000100'}

        def _post(url, **kwargs):
            posted.append((url, kwargs))
            return _Response()

        monkeypatch.setattr('sponsor_portal.services.slack_service.requests.post', _post)

        res = client.post('/api/admin/promotions/approve', json={
            'promotionId': promotion.id,
            'action': 'approve',
            'publishToSite': True,
            'publishToSlack': True,
            'slackChannel': 'deals',
        }, headers=headers)

        assert res.status_code == 200
        (url, kwargs) = posted[0]
        assert url == 'https://slack.com/api/chat.postMessage'
        assert kwargs['json']['channel'] == 'deals'
        assert kwargs['headers']['Authorization'] == 'Bearer xoxb-test'


class TestAdminPromotionManagement:

    def test_admin_create_is_approved_and_may_feature(self, client, super_admin):
        admin, headers = super_admin
        sponsor = make_sponsor()

        res = client.post('/api/admin/sponsors/promotions', json={
            'sponsor_id': sponsor.id, **_promotion_body(is_featured=True),
        }, headers=headers)

        assert res.status_code == 201
        promotion = res.get_json()['promotion']
        assert promotion['status'] == 'active'
        assert promotion['approval_status'] == 'approved'
        assert promotion['approved_by'] == admin.id
        assert promotion['is_featured'] is True

    def test_admin_draft_stays_pending(self, client, super_admin):
        _, headers = super_admin
        sponsor = make_sponsor()
        res = client.post('/api/admin/promotions/create', json={
            'sponsor_id': sponsor.id, 'status': 'draft', **_promotion_body(),
        }, headers=headers)
        promotion = res.get_json()['promotion']
        assert promotion['status'] == 'draft'
        assert promotion['approval_status'] == 'pending'

    def test_admin_create_for_unknown_sponsor(self, client, super_admin):
        _, headers = super_admin
        res = client.post('/api/admin/promotions/create', json={
            'sponsor_id': 'missing', **_promotion_body(),
        }, headers=headers)
        assert res.status_code == 404

    def test_list_requires_sponsor_id(self, client, super_admin):
        _, headers = super_admin
        assert client.get('/api/admin/sponsors/promotions', headers=headers).status_code == 400

    def test_list_includes_sponsor_summary(self, client, super_admin):
        _, headers = super_admin
        sponsor = make_sponsor()
        make_promotion(sponsor)
        res = client.get(f'/api/admin/sponsors/promotions?sponsorId={sponsor.id}', headers=headers)
        (promotion,) = res.get_json()['promotions']
        assert promotion['sponsors'] == {'name': sponsor.name, 'slug': sponsor.slug}

    def test_update_and_delete(self, client, super_admin):
        _, headers = super_admin
        sponsor = make_sponsor()
        promotion = make_promotion(sponsor)

        res = client.put('/api/admin/sponsors/promotions', json={
            'id': promotion.id, 'sponsor_id': sponsor.id, 'status': 'archived', **_promotion_body(is_featured=True),
        }, headers=headers)
        assert res.status_code == 200
        stored = db.session.get(Promotion, promotion.id)
        assert stored.status == 'archived'
        assert stored.is_featured is True

        res = client.delete(f'/api/admin/sponsors/promotions?id={promotion.id}', headers=headers)
        assert res.status_code == 200
        assert db.session.get(Promotion, promotion.id) is None

    def test_partial_update_keeps_unsent_fields(self, client, super_admin):
        _, headers = super_admin
        promotion = make_promotion(
            make_sponsor(),
            status='pending_approval',
            approval_status='pending',
            is_featured=True,
            image_url='https://cdn.example.com/tune-up.png',
        )

        res = client.put('/api/admin/sponsors/promotions', json={
            'id': promotion.id, 'title': 'Summer tune-up',
        }, headers=headers)

        assert res.status_code == 200
        stored = db.session.get(Promotion, promotion.id)
        assert stored.title == 'Summer tune-up'
        assert stored.status == 'pending_approval'
        assert stored.approval_status == 'pending'
        assert stored.is_featured is True
        assert stored.image_url == 'https://cdn.example.com/tune-up.png'
        assert stored.description == '20% off a full service'

    def test_update_cannot_clear_title(self, client, super_admin):
        _, headers = super_admin
        promotion = make_promotion(make_sponsor())
        res = client.put('/api/admin/sponsors/promotions', json={'id': promotion.id, 'title': ''}, headers=headers)
        assert res.status_code == 400
        assert res.get_json()['errors']['title'] == 'Title is required'

    def test_delete_by_promotion_id_query(self, client, super_admin):
        _, headers = super_admin
        promotion = make_promotion(make_sponsor())
        res = client.delete(f'/api/admin/sponsors/promotions?promotionId={promotion.id}', headers=headers)
        assert res.status_code == 200
        assert db.session.get(Promotion, promotion.id) is None


class TestPendingNotification:

    def test_notifies_all_super_admins(self, client, sent_emails):
        make_profile('admin-a', 'a@example.com', role='super_admin')
        make_profile('admin-b', 'b@example.com', role='super_admin')
        sponsor = make_sponsor()
        promotion = make_promotion(sponsor, status='pending_approval', approval_status='pending')

        res = client.post('/api/admin/notify-promotion-pending', json={
            'promotionId': promotion.id, 'sponsorId': sponsor.id,
        })

        assert res.status_code == 200
        data = res.get_json()
        assert sorted(data['admins']) == ['a@example.com', 'b@example.com']
        assert data['message'] == 'Notification sent to 2 super admin(s)'

    def test_missing_fields(self, client):
        res = client.post('/api/admin/notify-promotion-pending', json={'promotionId': 'p'})
        assert res.status_code == 400

    def test_no_super_admins_is_404(self, client, sent_emails):
        sponsor = make_sponsor()
        link_admin(sponsor, make_profile('owner'))
        promotion = make_promotion(sponsor)
        res = client.post('/api/admin/notify-promotion-pending', json={
            'promotionId': promotion.id, 'sponsorId': sponsor.id,
        })
        assert res.status_code == 404
        assert sent_emails == []

    def test_shared_secret_enforced(self, app, client):
        app.config['SLACK_WEBHOOK_SECRET_KEY'] = 's3cret'
        res = client.post('/api/admin/notify-promotion-pending', json={'promotionId': 'p', 'sponsorId': 's'})
        assert res.status_code == 401


class TestExpiry:

    def test_only_past_end_date_active_promotions_expire(self, client):
        from sponsor_portal.services.promotion_service import expire_stale_promotions

        sponsor = make_sponsor()
        now = datetime.now(timezone.utc)
        stale = make_promotion(sponsor, promotion_type='time_limited', end_date=now - timedelta(hours=1))
        current = make_promotion(sponsor, promotion_type='time_limited', end_date=now + timedelta(days=1))
        evergreen = make_promotion(sponsor)
        draft = make_promotion(sponsor, status='draft', end_date=now - timedelta(days=3))

        assert expire_stale_promotions(db.session, now) == 1

        assert db.session.get(Promotion, stale.id).status == 'expired'
        assert db.session.get(Promotion, current.id).status == 'active'
        assert db.session.get(Promotion, evergreen.id).status == 'active'
        assert db.session.get(Promotion, draft.id).status == 'draft'
