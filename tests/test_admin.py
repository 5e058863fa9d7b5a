import io

import pytest
from sqlalchemy.exc import OperationalError

from conftest import make_profile, make_sponsor
from sponsor_portal.models.content import BlogPost
from sponsor_portal.models.portal import Profile, Sponsor, SponsorAdmin, db


class TestAccess:

    @pytest.mark.parametrize('method, path', [
        ('get', '/api/admin/sponsors'),
        ('post', '/api/admin/sponsors'),
        ('get', '/api/admin/invitations'),
        ('post', '/api/admin/users/role'),
        ('get', '/api/admin/blog-posts'),
    ])
    def test_sponsor_admin_is_forbidden(self, client, sponsor_admin, method, path):
        _, _, headers = sponsor_admin
        res = getattr(client, method)(path, json={}, headers=headers)
        assert res.status_code == 403
        assert res.get_json()['error'] == 'Unauthorized - super admin only'

    def test_anonymous_is_401(self, client):
        assert client.get('/api/admin/sponsors').status_code == 401

    def test_session_without_profile_is_403(self, client, bearer):
        assert client.get('/api/admin/sponsors', headers=bearer('stranger')).status_code == 403

    def test_missing_service_key_is_500_after_session_check(self, app, client, super_admin):
        _, headers = super_admin
        app.config['SUPABASE_SERVICE_ROLE_KEY'] = None
        assert client.get('/api/admin/sponsors').status_code == 401
        res = client.get('/api/admin/sponsors', headers=headers)
        assert res.status_code == 500
        assert res.get_json()['error'] == 'Service role key not configured'

    def test_options_preflight_passes(self, client):
        assert client.options('/api/admin/sponsors').status_code in (200, 204)


class TestSponsors:

    def test_create_generates_slug(self, client, super_admin):
        _, headers = super_admin
        res = client.post('/api/admin/sponsors', json={
            'name': 'Bike Shop & Co.', 'category': ['bike_shop'], 'status': 'active',
        }, headers=headers)

        assert res.status_code == 201
        assert res.get_json()['sponsor']['slug'] == 'bike-shop-co'

    def test_create_dedupes_generated_slug(self, client, super_admin):
        _, headers = super_admin
        make_sponsor('Spoke & Chain')
        res = client.post('/api/admin/sponsors', json={'name': 'Spoke Chain', 'category': ['bike_shop']}, headers=headers)
        assert res.get_json()['sponsor']['slug'] == 'spoke-chain-2'

    def test_explicit_duplicate_slug_conflicts(self, client, super_admin):
        _, headers = super_admin
        make_sponsor('Spoke & Chain')
        res = client.post('/api/admin/sponsors', json={
            'name': 'Another', 'slug': 'spoke-chain', 'category': ['bike_shop'],
        }, headers=headers)
        assert res.status_code == 409

    def test_create_requires_name_and_category(self, client, super_admin):
        _, headers = super_admin
        res = client.post('/api/admin/sponsors', json={'name': '  '}, headers=headers)
        assert res.status_code == 400
        errors = res.get_json()['errors']
        assert errors['name'] == 'Name is required'
        assert 'category' in errors

    def test_list_filters_by_status(self, client, super_admin):
        _, headers = super_admin
        make_sponsor('Active One')
        make_sponsor('Pending One', status='pending')
        res = client.get('/api/admin/sponsors?status=pending', headers=headers)
        assert [s['name'] for s in res.get_json()['sponsors']] == ['Pending One']

    def test_update_and_delete(self, client, super_admin):
        _, headers = super_admin
        sponsor = make_sponsor()

        res = client.put(f'/api/admin/sponsors/{sponsor.id}', json={
            'name': 'Spoke & Chain Cycles', 'slug': 'spoke-chain-cycles', 'category': ['bike_shop'], 'status': 'inactive',
        }, headers=headers)
        assert res.status_code == 200
        stored = db.session.get(Sponsor, sponsor.id)
        assert stored.slug == 'spoke-chain-cycles'
        assert stored.status == 'inactive'

        assert client.delete(f'/api/admin/sponsors/{sponsor.id}', headers=headers).status_code == 200
        assert db.session.get(Sponsor, sponsor.id) is None
        assert client.delete(f'/api/admin/sponsors/{sponsor.id}', headers=headers).status_code == 404


class TestLogoUpload:

    def test_upload(self, client, super_admin):
        _, headers = super_admin
        sponsor = make_sponsor()
        res = client.post(
            '/api/admin/sponsors/upload-logo',
            data={'sponsorId': sponsor.id, 'logo': (io.BytesIO(b'<svg/>'), 'logo.svg', 'image/svg+xml')},
            headers=headers,
            content_type='multipart/form-data',
        )
        assert res.status_code == 200
        assert db.session.get(Sponsor, sponsor.id).logo_url == res.get_json()['logoUrl']

    def test_requires_sponsor_id(self, client, super_admin):
        _, headers = super_admin
        res = client.post(
            '/api/admin/sponsors/upload-logo',
            data={'logo': (io.BytesIO(b'x'), 'logo.png', 'image/png')},
            headers=headers,
            content_type='multipart/form-data',
        )
        assert res.status_code == 400

    def test_stored_object_removed_when_row_update_fails(self, client, super_admin, supabase, monkeypatch):
        _, headers = super_admin
        sponsor = make_sponsor()
        real_commit = db.session.commit

        def _failing_commit():
            raise OperationalError('UPDATE sponsors', {}, Exception('database is locked'))

        monkeypatch.setattr(db.session, 'commit', _failing_commit)
        res = client.post(
            '/api/admin/sponsors/upload-logo',
            data={'sponsorId': sponsor.id, 'logo': (io.BytesIO(b'png'), 'logo.png', 'image/png')},
            headers=headers,
            content_type='multipart/form-data',
        )
        monkeypatch.setattr(db.session, 'commit', real_commit)

        assert res.status_code == 500
        assert supabase.objects == {}
        (removal,) = supabase.calls_named('remove')
        assert removal[1] == 'sponsor-logos'


class TestRoles:

    def test_promote_to_sponsor_admin_links_sponsor(self, client, super_admin):
        _, headers = super_admin
        sponsor = make_sponsor()
        make_profile('rider', role='super_admin')

        res = client.post('/api/admin/users/role', json={
            'userId': 'rider', 'role': 'sponsor_admin', 'sponsorId': sponsor.id,
        }, headers=headers)

        assert res.status_code == 200
        assert db.session.get(Profile, 'rider').role == 'sponsor_admin'
        assert SponsorAdmin.query.filter_by(user_id='rider', sponsor_id=sponsor.id).count() == 1

    def test_sponsor_admin_role_needs_sponsor(self, client, super_admin):
        _, headers = super_admin
        make_profile('rider')
        res = client.post('/api/admin/users/role', json={'userId': 'rider', 'role': 'sponsor_admin'}, headers=headers)
        assert res.status_code == 400
        assert 'sponsor_id' in res.get_json()['errors']

    def test_unknown_profile(self, client, super_admin):
        _, headers = super_admin
        res = client.post('/api/admin/users/role', json={'userId': 'ghost', 'role': 'super_admin'}, headers=headers)
        assert res.status_code == 404


class TestBlog:

    def test_create_publish_notifies_once(self, client, super_admin, monkeypatch):
        admin, headers = super_admin
        sponsor = make_sponsor()
        notices = []
        monkeypatch.setattr(
            'sponsor_portal.routes.admin.dispatch',
            lambda label, func, *args: notices.append((label, args)),
        )

        res = client.post('/api/admin/blog-posts', json={
            'title': 'Spring Sponsor Round-up',
            'content': '<p>Lots of deals</p>',
            'status': 'published',
            'sponsor_ids': [sponsor.id],
        }, headers=headers)

        assert res.status_code == 201
        post = res.get_json()['post']
        assert post['slug'] == 'spring-sponsor-round-up'
        assert post['author_id'] == admin.id
        assert post['published_at'] is not None
        assert post['sponsor_ids'] == [sponsor.id]
        assert notices == [('slack-blog', ('blog_post', {'postId': post['id']}))]

        res = client.put(f"/api/admin/blog-posts/{post['id']}", json={
            'title': 'Spring Sponsor Round-up',
            'content': 'Edited',
            'status': 'published',
            'sponsor_ids': [sponsor.id],
        }, headers=headers)
        assert res.status_code == 200
        assert len(notices) == 1
        assert res.get_json()['post']['published_at'] == post['published_at']

    def test_unknown_sponsor_link(self, client, super_admin):
        _, headers = super_admin
        res = client.post('/api/admin/blog-posts', json={
            'title': 'News', 'content': 'Body', 'sponsor_ids': ['ghost'],
        }, headers=headers)
        assert res.status_code == 404
        assert BlogPost.query.count() == 0

    def test_duplicate_slug(self, client, super_admin):
        _, headers = super_admin
        client.post('/api/admin/blog-posts', json={'title': 'News', 'content': 'Body'}, headers=headers)
        res = client.post('/api/admin/blog-posts', json={'title': 'Other', 'slug': 'news', 'content': 'Body'}, headers=headers)
        assert res.status_code == 409

    def test_list_and_delete(self, client, super_admin):
        _, headers = super_admin
        created = client.post('/api/admin/blog-posts', json={'title': 'News', 'content': 'Body'}, headers=headers)
        post_id = created.get_json()['post']['id']

        res = client.get('/api/admin/blog-posts?status=draft', headers=headers)
        assert [p['id'] for p in res.get_json()['posts']] == [post_id]

        assert client.delete(f'/api/admin/blog-posts/{post_id}', headers=headers).status_code == 200
        assert BlogPost.query.count() == 0
