import io

from conftest import link_admin, make_profile, make_sponsor
from sponsor_portal.models.portal import Sponsor, SponsorAdmin, db


class TestUnlinkedSponsorAdmin:
    """A sponsor_admin profile with no sponsor_admins row gets nothing."""

    def test_get_sponsor_is_404(self, client, bearer):
        make_profile('orphan')
        res = client.get('/api/sponsor-admin/get-sponsor', headers=bearer('orphan'))
        assert res.status_code == 404
        assert res.get_json()['error'] == 'No sponsor associated with your account'

    def test_writes_are_403(self, client, bearer):
        make_profile('orphan')
        make_sponsor()
        headers = bearer('orphan')

        res = client.post('/api/sponsor-admin/update-profile', json={'category': ['bike_shop']}, headers=headers)
        assert res.status_code == 403

        res = client.post('/api/sponsor-admin/promotions/create', json={
            'title': 't', 'description': 'd', 'promotion_type': 'evergreen',
        }, headers=headers)
        assert res.status_code == 403

    def test_team_members_is_404(self, client, bearer):
        make_profile('orphan')
        assert client.get('/api/sponsor-admin/team-members', headers=bearer('orphan')).status_code == 404

    def test_no_session_is_401(self, client):
        assert client.get('/api/sponsor-admin/get-sponsor').status_code == 401

    def test_bogus_token_is_401(self, client):
        res = client.get('/api/sponsor-admin/get-sponsor', headers={'Authorization': 'Bearer forged'})
        assert res.status_code == 401


class TestSponsorProfile:

    def test_get_sponsor(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        res = client.get('/api/sponsor-admin/get-sponsor', headers=headers)
        assert res.get_json() == {
            'success': True,
            'sponsorId': sponsor.id,
            'sponsorName': 'Spoke & Chain',
            'sponsorSlug': 'spoke-chain',
        }

    def test_session_cookie_is_accepted(self, client, sponsor_admin, supabase):
        client.set_cookie('sb-access-token', 'token-owner-1')
        assert client.get('/api/sponsor-admin/get-sponsor').status_code == 200

    def test_update_profile_leaves_name_and_slug(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        res = client.post('/api/sponsor-admin/update-profile', json={
            'name': 'Hijacked',
            'slug': 'hijacked',
            'tagline': 'Family owned since 1982',
            'category': ['bike_shop', 'repair'],
            'website_url': 'https://spokeandchain.example.com',
            'contact_email': 'hello@spokeandchain.example.com',
        }, headers=headers)

        assert res.status_code == 200
        stored = db.session.get(Sponsor, sponsor.id)
        assert stored.name == 'Spoke & Chain'
        assert stored.slug == 'spoke-chain'
        assert stored.tagline == 'Family owned since 1982'
        assert stored.category == ['bike_shop', 'repair']

    def test_update_profile_validation(self, client, sponsor_admin):
        _, _, headers = sponsor_admin
        res = client.post('/api/sponsor-admin/update-profile', json={
            'category': [],
            'tagline': 'x' * 151,
            'website_url': 'ftp://files.example.com',
            'contact_email': 'not-an-email',
        }, headers=headers)

        assert res.status_code == 400
        errors = res.get_json()['errors']
        assert errors['category'] == 'At least one category is required'
        assert set(errors) >= {'tagline', 'website_url', 'contact_email'}


class TestTeam:

    def test_lists_members_with_profiles(self, client, sponsor_admin):
        sponsor, owner, headers = sponsor_admin
        link_admin(sponsor, make_profile('mechanic', 'mech@example.com'))

        res = client.get('/api/sponsor-admin/team-members', headers=headers)

        members = res.get_json()['teamMembers']
        assert {m['user_id'] for m in members} == {owner.id, 'mechanic'}
        mechanic = next(m for m in members if m['user_id'] == 'mechanic')
        assert mechanic['profiles']['email'] == 'mech@example.com'

    def test_remove_member(self, client, sponsor_admin):
        sponsor, _, headers = sponsor_admin
        link_admin(sponsor, make_profile('mechanic'))

        res = client.delete('/api/sponsor-admin/team-members?userId=mechanic', headers=headers)

        assert res.status_code == 200
        assert SponsorAdmin.query.filter_by(user_id='mechanic').count() == 0

    def test_cannot_remove_self(self, client, sponsor_admin):
        _, owner, headers = sponsor_admin
        res = client.delete(f'/api/sponsor-admin/team-members?userId={owner.id}', headers=headers)
        assert res.status_code == 403

    def test_cannot_remove_other_sponsors_member(self, client, sponsor_admin):
        _, _, headers = sponsor_admin
        link_admin(make_sponsor('Other Shop'), make_profile('outsider'))
        res = client.delete('/api/sponsor-admin/team-members?userId=outsider', headers=headers)
        assert res.status_code == 404
        assert SponsorAdmin.query.filter_by(user_id='outsider').count() == 1


class TestUploads:

    def test_upload_logo(self, client, sponsor_admin, supabase):
        sponsor, _, headers = sponsor_admin
        res = client.post(
            '/api/sponsor-admin/upload-logo',
            data={'logo': (io.BytesIO(b'\x89PNG...'), 'logo.png', 'image/png')},
            headers=headers,
            content_type='multipart/form-data',
        )

        assert res.status_code == 200
        url = res.get_json()['logoUrl']
        assert url.startswith(f'https://storage.example.com/sponsor-logos/sponsor-logos/{sponsor.id}/')
        assert url.endswith('.png')
        assert db.session.get(Sponsor, sponsor.id).logo_url == url
        assert 'service-role-key' in supabase.keys_used

    def test_rejects_wrong_type(self, client, sponsor_admin):
        _, _, headers = sponsor_admin
        res = client.post(
            '/api/sponsor-admin/upload-logo',
            data={'logo': (io.BytesIO(b'GIF89a'), 'logo.gif', 'image/gif')},
            headers=headers,
            content_type='multipart/form-data',
        )
        assert res.status_code == 400
        assert res.get_json()['error'].startswith('Invalid file type')

    def test_rejects_large_file(self, client, sponsor_admin):
        _, _, headers = sponsor_admin
        res = client.post(
            '/api/sponsor-admin/upload-image',
            data={'image': (io.BytesIO(b'0' * (5 * 1024 * 1024 + 1)), 'big.jpg', 'image/jpeg')},
            headers=headers,
            content_type='multipart/form-data',
        )
        assert res.status_code == 400
        assert res.get_json()['error'] == 'File too large. Maximum size: 5MB'

    def test_missing_file(self, client, sponsor_admin):
        _, _, headers = sponsor_admin
        res = client.post('/api/sponsor-admin/upload-image', data={}, headers=headers)
        assert res.status_code == 400
        assert res.get_json()['error'] == 'No file provided'

    def test_upload_image(self, client, sponsor_admin, supabase):
        sponsor, _, headers = sponsor_admin
        res = client.post(
            '/api/sponsor-admin/upload-image',
            data={'image': (io.BytesIO(b'GIF89a'), 'promo.gif', 'image/gif')},
            headers=headers,
            content_type='multipart/form-data',
        )
        assert res.status_code == 200
        assert res.get_json()['imageUrl'].startswith(f'https://storage.example.com/promotion-images/{sponsor.id}/')
        assert any(bucket == 'promotion-images' for bucket, _ in supabase.objects)

    def test_storage_failure_is_500(self, client, sponsor_admin, supabase):
        _, _, headers = sponsor_admin
        supabase.fail_upload = 'bucket not found'
        res = client.post(
            '/api/sponsor-admin/upload-image',
            data={'image': (io.BytesIO(b'GIF89a'), 'promo.gif', 'image/gif')},
            headers=headers,
            content_type='multipart/form-data',
        )
        assert res.status_code == 500
        assert 'bucket not found' in res.get_json()['error']
