"""Tests for the auth decorators in sponsor_portal/auth.py."""

from flask import jsonify

from conftest import link_admin, make_profile, make_sponsor
from sponsor_portal.auth import (
    get_user_state,
    mask_secret,
    require_session,
    require_shared_secret,
    require_sponsor_admin,
    require_super_admin,
)


class TestRequireSession:

    def test_sets_user_state(self, app, client, bearer):
        @app.route('/whoami')
        @require_session
        def whoami():
            state = get_user_state()
            return jsonify({'id': state.user_id, 'email': state.user.email})

        res = client.get('/whoami', headers=bearer('u1', 'u1@example.com'))
        assert res.get_json() == {'id': 'u1', 'email': 'u1@example.com'}

    def test_state_does_not_leak_between_requests(self, app, client, bearer):
        @app.route('/whoami-2')
        @require_session
        def whoami():
            return jsonify({'id': get_user_state().user_id})

        assert client.get('/whoami-2', headers=bearer('first')).get_json()['id'] == 'first'
        assert client.get('/whoami-2', headers=bearer('second')).get_json()['id'] == 'second'
        assert client.get('/whoami-2').status_code == 401

    def test_uses_anon_key_only(self, app, client, bearer, supabase):
        @app.route('/session-only')
        @require_session
        def session_only():
            return jsonify({'ok': True})

        client.get('/session-only', headers=bearer('u1'))
        assert supabase.keys_used == ['anon-key']


class TestRoleDecorators:

    def test_super_admin_role_is_read_from_profile(self, app, client, bearer, supabase):
        @app.route('/admin-only')
        @require_super_admin
        def admin_only():
            return jsonify({'role': get_user_state().role})

        make_profile('boss', role='super_admin')
        supabase.sign_in('boss')
        supabase.users_by_token['token-boss'].user_metadata = {'role': 'sponsor_admin'}
        res = client.get('/admin-only', headers={'Authorization': 'Bearer token-boss'})
        assert res.get_json() == {'role': 'super_admin'}

        make_profile('claims-admin', role='sponsor_admin')
        supabase.sign_in('claims-admin')
        supabase.users_by_token['token-claims-admin'].user_metadata = {'role': 'super_admin'}
        res = client.get('/admin-only', headers={'Authorization': 'Bearer token-claims-admin'})
        assert res.status_code == 403

    def test_sponsor_admin_gets_linked_sponsor(self, app, client, bearer):
        @app.route('/my-sponsor')
        @require_sponsor_admin
        def my_sponsor():
            return jsonify({'sponsor_id': get_user_state().sponsor_id})

        sponsor = make_sponsor()
        link_admin(sponsor, make_profile('owner'))
        res = client.get('/my-sponsor', headers=bearer('owner'))
        assert res.get_json() == {'sponsor_id': sponsor.id}

        make_profile('orphan')
        assert client.get('/my-sponsor', headers=bearer('orphan')).status_code == 403


class TestSharedSecret:

    def test_open_when_unset(self, app, client):
        @app.route('/machine')
        @require_shared_secret('MACHINE_SECRET')
        def machine():
            return jsonify({'ok': True})

        assert client.get('/machine').status_code == 200
        app.config['MACHINE_SECRET'] = 'abc'
        assert client.get('/machine').status_code == 401
        assert client.get('/machine', headers={'Authorization': 'Bearer abc'}).status_code == 200


def test_mask_secret():
    assert mask_secret(None) == '(none)'
    assert mask_secret('short') == 'sh...'
    assert mask_secret('abcdefghijkl') == 'abcd...ijkl'
