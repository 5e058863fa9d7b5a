"""
Supabase client handles for the portal.

Two separately constructed handles with distinct capabilities:

* ``SessionClient`` uses the anon key and can only resolve the caller's
  session.  It is what every handler talks to first.
* ``ServiceClient`` uses the service-role key and the privileged database
  session, both of which bypass Row Level Security.  It must never be built
  before the caller's role has been re-checked server-side, and it is never
  handed to anything that renders output for a browser.

A missing service-role key raises ``ServiceRoleNotConfigured``; there is no
fallback to the anon client.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from flask import current_app, g, request
from supabase import Client, create_client

from sponsor_portal.errors import Internal, ServiceRoleNotConfigured, UpstreamFailure
from sponsor_portal.models.portal import db

logger = logging.getLogger(__name__)

SESSION_COOKIE = 'sb-access-token'


@dataclass
class AuthUser:
    id: str
    email: Optional[str] = None
    user_metadata: Optional[dict] = None


def create_supabase_client(url: str, key: str) -> Client:
    """Build a raw Supabase client.  Not cached; auth state is per request."""
    return create_client(url, key)


def extract_access_token() -> Optional[str]:
    """Return the caller's access token from the Authorization header or cookie."""
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        token = auth_header.split(' ', 1)[1].strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE) or None


# ─── Anon-scoped client ──────────────────────────────────────────────────────

class SessionClient:
    def __init__(self, client: Client):
        self._client = client

    def get_user(self, access_token: Optional[str]) -> Optional[AuthUser]:
        """Resolve an access token to the authenticated user, or None."""
        if not access_token:
            return None
        try:
            response = self._client.auth.get_user(access_token)
        except Exception as exc:
            logger.info('Session lookup rejected: %s', exc)
            return None
        user = getattr(response, 'user', None)
        if user is None or not getattr(user, 'id', None):
            return None
        return AuthUser(
            id=str(user.id),
            email=getattr(user, 'email', None),
            user_metadata=getattr(user, 'user_metadata', None) or {},
        )

    def exchange_code_for_session(self, code: str) -> Optional[str]:
        """Exchange an OAuth/magic-link code for an access token."""
        try:
            response = self._client.auth.exchange_code_for_session({'auth_code': code})
        except Exception as exc:
            logger.warning('Auth code exchange failed: %s', exc)
            return None
        session = getattr(response, 'session', None)
        return getattr(session, 'access_token', None)


# ─── Service-role client ─────────────────────────────────────────────────────

class ServiceClient:
    """Privileged handle: service-role Supabase client plus the RLS-bypassing DB session."""

    def __init__(self, client: Client, session=None):
        self._client = client
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def invite_user_by_email(self, email: str, redirect_to: str, data: dict | None = None) -> Any:
        try:
            return self._client.auth.admin.invite_user_by_email(
                email,
                options={'data': data or {}, 'redirect_to': redirect_to},
            )
        except Exception as exc:
            raise UpstreamFailure(f'Invite email failed: {exc}') from exc

    def send_magic_link(self, email: str, redirect_to: str) -> Any:
        try:
            return self._client.auth.sign_in_with_otp({
                'email': email,
                'options': {'email_redirect_to': redirect_to, 'should_create_user': True},
            })
        except Exception as exc:
            raise UpstreamFailure(f'Magic link failed: {exc}') from exc

    def upload_object(self, bucket: str, path: str, content: bytes, content_type: str) -> None:
        try:
            self._client.storage.from_(bucket).upload(
                path=path,
                file=content,
                file_options={'content-type': content_type, 'cache-control': '3600', 'upsert': 'false'},
            )
        except Exception as exc:
            raise Internal(f'Failed to upload file: {exc}') from exc

    def public_url(self, bucket: str, path: str) -> str:
        return self._client.storage.from_(bucket).get_public_url(path)

    def remove_objects(self, bucket: str, paths: list[str]) -> None:
        try:
            self._client.storage.from_(bucket).remove(paths)
        except Exception:
            logger.exception('Failed to remove storage objects bucket=%s paths=%s', bucket, paths)


# ─── Request-scoped accessors ────────────────────────────────────────────────

def get_session_client() -> SessionClient:
    cached = g.get('_session_client')
    if cached is not None:
        return cached
    url = current_app.config.get('SUPABASE_URL')
    key = current_app.config.get('SUPABASE_ANON_KEY')
    if not url or not key:
        raise Internal('Supabase URL or anon key not configured')
    client = SessionClient(create_supabase_client(url, key))
    g._session_client = client
    return client


def get_service_client() -> ServiceClient:
    cached = g.get('_service_client')
    if cached is not None:
        return cached
    url = current_app.config.get('SUPABASE_URL')
    key = current_app.config.get('SUPABASE_SERVICE_ROLE_KEY')
    if not key:
        raise ServiceRoleNotConfigured()
    if not url:
        raise Internal('Supabase URL not configured')
    client = ServiceClient(create_supabase_client(url, key))
    g._service_client = client
    return client
