"""Per-request authenticated user/profile state.

Built by the auth decorators and stored on ``flask.g.user_state``; handlers
read the caller from here instead of from any process-wide global.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sponsor_portal.clients import AuthUser
from sponsor_portal.models.portal import Profile


@dataclass
class UserState:
    user: Optional[AuthUser] = None
    profile: Optional[Profile] = None
    sponsor_id: Optional[str] = None
    loading: bool = True

    def set_user(self, user: Optional[AuthUser]) -> 'UserState':
        self.user = user
        self.loading = False
        return self

    def set_profile(self, profile: Optional[Profile]) -> 'UserState':
        self.profile = profile
        self.loading = False
        return self

    def set_loading(self, loading: bool) -> 'UserState':
        self.loading = loading
        return self

    def reset(self) -> 'UserState':
        self.user = None
        self.profile = None
        self.sponsor_id = None
        self.loading = False
        return self

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    @property
    def role(self) -> Optional[str]:
        return self.profile.role if self.profile else None

    @property
    def is_super_admin(self) -> bool:
        return self.role == 'super_admin'
