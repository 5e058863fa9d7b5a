"""Request payload schemas.

Empty strings are treated as "not provided" for every optional field, and
validation failures are reported per field through ``ValidationFailed``.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional
from urllib.parse import urlparse

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from sponsor_portal.errors import ValidationFailed

Role = Literal['super_admin', 'sponsor_admin']
PromotionType = Literal['evergreen', 'time_limited', 'coupon_code', 'external_link']
PromotionStatus = Literal['draft', 'active', 'expired', 'archived', 'pending_approval']
SponsorStatus = Literal['pending', 'active', 'inactive']
BlogStatus = Literal['draft', 'published', 'archived']


def _check_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    parsed = urlparse(value)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValueError('Invalid URL')
    return value


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _FormModel(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True, populate_by_name=True)

    @model_validator(mode='before')
    @classmethod
    def _blank_to_none(cls, data):
        if isinstance(data, dict):
            return {
                key: (None if isinstance(value, str) and not value.strip() else value)
                for key, value in data.items()
            }
        return data


# ─── Sponsors ────────────────────────────────────────────────────────────────

class SponsorUpdateSchema(_FormModel):
    """Fields a sponsor admin may change on their own sponsor."""

    tagline: Optional[str] = Field(None, max_length=150)
    description: Optional[str] = Field(None, max_length=2000)
    category: List[str] = Field(..., min_length=1)
    website_url: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = None
    address_street: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_zip: Optional[str] = None
    social_instagram: Optional[str] = None
    social_facebook: Optional[str] = None
    social_strava: Optional[str] = None
    social_twitter: Optional[str] = None

    @field_validator('category', mode='before')
    @classmethod
    def _category_required(cls, value):
        if value is None or value == []:
            raise ValueError('At least one category is required')
        return value

    @field_validator(
        'website_url', 'social_instagram', 'social_facebook', 'social_strava', 'social_twitter',
    )
    @classmethod
    def _urls(cls, value):
        return _check_url(value)


class SponsorSchema(SponsorUpdateSchema):
    """Full sponsor record, as managed by super admins."""

    name: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = Field(None, max_length=220)
    status: SponsorStatus = 'pending'
    logo_url: Optional[str] = None
    banner_url: Optional[str] = None

    @field_validator('name', mode='before')
    @classmethod
    def _name_required(cls, value):
        if value is None:
            raise ValueError('Name is required')
        return value


# ─── Promotions ──────────────────────────────────────────────────────────────

class PromotionSchema(_FormModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    promotion_type: PromotionType
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = Field(None, validate_default=True)
    coupon_code: Optional[str] = None
    external_link: Optional[str] = None
    terms: Optional[str] = None
    image_url: Optional[str] = None
    is_featured: bool = False
    status: Optional[PromotionStatus] = None

    @field_validator('title', 'description', mode='before')
    @classmethod
    def _required_text(cls, value, info: ValidationInfo):
        if value is None:
            raise ValueError(f"{info.field_name.capitalize()} is required")
        return value

    @field_validator('start_date')
    @classmethod
    def _start_utc(cls, value):
        return _utc(value)

    @field_validator('end_date')
    @classmethod
    def _end_date_rules(cls, value, info: ValidationInfo):
        value = _utc(value)
        if info.data.get('promotion_type') == 'time_limited' and value is None:
            raise ValueError('End date is required for time-limited promotions')
        start = info.data.get('start_date')
        if value is not None and start is not None and not start < value:
            raise ValueError('End date must be after start date')
        return value

    @field_validator('external_link', 'image_url')
    @classmethod
    def _urls(cls, value):
        return _check_url(value)


class AdminPromotionSchema(PromotionSchema):
    """Super admin promotion payload; may target any sponsor and publish directly."""

    sponsor_id: str
    status: PromotionStatus = 'active'
    publish_to_site: bool = True
    publish_to_slack: bool = False
    slack_channel: Optional[str] = None


class AdminPromotionUpdateSchema(_FormModel):
    """Super admin edit; only the fields present in the payload are applied."""

    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    promotion_type: Optional[PromotionType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    coupon_code: Optional[str] = None
    external_link: Optional[str] = None
    terms: Optional[str] = None
    image_url: Optional[str] = None
    is_featured: Optional[bool] = None
    status: Optional[PromotionStatus] = None
    publish_to_site: Optional[bool] = None
    publish_to_slack: Optional[bool] = None
    slack_channel: Optional[str] = None

    @field_validator('title', 'description', 'promotion_type', 'is_featured', 'status',
                     'publish_to_site', 'publish_to_slack', mode='before')
    @classmethod
    def _not_cleared(cls, value, info: ValidationInfo):
        if value is None:
            raise ValueError(f"{info.field_name.replace('_', ' ').capitalize()} is required")
        return value

    @field_validator('start_date', 'end_date')
    @classmethod
    def _dates_utc(cls, value):
        return _utc(value)

    @field_validator('external_link', 'image_url')
    @classmethod
    def _urls(cls, value):
        return _check_url(value)


class StatusChangeRequest(_FormModel):
    promotion_id: str = Field(..., validation_alias=AliasChoices('promotionId', 'promotion_id'))
    new_status: Literal['draft', 'active', 'expired', 'archived'] = Field(
        ..., validation_alias=AliasChoices('newStatus', 'new_status'),
    )


# ─── Blog ────────────────────────────────────────────────────────────────────

class BlogPostSchema(_FormModel):
    title: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = None
    excerpt: Optional[str] = Field(None, max_length=500)
    content: str = Field(..., min_length=1)
    featured_image_url: Optional[str] = None
    status: BlogStatus = 'draft'
    sponsor_ids: List[str] = Field(default_factory=list)

    @field_validator('featured_image_url')
    @classmethod
    def _urls(cls, value):
        return _check_url(value)


# ─── Invitations ─────────────────────────────────────────────────────────────

class InvitationRequest(_FormModel):
    email: EmailStr
    role: Role
    sponsor_id: Optional[str] = Field(
        None, validation_alias=AliasChoices('sponsorId', 'sponsor_id'), validate_default=True,
    )
    sponsor_name: Optional[str] = Field(None, validation_alias=AliasChoices('sponsorName', 'sponsor_name'))
    admin_name: Optional[str] = Field(None, validation_alias=AliasChoices('adminName', 'admin_name'))

    @field_validator('sponsor_id')
    @classmethod
    def _sponsor_required(cls, value, info: ValidationInfo):
        if info.data.get('role') == 'sponsor_admin' and not value:
            raise ValueError('Sponsor is required for sponsor admin invitations')
        return value


class AcceptInvitationRequest(_FormModel):
    token: str
    user_id: str = Field(..., validation_alias=AliasChoices('userId', 'user_id'))
    email: Optional[str] = None
    # Accepted for compatibility; the invitation row is authoritative for both
    role: Optional[str] = None
    sponsor_id: Optional[str] = Field(None, validation_alias=AliasChoices('sponsorId', 'sponsor_id'))


class ApprovalRequest(_FormModel):
    promotion_id: str = Field(..., validation_alias=AliasChoices('promotionId', 'promotion_id'))
    action: Literal['approve', 'reject']
    publish_to_site: bool = Field(False, validation_alias=AliasChoices('publishToSite', 'publish_to_site'))
    publish_to_slack: bool = Field(False, validation_alias=AliasChoices('publishToSlack', 'publish_to_slack'))
    is_featured: bool = Field(False, validation_alias=AliasChoices('isFeatured', 'is_featured'))
    slack_channel: Optional[str] = Field(None, validation_alias=AliasChoices('slackChannel', 'slack_channel'))
    approval_notes: Optional[str] = Field(None, validation_alias=AliasChoices('approvalNotes', 'approval_notes'))


class RoleAssignmentRequest(_FormModel):
    user_id: str = Field(..., validation_alias=AliasChoices('userId', 'user_id'))
    role: Role
    sponsor_id: Optional[str] = Field(
        None, validation_alias=AliasChoices('sponsorId', 'sponsor_id'), validate_default=True,
    )

    @field_validator('sponsor_id')
    @classmethod
    def _sponsor_required(cls, value, info: ValidationInfo):
        if info.data.get('role') == 'sponsor_admin' and not value:
            raise ValueError('Sponsor is required for sponsor admin role')
        return value


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _error_message(error: dict) -> str:
    ctx_error = (error.get('ctx') or {}).get('error')
    if ctx_error is not None:
        return str(ctx_error)
    message = error.get('msg', 'Invalid value')
    if message.startswith('Value error, '):
        return message[len('Value error, '):]
    return message


def _alias_map(schema: type[BaseModel]) -> dict[str, str]:
    """Map every accepted input key back to its field name."""
    names: dict[str, str] = {}
    for name, info in schema.model_fields.items():
        alias = info.validation_alias
        choices = alias.choices if isinstance(alias, AliasChoices) else [alias]
        for choice in choices:
            if isinstance(choice, str):
                names[choice] = name
    return names


def validation_errors(exc: ValidationError, schema: type[BaseModel] | None = None) -> dict[str, str]:
    """Flatten a pydantic ValidationError into {field: first message}."""
    aliases = _alias_map(schema) if schema is not None else {}
    errors: dict[str, str] = {}
    for error in exc.errors():
        loc = error.get('loc') or ('__root__',)
        field = str(loc[0])
        errors.setdefault(aliases.get(field, field), _error_message(error))
    return errors


def parse_payload(schema: type[BaseModel], data: dict | None, message: str = 'Validation failed'):
    """Validate ``data`` against ``schema`` or raise ValidationFailed naming each field."""
    try:
        return schema.model_validate(data or {})
    except ValidationError as exc:
        errors = validation_errors(exc, schema)
        raise ValidationFailed(message, errors=errors) from exc
