"""Image uploads to Supabase storage buckets."""
import logging
import secrets
import time

from sqlalchemy.exc import SQLAlchemyError

from sponsor_portal.errors import Internal, NotFound, ValidationFailed
from sponsor_portal.models.portal import Sponsor

logger = logging.getLogger(__name__)

LOGO_BUCKET = 'sponsor-logos'
PROMOTION_IMAGE_BUCKET = 'promotion-images'
MAX_FILE_SIZE = 5 * 1024 * 1024
LOGO_TYPES = ('image/jpeg', 'image/jpg', 'image/png', 'image/webp', 'image/svg+xml')
PROMOTION_IMAGE_TYPES = ('image/jpeg', 'image/jpg', 'image/png', 'image/webp', 'image/gif')


def _read_upload(file, allowed_types) -> tuple[bytes, str, str]:
    """Validate a werkzeug ``FileStorage`` and return (content, content_type, extension)."""
    if file is None or not file.filename:
        raise ValidationFailed('No file provided')
    content_type = (file.mimetype or '').lower()
    if content_type not in allowed_types:
        raise ValidationFailed(f"Invalid file type. Allowed types: {', '.join(allowed_types)}")
    content = file.read()
    if len(content) > MAX_FILE_SIZE:
        raise ValidationFailed(f'File too large. Maximum size: {MAX_FILE_SIZE // 1024 // 1024}MB')
    extension = file.filename.rsplit('.', 1)[-1].lower() if '.' in file.filename else 'bin'
    return content, content_type, extension


def upload_sponsor_logo(service, sponsor_id: str, file) -> str:
    """Store a logo and point the sponsor at it.

    If the sponsor row cannot be updated the stored object is removed again.
    """
    session = service.session
    sponsor = session.get(Sponsor, sponsor_id)
    if sponsor is None:
        raise NotFound('Sponsor not found')
    content, content_type, extension = _read_upload(file, LOGO_TYPES)

    path = f"{LOGO_BUCKET}/{sponsor_id}/{int(time.time() * 1000)}.{extension}"
    service.upload_object(LOGO_BUCKET, path, content, content_type)
    public_url = service.public_url(LOGO_BUCKET, path)

    try:
        sponsor.logo_url = public_url
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception('Logo stored but sponsor %s not updated; removing %s', sponsor_id, path)
        service.remove_objects(LOGO_BUCKET, [path])
        raise Internal(f'Failed to update sponsor: {exc}') from exc

    logger.info('Uploaded logo for sponsor=%s path=%s', sponsor_id, path)
    return public_url


def upload_promotion_image(service, sponsor_id: str, file) -> str:
    """Store a promotion image; the caller saves the URL with the promotion."""
    content, content_type, extension = _read_upload(file, PROMOTION_IMAGE_TYPES)
    path = f"{sponsor_id}/{int(time.time() * 1000)}-{secrets.token_hex(3)}.{extension}"
    service.upload_object(PROMOTION_IMAGE_BUCKET, path, content, content_type)
    return service.public_url(PROMOTION_IMAGE_BUCKET, path)
