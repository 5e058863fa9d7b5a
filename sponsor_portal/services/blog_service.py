"""Sponsor news posts managed by super admins."""
import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from sponsor_portal.errors import Conflict, NotFound
from sponsor_portal.models.content import BlogPost, BlogPostSponsor
from sponsor_portal.models.portal import Sponsor
from sponsor_portal.schemas import BlogPostSchema
from sponsor_portal.utils.slug import generate_slug, generate_unique_slug

logger = logging.getLogger(__name__)


def _existing_slugs(session, exclude_id=None) -> set[str]:
    query = session.query(BlogPost.slug)
    if exclude_id:
        query = query.filter(BlogPost.id != exclude_id)
    return {row[0] for row in query.all()}


def _set_sponsors(session, post: BlogPost, sponsor_ids: list[str]) -> None:
    known = {
        row[0] for row in session.query(Sponsor.id).filter(Sponsor.id.in_(sponsor_ids)).all()
    } if sponsor_ids else set()
    missing = [sid for sid in sponsor_ids if sid not in known]
    if missing:
        raise NotFound(f"Unknown sponsor id(s): {', '.join(missing)}")
    current = {link.sponsor_id: link for link in post.sponsor_links}
    post.sponsor_links = [
        current.get(sid) or BlogPostSponsor(sponsor_id=sid) for sid in dict.fromkeys(sponsor_ids)
    ]


def list_posts(session, status: str | None = None) -> list[BlogPost]:
    query = session.query(BlogPost)
    if status:
        query = query.filter(BlogPost.status == status)
    return query.order_by(BlogPost.created_at.desc()).all()


def save_post(session, author_id: str, data: BlogPostSchema, post_id: str | None = None) -> tuple[BlogPost, bool]:
    """Create or update a post.  Returns (post, newly_published)."""
    if post_id:
        post = session.get(BlogPost, post_id)
        if post is None:
            raise NotFound('Blog post not found')
    else:
        post = BlogPost(author_id=author_id)

    existing = _existing_slugs(session, exclude_id=post.id)
    requested = generate_slug(data.slug or '')
    if requested and requested in existing:
        raise Conflict(f'Slug "{requested}" is already in use')
    post.slug = requested or post.slug or generate_unique_slug(data.title, existing, fallback='post')

    post.title = data.title
    post.excerpt = data.excerpt
    post.content = data.content
    post.featured_image_url = data.featured_image_url
    was_published = post.published_at is not None
    post.status = data.status
    newly_published = data.status == 'published' and not was_published
    if newly_published:
        post.published_at = datetime.now(timezone.utc)
    _set_sponsors(session, post, data.sponsor_ids)
    session.add(post)

    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise Conflict(f'Failed to save blog post: {exc.orig}') from exc
    logger.info('Saved blog post id=%s status=%s', post.id, post.status)
    return post, newly_published


def delete_post(session, post_id: str) -> None:
    post = session.get(BlogPost, post_id)
    if post is None:
        raise NotFound('Blog post not found')
    session.delete(post)
    session.commit()
