"""Peripheral tables: blog posts, Slack settings/log and analytics events."""
from sponsor_portal.models.portal import db, _iso, _new_id, _utcnow


BLOG_STATUSES = ('draft', 'published', 'archived')
ANALYTICS_EVENT_TYPES = (
    'sponsor_view',
    'promotion_view',
    'promotion_click',
    'coupon_copy',
    'external_link_click',
)


class BlogPost(db.Model):
    __tablename__ = 'blog_posts'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(220), unique=True, nullable=False)
    excerpt = db.Column(db.String(500))
    content = db.Column(db.Text, nullable=False)
    featured_image_url = db.Column(db.Text)
    author_id = db.Column(db.String(36), db.ForeignKey('profiles.id'), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='draft')
    published_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    sponsor_links = db.relationship('BlogPostSponsor', backref='post', lazy=True, cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'slug': self.slug,
            'excerpt': self.excerpt,
            'content': self.content,
            'featured_image_url': self.featured_image_url,
            'author_id': self.author_id,
            'status': self.status,
            'published_at': _iso(self.published_at),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
            'sponsor_ids': [link.sponsor_id for link in self.sponsor_links],
        }


class BlogPostSponsor(db.Model):
    __tablename__ = 'blog_post_sponsors'
    __table_args__ = (
        db.UniqueConstraint('post_id', 'sponsor_id', name='uq_blog_post_sponsors_post_sponsor'),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    post_id = db.Column(db.String(36), db.ForeignKey('blog_posts.id', ondelete='CASCADE'), nullable=False)
    sponsor_id = db.Column(db.String(36), db.ForeignKey('sponsors.id', ondelete='CASCADE'), nullable=False)


class SlackConfig(db.Model):
    __tablename__ = 'slack_config'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    webhook_url = db.Column(db.Text, nullable=False)
    is_enabled = db.Column(db.Boolean, nullable=False, default=True)
    notify_new_promotion = db.Column(db.Boolean, nullable=False, default=True)
    notify_featured_promotion = db.Column(db.Boolean, nullable=False, default=True)
    notify_new_sponsor = db.Column(db.Boolean, nullable=False, default=True)
    notify_blog_post = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def allows(self, notification_type: str) -> bool:
        return bool(getattr(self, f'notify_{notification_type}', False))


class SlackNotification(db.Model):
    __tablename__ = 'slack_notifications'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    notification_type = db.Column(db.String(50), nullable=False)
    payload = db.Column(db.JSON, nullable=False, default=dict)
    status = db.Column(db.String(20))
    error_message = db.Column(db.Text)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    sent_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'notification_type': self.notification_type,
            'payload': self.payload,
            'status': self.status,
            'error_message': self.error_message,
            'attempts': self.attempts,
            'sent_at': _iso(self.sent_at),
            'created_at': _iso(self.created_at),
        }


class AnalyticsEvent(db.Model):
    __tablename__ = 'analytics_events'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    event_type = db.Column(db.String(50), nullable=False, index=True)
    sponsor_id = db.Column(db.String(36), db.ForeignKey('sponsors.id', ondelete='SET NULL'))
    promotion_id = db.Column(db.String(36), db.ForeignKey('promotions.id', ondelete='SET NULL'))
    event_metadata = db.Column('metadata', db.JSON)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'event_type': self.event_type,
            'sponsor_id': self.sponsor_id,
            'promotion_id': self.promotion_id,
            'metadata': self.event_metadata,
            'created_at': _iso(self.created_at),
        }
