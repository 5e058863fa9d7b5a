"""initial portal schema

Revision ID: a1c3e5f7b9d1
Revises:
Create Date: 2025-01-14 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c3e5f7b9d1'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=120), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='sponsor_admin'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'])

    op.create_table(
        'sponsors',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=220), nullable=False),
        sa.Column('tagline', sa.String(length=150), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('logo_url', sa.Text(), nullable=True),
        sa.Column('banner_url', sa.Text(), nullable=True),
        sa.Column('category', sa.JSON(), nullable=False),
        sa.Column('website_url', sa.Text(), nullable=True),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('contact_phone', sa.String(length=50), nullable=True),
        sa.Column('address_street', sa.String(length=200), nullable=True),
        sa.Column('address_city', sa.String(length=120), nullable=True),
        sa.Column('address_state', sa.String(length=80), nullable=True),
        sa.Column('address_zip', sa.String(length=20), nullable=True),
        sa.Column('social_instagram', sa.Text(), nullable=True),
        sa.Column('social_facebook', sa.Text(), nullable=True),
        sa.Column('social_strava', sa.Text(), nullable=True),
        sa.Column('social_twitter', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    op.create_table(
        'sponsor_admins',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('sponsor_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['sponsor_id'], ['sponsors.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sponsor_id', 'user_id', name='uq_sponsor_admins_sponsor_user'),
    )
    op.create_index('ix_sponsor_admins_sponsor_id', 'sponsor_admins', ['sponsor_id'])
    op.create_index('ix_sponsor_admins_user_id', 'sponsor_admins', ['user_id'])

    op.create_table(
        'promotions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('sponsor_id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('promotion_type', sa.String(length=20), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('coupon_code', sa.String(length=100), nullable=True),
        sa.Column('external_link', sa.Text(), nullable=True),
        sa.Column('terms', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('is_featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['sponsor_id'], ['sponsors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_promotions_sponsor_id', 'promotions', ['sponsor_id'])
    op.create_index('ix_promotions_status', 'promotions', ['status'])

    op.create_table(
        'invitations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('sponsor_id', sa.String(length=36), nullable=True),
        sa.Column('token', sa.String(length=128), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['sponsor_id'], ['sponsors.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token'),
    )
    op.create_index('ix_invitations_email', 'invitations', ['email'])

    op.create_table(
        'blog_posts',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=220), nullable=False),
        sa.Column('excerpt', sa.String(length=500), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('featured_image_url', sa.Text(), nullable=True),
        sa.Column('author_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['author_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    op.create_table(
        'blog_post_sponsors',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('post_id', sa.String(length=36), nullable=False),
        sa.Column('sponsor_id', sa.String(length=36), nullable=False),
        sa.ForeignKeyConstraint(['post_id'], ['blog_posts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['sponsor_id'], ['sponsors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('post_id', 'sponsor_id', name='uq_blog_post_sponsors_post_sponsor'),
    )

    op.create_table(
        'slack_config',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('webhook_url', sa.Text(), nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notify_new_promotion', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notify_featured_promotion', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notify_new_sponsor', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notify_blog_post', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'slack_notifications',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('notification_type', sa.String(length=50), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'analytics_events',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('event_type', sa.String(length=50), nullable=False),
        sa.Column('sponsor_id', sa.String(length=36), nullable=True),
        sa.Column('promotion_id', sa.String(length=36), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['sponsor_id'], ['sponsors.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['promotion_id'], ['promotions.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_analytics_events_event_type', 'analytics_events', ['event_type'])


def downgrade():
    op.drop_index('ix_analytics_events_event_type', table_name='analytics_events')
    op.drop_table('analytics_events')
    op.drop_table('slack_notifications')
    op.drop_table('slack_config')
    op.drop_table('blog_post_sponsors')
    op.drop_table('blog_posts')
    op.drop_index('ix_invitations_email', table_name='invitations')
    op.drop_table('invitations')
    op.drop_index('ix_promotions_status', table_name='promotions')
    op.drop_index('ix_promotions_sponsor_id', table_name='promotions')
    op.drop_table('promotions')
    op.drop_index('ix_sponsor_admins_user_id', table_name='sponsor_admins')
    op.drop_index('ix_sponsor_admins_sponsor_id', table_name='sponsor_admins')
    op.drop_table('sponsor_admins')
    op.drop_table('sponsors')
    op.drop_index('ix_profiles_email', table_name='profiles')
    op.drop_table('profiles')
