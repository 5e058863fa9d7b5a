"""Super admin endpoints: sponsors, promotions, invitations, roles and blog."""
import logging

from flask import Blueprint, current_app, jsonify, request

from sponsor_portal.auth import current_user_id, require_shared_secret, require_super_admin
from sponsor_portal.clients import get_service_client
from sponsor_portal.errors import PortalError, ValidationFailed, _safe_error_payload
from sponsor_portal.models.portal import Promotion, db
from sponsor_portal.schemas import (
    AdminPromotionSchema,
    AdminPromotionUpdateSchema,
    ApprovalRequest,
    BlogPostSchema,
    RoleAssignmentRequest,
    SponsorSchema,
    parse_payload,
)
from sponsor_portal.services import blog_service, promotion_service, sponsor_service
from sponsor_portal.services.invitation_service import list_open_invitations, resend_invitation
from sponsor_portal.services.notifications import dispatch, promotion_pending_email, slack_channel_post, slack_notice
from sponsor_portal.services.storage_service import upload_sponsor_logo

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


def _after_publish(promotion: Promotion) -> None:
    """Queue Slack side effects for a promotion that just went live."""
    if promotion.status != 'active':
        return
    if promotion.publish_to_slack:
        dispatch('slack-post', slack_channel_post, promotion.id, promotion.slack_channel)
    if promotion.is_featured:
        dispatch('slack-featured', slack_notice, 'featured_promotion', {'promotionId': promotion.id})


# ---------------------------------------------------------------------------
# Sponsors
# ---------------------------------------------------------------------------

@admin_bp.route('/admin/sponsors', methods=['GET'])
@require_super_admin
def list_sponsors():
    sponsors = sponsor_service.list_sponsors(get_service_client().session, status=request.args.get('status'))
    return jsonify({'success': True, 'sponsors': [s.to_dict() for s in sponsors]})


@admin_bp.route('/admin/sponsors', methods=['POST'])
@require_super_admin
def create_sponsor():
    data = parse_payload(SponsorSchema, _json_body())
    sponsor = sponsor_service.create_sponsor(get_service_client().session, data)
    if sponsor.status == 'active':
        dispatch('slack-new-sponsor', slack_notice, 'new_sponsor', {'sponsorId': sponsor.id})
    return jsonify({'success': True, 'sponsor': sponsor.to_dict()}), 201


@admin_bp.route('/admin/sponsors/<sponsor_id>', methods=['PUT'])
@require_super_admin
def update_sponsor(sponsor_id):
    data = parse_payload(SponsorSchema, _json_body())
    sponsor = sponsor_service.update_sponsor(get_service_client().session, sponsor_id, data)
    return jsonify({'success': True, 'sponsor': sponsor.to_dict()})


@admin_bp.route('/admin/sponsors/<sponsor_id>', methods=['DELETE'])
@require_super_admin
def delete_sponsor(sponsor_id):
    sponsor_service.delete_sponsor(get_service_client().session, sponsor_id)
    return jsonify({'success': True})


@admin_bp.route('/admin/sponsors/upload-logo', methods=['POST'])
@require_super_admin
def upload_logo():
    sponsor_id = (request.form.get('sponsorId') or '').strip()
    if not sponsor_id:
        raise ValidationFailed('Sponsor ID is required')
    try:
        logo_url = upload_sponsor_logo(get_service_client(), sponsor_id, request.files.get('logo'))
        return jsonify({'success': True, 'logoUrl': logo_url})
    except PortalError:
        raise
    except Exception as e:
        logger.exception('Upload logo error sponsor=%s', sponsor_id)
        return jsonify(_safe_error_payload(e, 'Internal server error')), 500


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------

@admin_bp.route('/admin/promotions/create', methods=['POST'])
@require_super_admin
def create_promotion():
    data = parse_payload(AdminPromotionSchema, _json_body())
    promotion = promotion_service.create_admin_promotion(get_service_client().session, current_user_id(), data)
    _after_publish(promotion)
    return jsonify({'success': True, 'promotion': promotion.to_dict()})


@admin_bp.route('/admin/promotions/approve', methods=['POST'])
@require_super_admin
def approve_promotion():
    """Approve or reject a submitted promotion."""
    data = parse_payload(ApprovalRequest, _json_body(), message='Missing required fields')
    promotion = promotion_service.review_promotion(get_service_client().session, current_user_id(), data)
    if data.action == 'approve' and data.publish_to_slack:
        dispatch('slack-post', slack_channel_post, promotion.id, data.slack_channel)
    message = 'Promotion approved successfully' if data.action == 'approve' else 'Promotion rejected'
    return jsonify({'success': True, 'message': message, 'promotion': promotion.to_dict()})


@admin_bp.route('/admin/sponsors/promotions', methods=['GET'])
@require_super_admin
def list_sponsor_promotions():
    sponsor_id = request.args.get('sponsorId') or request.args.get('sponsor_id')
    if not sponsor_id:
        raise ValidationFailed('Sponsor ID is required')
    promotions = promotion_service.list_sponsor_promotions(get_service_client().session, sponsor_id)
    return jsonify({'success': True, 'promotions': [p.to_dict(include_sponsor=True) for p in promotions]})


@admin_bp.route('/admin/sponsors/promotions', methods=['POST'])
@require_super_admin
def create_sponsor_promotion():
    data = parse_payload(AdminPromotionSchema, _json_body())
    promotion = promotion_service.create_admin_promotion(get_service_client().session, current_user_id(), data)
    _after_publish(promotion)
    return jsonify({'success': True, 'promotion': promotion.to_dict()}), 201


@admin_bp.route('/admin/sponsors/promotions', methods=['PUT'])
@require_super_admin
def update_sponsor_promotion():
    body = _json_body()
    promotion_id = body.get('id') or body.get('promotionId')
    if not promotion_id:
        raise ValidationFailed('Promotion ID is required')
    data = parse_payload(AdminPromotionUpdateSchema, body)
    promotion = promotion_service.update_admin_promotion(get_service_client().session, promotion_id, data)
    return jsonify({'success': True, 'promotion': promotion.to_dict()})


@admin_bp.route('/admin/sponsors/promotions', methods=['DELETE'])
@require_super_admin
def delete_sponsor_promotion():
    body = _json_body()
    promotion_id = (
        request.args.get('promotionId') or request.args.get('id')
        or body.get('promotionId') or body.get('id')
    )
    if not promotion_id:
        raise ValidationFailed('Promotion ID is required')
    promotion_service.delete_admin_promotion(get_service_client().session, promotion_id)
    return jsonify({'success': True})


@admin_bp.route('/admin/notify-promotion-pending', methods=['POST'])
@require_shared_secret('SLACK_WEBHOOK_SECRET_KEY')
def notify_promotion_pending():
    """Machine endpoint: email super admins about a promotion awaiting approval."""
    body = _json_body()
    if not body.get('promotionId') or not body.get('sponsorId'):
        raise ValidationFailed('Missing promotionId or sponsorId')
    # Privileged reads follow; refuse early without the service-role key
    get_service_client()
    result = promotion_pending_email(body['promotionId'])
    return jsonify({
        'success': True,
        'message': f"Notification sent to {len(result['admins'])} super admin(s)",
        **result,
    })


# ---------------------------------------------------------------------------
# Invitations & roles
# ---------------------------------------------------------------------------

@admin_bp.route('/admin/invitations', methods=['GET'])
@require_super_admin
def list_invitations():
    invitations = list_open_invitations(get_service_client().session, sponsor_id=request.args.get('sponsorId'))
    return jsonify({'success': True, 'invitations': [i.to_dict() for i in invitations]})


@admin_bp.route('/admin/invitations/resend', methods=['POST'])
@require_super_admin
def resend():
    invitation_id = _json_body().get('invitationId')
    if not invitation_id:
        raise ValidationFailed('Invitation ID is required')
    result = resend_invitation(get_service_client(), invitation_id, current_app.config['PUBLIC_APP_URL'])
    return jsonify({'success': True, **result})


@admin_bp.route('/admin/users/role', methods=['POST'])
@require_super_admin
def assign_role():
    data = parse_payload(RoleAssignmentRequest, _json_body())
    try:
        profile = sponsor_service.assign_role(get_service_client().session, data.user_id, data.role, data.sponsor_id)
        return jsonify({'success': True, 'profile': profile.to_dict()})
    except PortalError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception('Assign role error user=%s', data.user_id)
        return jsonify(_safe_error_payload(e, 'Failed to assign role')), 500


# ---------------------------------------------------------------------------
# Blog
# ---------------------------------------------------------------------------

@admin_bp.route('/admin/blog-posts', methods=['GET'])
@require_super_admin
def list_blog_posts():
    posts = blog_service.list_posts(get_service_client().session, status=request.args.get('status'))
    return jsonify({'success': True, 'posts': [p.to_dict() for p in posts]})


@admin_bp.route('/admin/blog-posts', methods=['POST'])
@admin_bp.route('/admin/blog-posts/<post_id>', methods=['PUT'])
@require_super_admin
def save_blog_post(post_id=None):
    data = parse_payload(BlogPostSchema, _json_body())
    post, newly_published = blog_service.save_post(get_service_client().session, current_user_id(), data, post_id)
    if newly_published:
        dispatch('slack-blog', slack_notice, 'blog_post', {'postId': post.id})
    return jsonify({'success': True, 'post': post.to_dict()}), (200 if post_id else 201)


@admin_bp.route('/admin/blog-posts/<post_id>', methods=['DELETE'])
@require_super_admin
def delete_blog_post(post_id):
    blog_service.delete_post(get_service_client().session, post_id)
    return jsonify({'success': True})
