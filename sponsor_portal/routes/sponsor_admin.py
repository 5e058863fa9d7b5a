"""Endpoints for sponsor admins, scoped to the sponsor they are linked to."""
import logging

from flask import Blueprint, jsonify, request

from sponsor_portal.auth import current_user_id, get_user_state, require_sponsor_admin
from sponsor_portal.clients import get_service_client
from sponsor_portal.errors import PortalError, ValidationFailed, _safe_error_payload
from sponsor_portal.models.portal import db
from sponsor_portal.schemas import PromotionSchema, SponsorUpdateSchema, StatusChangeRequest, parse_payload
from sponsor_portal.services import promotion_service, sponsor_service
from sponsor_portal.services.notifications import dispatch, promotion_pending_email, slack_notice
from sponsor_portal.services.storage_service import upload_promotion_image, upload_sponsor_logo

logger = logging.getLogger(__name__)

sponsor_admin_bp = Blueprint('sponsor_admin', __name__)


def _sponsor_id() -> str:
    return get_user_state().sponsor_id


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


# ---------------------------------------------------------------------------
# Sponsor profile & team
# ---------------------------------------------------------------------------

@sponsor_admin_bp.route('/sponsor-admin/get-sponsor', methods=['GET'])
@require_sponsor_admin(missing_status=404)
def get_sponsor():
    summary = sponsor_service.get_sponsor_summary(get_service_client().session, _sponsor_id())
    return jsonify({'success': True, **summary})


@sponsor_admin_bp.route('/sponsor-admin/update-profile', methods=['POST'])
@require_sponsor_admin
def update_profile():
    data = parse_payload(SponsorUpdateSchema, _json_body())
    sponsor = sponsor_service.update_sponsor_profile(get_service_client().session, _sponsor_id(), data)
    return jsonify({'success': True, 'sponsor': sponsor.to_dict()})


@sponsor_admin_bp.route('/sponsor-admin/team-members', methods=['GET'])
@require_sponsor_admin(missing_status=404)
def team_members():
    members = sponsor_service.list_team_members(get_service_client().session, _sponsor_id())
    return jsonify({'success': True, 'teamMembers': members})


@sponsor_admin_bp.route('/sponsor-admin/team-members', methods=['DELETE'])
@require_sponsor_admin
def remove_team_member():
    member_id = request.args.get('userId') or _json_body().get('userId')
    if not member_id:
        raise ValidationFailed('User ID is required')
    sponsor_service.remove_team_member(get_service_client().session, _sponsor_id(), current_user_id(), member_id)
    return jsonify({'success': True})


@sponsor_admin_bp.route('/sponsor-admin/upload-logo', methods=['POST'])
@require_sponsor_admin
def upload_logo():
    try:
        logo_url = upload_sponsor_logo(get_service_client(), _sponsor_id(), request.files.get('logo'))
        return jsonify({'success': True, 'logoUrl': logo_url})
    except PortalError:
        raise
    except Exception as e:
        logger.exception('Upload logo error sponsor=%s', _sponsor_id())
        return jsonify(_safe_error_payload(e, 'Internal server error')), 500


@sponsor_admin_bp.route('/sponsor-admin/upload-image', methods=['POST'])
@require_sponsor_admin
def upload_image():
    try:
        image_url = upload_promotion_image(get_service_client(), _sponsor_id(), request.files.get('image'))
        return jsonify({'success': True, 'imageUrl': image_url})
    except PortalError:
        raise
    except Exception as e:
        logger.exception('Upload image error sponsor=%s', _sponsor_id())
        return jsonify(_safe_error_payload(e, 'Internal server error')), 500


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------

@sponsor_admin_bp.route('/sponsor-admin/promotions/list', methods=['GET'])
@require_sponsor_admin
def list_promotions():
    promotions = promotion_service.list_sponsor_promotions(get_service_client().session, _sponsor_id())
    return jsonify({'success': True, 'promotions': [p.to_dict() for p in promotions]})


@sponsor_admin_bp.route('/sponsor-admin/promotions/create', methods=['POST'])
@require_sponsor_admin
def create_promotion():
    """Submit a promotion for approval and let the super admins know."""
    data = parse_payload(PromotionSchema, _json_body())
    try:
        promotion = promotion_service.submit_promotion(
            get_service_client().session, _sponsor_id(), current_user_id(), data,
        )
    except PortalError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.exception('Create promotion error sponsor=%s', _sponsor_id())
        return jsonify(_safe_error_payload(e, 'Internal server error')), 500

    dispatch('promotion-pending-email', promotion_pending_email, promotion.id)
    dispatch('slack-new-promotion', slack_notice, 'new_promotion', {'promotionId': promotion.id})
    return jsonify({
        'success': True,
        'promotion': promotion.to_dict(),
        'message': 'Promotion submitted for approval',
    })


@sponsor_admin_bp.route('/sponsor-admin/promotions/update', methods=['POST', 'PUT'])
@require_sponsor_admin
def update_promotion():
    body = _json_body()
    promotion_id = body.get('promotionId') or body.get('id')
    if not promotion_id:
        raise ValidationFailed('Promotion ID is required')
    data = parse_payload(PromotionSchema, body.get('promotion') if isinstance(body.get('promotion'), dict) else body)
    promotion = promotion_service.update_sponsor_promotion(
        get_service_client().session, _sponsor_id(), promotion_id, data,
    )
    return jsonify({'success': True, 'promotion': promotion.to_dict()})


@sponsor_admin_bp.route('/sponsor-admin/promotions/toggle-status', methods=['POST'])
@require_sponsor_admin
def toggle_status():
    data = parse_payload(StatusChangeRequest, _json_body(), message='Promotion ID and new status are required')
    promotion = promotion_service.change_status(
        get_service_client().session, _sponsor_id(), data.promotion_id, data.new_status,
    )
    return jsonify({'success': True, 'promotion': promotion.to_dict()})


@sponsor_admin_bp.route('/sponsor-admin/promotions/delete', methods=['POST', 'DELETE'])
@require_sponsor_admin
def delete_promotion():
    promotion_id = _json_body().get('promotionId') or request.args.get('promotionId')
    promotion_service.delete_sponsor_promotion(get_service_client().session, _sponsor_id(), promotion_id)
    return jsonify({'success': True})
