from flask import Blueprint, jsonify, current_app, request
from flask_login import login_required, current_user
from sqlalchemy import or_

from extensions import db
from forms import CreativeForm, CreativeUpdateForm
from models.audit import Audit
from models.campaign import AdSet, Campaign
from models.creative import Creative, CreativeTypeEnum
from models.integration import Integration
from services.audit_service import get_accessible_creative, run_creative_audit
from utils.decorators import active_company_required
from utils.errors import AppError, BadRequestError, FormValidationError
from utils.helpers import (commit_session, get_json_payload, get_tenant_object, pagination_meta,
                           parse_pagination, tenant_query)

creatives_bp = Blueprint('creatives', __name__, url_prefix='/creatives')

CREATIVE_FIELDS = {
    'name': 'name',
    'imageUrl': 'image_url',
    'videoUrl': 'video_url',
    'text': 'text',
    'headline': 'headline',
    'description': 'description',
    'callToAction': 'call_to_action',
    'status': 'status',
    'impressions': 'impressions',
    'clicks': 'clicks',
    'conversions': 'conversions',
    'ctr': 'ctr',
    'cpc': 'cpc',
}
COUNTER_FIELDS = ('impressions', 'clicks', 'conversions')

def _apply_fields(creative, form, payload):
    for field in form.provided_fields(payload):
        if field.name == 'type' and field.data:
            creative.type = CreativeTypeEnum(field.data)
        elif field.name in COUNTER_FIELDS:
            setattr(creative, CREATIVE_FIELDS[field.name], field.data or 0)
        elif field.name in CREATIVE_FIELDS:
            setattr(creative, CREATIVE_FIELDS[field.name], field.data if field.data not in ('', None) else None)

def _resolve_parents(campaign_id, ad_set_id):
    campaign = get_tenant_object(Campaign, campaign_id, current_user, "Campaign not found")
    ad_set = None
    if ad_set_id:
        ad_set = db.session.get(AdSet, ad_set_id)
        if ad_set is None or ad_set.campaign_id != campaign.id:
            raise BadRequestError("Ad set does not belong to the campaign")
    return campaign, ad_set

@creatives_bp.route('', methods=['GET'])
@login_required
def list_creatives():
    """
    Paginated creatives of the caller's company.

    Query params: page, limit, campaignId, status ('all' = no filter), search
    (name, headline or text, case-insensitive) and integrationId.
    """
    page, limit = parse_pagination(request.args)
    query = tenant_query(Creative, current_user)

    campaign_id = request.args.get('campaignId', type=int)
    if campaign_id:
        query = query.filter(Creative.campaign_id == campaign_id)
    status = request.args.get('status')
    if status and status != 'all':
        query = query.filter(Creative.status == status)
    search = (request.args.get('search') or '').strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Creative.name.ilike(pattern), Creative.headline.ilike(pattern), Creative.text.ilike(pattern)))
    integration_id = request.args.get('integrationId', type=int)
    if integration_id:
        query = query.join(Campaign, Creative.campaign_id == Campaign.id).filter(Campaign.integration_id == integration_id)

    total = query.count()
    creatives = query.order_by(Creative.created_at.desc(), Creative.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()
    return jsonify({
        "creatives": [creative.to_dict() for creative in creatives],
        "pagination": pagination_meta(page, limit, total),
    })

@creatives_bp.route('/campaign/<int:campaign_id>', methods=['GET'])
@login_required
def list_campaign_creatives(campaign_id):
    campaign = get_tenant_object(Campaign, campaign_id, current_user, "Campaign not found")
    return jsonify([creative.to_dict() for creative in campaign.creatives.order_by(Creative.created_at.desc()).all()])

@creatives_bp.route('/<int:creative_id>', methods=['GET'])
@login_required
def get_creative(creative_id):
    return jsonify(get_accessible_creative(creative_id, current_user).to_dict())

@creatives_bp.route('/<int:creative_id>/audits', methods=['GET'])
@login_required
def creative_audits(creative_id):
    creative = get_accessible_creative(creative_id, current_user)
    return jsonify([audit.to_dict() for audit in creative.audits.order_by(Audit.created_at.desc()).all()])

@creatives_bp.route('', methods=['POST'])
@login_required
@active_company_required
def create_creative():
    payload = get_json_payload()
    form = CreativeForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)
    campaign, ad_set = _resolve_parents(form.campaignId.data, form.adSetId.data)
    creative = Creative(company_id=campaign.company_id, user_id=current_user.id, campaign_id=campaign.id,
                        ad_set_id=ad_set.id if ad_set else None, platform=campaign.platform,
                        type=CreativeTypeEnum.IMAGE, impressions=0, clicks=0, conversions=0)
    _apply_fields(creative, form, payload)
    db.session.add(creative)
    commit_session("creating creative")
    current_app.logger.info(f"User {current_user.id} created creative {creative.id} in campaign {campaign.id}.")
    return jsonify(creative.to_dict()), 201

@creatives_bp.route('/<int:creative_id>', methods=['PUT'])
@login_required
def update_creative(creative_id):
    payload = get_json_payload()
    creative = get_accessible_creative(creative_id, current_user)
    form = CreativeUpdateForm()
    if not form.validate_provided(payload):
        raise FormValidationError(form)
    if 'campaignId' in payload or 'adSetId' in payload:
        campaign, ad_set = _resolve_parents(form.campaignId.data or creative.campaign_id, form.adSetId.data)
        creative.campaign_id = campaign.id
        creative.ad_set_id = ad_set.id if ad_set else None
    if 'name' in payload and not form.name.data:
        raise BadRequestError("Creative name is required")
    _apply_fields(creative, form, payload)
    commit_session("updating creative")
    return jsonify(creative.to_dict())

@creatives_bp.route('/<int:creative_id>', methods=['DELETE'])
@login_required
def delete_creative(creative_id):
    creative = get_accessible_creative(creative_id, current_user)
    db.session.delete(creative)
    commit_session("deleting creative")
    return '', 204

@creatives_bp.route('/bulk/all', methods=['DELETE'])
@login_required
def delete_all_creatives():
    """
    Deletes every creative of the caller and resets last_sync on their
    integrations so the next sync pulls everything again.
    """
    creatives = Creative.query.filter_by(user_id=current_user.id).all()
    for creative in creatives:
        db.session.delete(creative) # Per row so the audit cascade runs.
    integrations = Integration.query.filter_by(user_id=current_user.id).all()
    for integration in integrations:
        integration.last_sync = None
    commit_session("deleting creatives")
    current_app.logger.info(f"User {current_user.id} deleted {len(creatives)} creative(s) and reset {len(integrations)} integration(s).")
    return jsonify({"deleted": len(creatives)})

# --- Analysis ---

@creatives_bp.route('/<int:creative_id>/analyze', methods=['POST'])
@login_required
@active_company_required
def analyze_creative(creative_id):
    creative = get_accessible_creative(creative_id, current_user)
    audit = run_creative_audit(creative, current_user)
    commit_session("saving audit")
    return jsonify(audit.to_dict()), 201

@creatives_bp.route('/analyze-batch', methods=['POST'])
@login_required
@active_company_required
def analyze_batch():
    """
    Audits several creatives. Each creative succeeds or fails on its own;
    the response lists both.
    """
    payload = get_json_payload()
    creative_ids = payload.get('creativeIds')
    if not isinstance(creative_ids, list) or not creative_ids:
        raise BadRequestError("creativeIds must be a non-empty list")

    success, failed = [], []
    for creative_id in creative_ids:
        try:
            creative = get_accessible_creative(int(creative_id), current_user)
            audit = run_creative_audit(creative, current_user)
            commit_session("saving audit")
            success.append({"id": creative.id, "auditId": audit.id})
        except (TypeError, ValueError):
            failed.append({"id": creative_id, "error": "Invalid creative id"})
        except AppError as e:
            db.session.rollback()
            failed.append({"id": creative_id, "error": e.message})
    current_app.logger.info(f"Batch analysis by user {current_user.id}: {len(success)} succeeded, {len(failed)} failed.")
    return jsonify({"success": success, "failed": failed, "total": len(creative_ids)})
