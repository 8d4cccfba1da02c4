from flask import Blueprint, jsonify, current_app, request
from flask_login import login_required, current_user

from extensions import db
from forms import AdSetForm, CampaignForm
from models.campaign import AdSet, Campaign
from models.integration import Integration
from utils.decorators import active_company_required
from utils.errors import BadRequestError, ForbiddenError, FormValidationError, NotFoundError
from utils.helpers import commit_session, get_json_payload, get_tenant_object, tenant_query

campaigns_bp = Blueprint('campaigns', __name__, url_prefix='/campaigns')
ad_sets_bp = Blueprint('ad_sets', __name__, url_prefix='/ad-sets')

CAMPAIGN_FIELDS = {
    'name': 'name',
    'platform': 'platform',
    'status': 'status',
    'account': 'account',
    'objective': 'objective',
    'budget': 'budget',
    'externalId': 'external_id',
}

AD_SET_FIELDS = {
    'name': 'name',
    'status': 'status',
    'dailyBudget': 'daily_budget',
    'lifetimeBudget': 'lifetime_budget',
    'bidStrategy': 'bid_strategy',
    'externalId': 'external_id',
}

def _apply_fields(obj, form, payload, mapping):
    for field in form.provided_fields(payload):
        if field.name in mapping:
            value = field.data
            setattr(obj, mapping[field.name], value if value not in ('', None) else None)

def _check_integration(integration_id):
    if integration_id:
        get_tenant_object(Integration, integration_id, current_user, "Integration not found")

# --- Campaigns ---

@campaigns_bp.route('', methods=['GET'])
@login_required
def list_campaigns():
    query = tenant_query(Campaign, current_user)
    status = request.args.get('status')
    if status and status != 'all':
        query = query.filter(Campaign.status == status)
    integration_id = request.args.get('integrationId', type=int)
    if integration_id:
        query = query.filter(Campaign.integration_id == integration_id)
    return jsonify([campaign.to_dict() for campaign in query.order_by(Campaign.created_at.desc()).all()])

@campaigns_bp.route('/<int:campaign_id>', methods=['GET'])
@login_required
def get_campaign(campaign_id):
    return jsonify(get_tenant_object(Campaign, campaign_id, current_user, "Campaign not found").to_dict())

@campaigns_bp.route('', methods=['POST'])
@login_required
@active_company_required
def create_campaign():
    """Creates a manual campaign; the company's max_campaigns limit applies."""
    payload = get_json_payload()
    form = CampaignForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)
    company = current_user.company
    if company is None:
        raise BadRequestError("User is not attached to a company")
    if not company.can_add_campaign():
        raise ForbiddenError(f"Campaign limit reached ({company.max_campaigns})")
    _check_integration(form.integrationId.data)

    campaign = Campaign(company_id=company.id, user_id=current_user.id,
                        integration_id=form.integrationId.data or None, status='active')
    _apply_fields(campaign, form, payload, CAMPAIGN_FIELDS)
    company.current_campaigns += 1
    db.session.add(campaign)
    commit_session("creating campaign")
    current_app.logger.info(f"User {current_user.id} created campaign {campaign.id}.")
    return jsonify(campaign.to_dict()), 201

@campaigns_bp.route('/<int:campaign_id>', methods=['PUT'])
@login_required
def update_campaign(campaign_id):
    payload = get_json_payload()
    campaign = get_tenant_object(Campaign, campaign_id, current_user, "Campaign not found")
    form = CampaignForm()
    if not form.validate_provided(payload):
        raise FormValidationError(form)
    if 'name' in payload and not form.name.data:
        raise BadRequestError("Campaign name is required")
    if 'integrationId' in payload:
        _check_integration(form.integrationId.data)
        campaign.integration_id = form.integrationId.data or None
    _apply_fields(campaign, form, payload, CAMPAIGN_FIELDS)
    commit_session("updating campaign")
    return jsonify(campaign.to_dict())

@campaigns_bp.route('/<int:campaign_id>', methods=['DELETE'])
@login_required
def delete_campaign(campaign_id):
    campaign = get_tenant_object(Campaign, campaign_id, current_user, "Campaign not found")
    company = current_user.company if current_user.company_id == campaign.company_id else None
    db.session.delete(campaign) # Ad sets and creatives cascade.
    if company is not None and company.current_campaigns > 0:
        company.current_campaigns -= 1
    commit_session("deleting campaign")
    current_app.logger.info(f"User {current_user.id} deleted campaign {campaign_id}.")
    return '', 204

# --- Ad sets ---

def _accessible_campaign(campaign_id):
    campaign = db.session.get(Campaign, campaign_id)
    if campaign is None:
        raise NotFoundError("Campaign not found")
    if not current_user.can_access_company(campaign.company_id):
        raise ForbiddenError("Access denied")
    return campaign

def _accessible_ad_set(ad_set_id):
    ad_set = db.session.get(AdSet, ad_set_id)
    if ad_set is None:
        raise NotFoundError("Ad set not found")
    _accessible_campaign(ad_set.campaign_id)
    return ad_set

@ad_sets_bp.route('/campaign/<int:campaign_id>', methods=['GET'])
@login_required
def list_campaign_ad_sets(campaign_id):
    campaign = _accessible_campaign(campaign_id)
    return jsonify([ad_set.to_dict() for ad_set in campaign.ad_sets.order_by(AdSet.created_at).all()])

@ad_sets_bp.route('/<int:ad_set_id>', methods=['GET'])
@login_required
def get_ad_set(ad_set_id):
    return jsonify(_accessible_ad_set(ad_set_id).to_dict())

@ad_sets_bp.route('', methods=['POST'])
@login_required
@active_company_required
def create_ad_set():
    payload = get_json_payload()
    form = AdSetForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)
    campaign = _accessible_campaign(form.campaignId.data)
    targeting = payload.get('targeting')
    if targeting is not None and not isinstance(targeting, dict):
        raise BadRequestError("targeting must be an object")
    ad_set = AdSet(campaign_id=campaign.id, targeting=targeting)
    _apply_fields(ad_set, form, payload, AD_SET_FIELDS)
    db.session.add(ad_set)
    commit_session("creating ad set")
    return jsonify(ad_set.to_dict()), 201

@ad_sets_bp.route('/<int:ad_set_id>', methods=['PUT'])
@login_required
def update_ad_set(ad_set_id):
    payload = get_json_payload()
    ad_set = _accessible_ad_set(ad_set_id)
    form = AdSetForm()
    if not form.validate_provided(payload):
        raise FormValidationError(form)
    if 'targeting' in payload:
        if payload['targeting'] is not None and not isinstance(payload['targeting'], dict):
            raise BadRequestError("targeting must be an object")
        ad_set.targeting = payload['targeting']
    _apply_fields(ad_set, form, payload, AD_SET_FIELDS)
    commit_session("updating ad set")
    return jsonify(ad_set.to_dict())

@ad_sets_bp.route('/<int:ad_set_id>', methods=['DELETE'])
@login_required
def delete_ad_set(ad_set_id):
    ad_set = _accessible_ad_set(ad_set_id)
    for creative in ad_set.creatives:
        creative.ad_set_id = None
    db.session.delete(ad_set)
    commit_session("deleting ad set")
    return '', 204
