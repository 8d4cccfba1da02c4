import re
from datetime import datetime, timedelta
from flask import Blueprint, jsonify, current_app, redirect, request, url_for
from flask_login import login_required, current_user
from authlib.integrations.base_client.errors import OAuthError

from extensions import db, oauth
from forms import IntegrationForm, IntegrationUpdateForm
from models.integration import Integration, IntegrationStatusEnum, SyncHistory, PENDING_ACCOUNT_ID
from models.platform_settings import PlatformEnum
from routes.platform_settings import get_app_credentials
from services import google_ads
from services.meta_ads import MetaGraphClient, MetaTokenExpiredError, strip_account_prefix
from services.sync_service import sync_integration
from utils.decorators import active_company_required
from utils.errors import BadRequestError, FormValidationError, NotFoundError, SyncError
from utils.helpers import commit_session, get_json_payload, get_tenant_object, tenant_query

# Google customer ids are entered as XXX-XXX-XXXX; ten bare digits are accepted too.
GOOGLE_CUSTOMER_ID_PATTERN = re.compile(r'^(\d{3}-\d{3}-\d{4}|\d{10})$')

# Blueprint for ad platform connections: manual and OAuth connect, account
# selection, token validation and campaign synchronization.
integrations_bp = Blueprint('integrations', __name__, url_prefix='/integrations')

def _validate_account_id(platform, account_id):
    """Normalizes the ad account id for storage; raises BadRequestError when malformed."""
    account_id = (account_id or '').strip()
    if platform == PlatformEnum.GOOGLE:
        if not GOOGLE_CUSTOMER_ID_PATTERN.match(account_id):
            raise BadRequestError("Invalid Google Ads Customer ID format. Please use XXX-XXX-XXXX.")
        digits = account_id.replace('-', '')
        return f"{digits[:3]}-{digits[3:6]}-{digits[6:]}"
    account_id = strip_account_prefix(account_id)
    if not account_id.isdigit():
        raise BadRequestError("Invalid Meta ad account ID. Use the numeric id, with or without 'act_'.")
    return account_id

def _frontend_redirect(**params):
    query = '&'.join(f"{key}={value}" for key, value in params.items())
    return redirect(f"{current_app.config['FRONTEND_URL'].rstrip('/')}/integrations?{query}")

def _company_integration(platform):
    """Most recently updated integration of `platform` for the caller's company, or 404."""
    integration_id = request.args.get('integrationId', type=int)
    if integration_id:
        integration = get_tenant_object(Integration, integration_id, current_user, "Integration not found")
        if integration.platform != platform:
            raise BadRequestError(f"Integration {integration_id} is not a {platform.value} integration")
        return integration
    integration = Integration.query.filter_by(company_id=current_user.company_id, platform=platform) \
        .order_by(Integration.updated_at.desc()).first()
    if integration is None:
        raise NotFoundError(f"No {platform.value} integration connected")
    return integration

# --- CRUD ---

@integrations_bp.route('', methods=['GET'])
@login_required
def list_integrations():
    integrations = tenant_query(Integration, current_user).order_by(Integration.created_at.desc()).all()
    return jsonify([integration.to_dict() for integration in integrations])

@integrations_bp.route('', methods=['POST'])
@login_required
@active_company_required
def create_integration():
    """Connects an ad account with a token obtained outside the OAuth flow."""
    get_json_payload()
    form = IntegrationForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)
    platform = PlatformEnum.parse(form.platform.data)
    account_id = _validate_account_id(platform, form.accountId.data)

    integration = Integration.query.filter_by(company_id=current_user.company_id, platform=platform,
                                              account_id=account_id).first()
    created = integration is None
    if created:
        integration = Integration(company_id=current_user.company_id, user_id=current_user.id,
                                  platform=platform, account_id=account_id)
        db.session.add(integration)
    integration.access_token = form.accessToken.data.strip()
    if form.refreshToken.data:
        integration.refresh_token = form.refreshToken.data.strip()
    integration.account_name = form.accountName.data or integration.account_name
    integration.status = IntegrationStatusEnum.ACTIVE
    integration.last_error = None
    commit_session("saving integration")
    current_app.logger.info(f"User {current_user.id} {'connected' if created else 'updated'} {platform.value} account {account_id} (integration {integration.id}).")
    return jsonify(integration.to_dict()), 201 if created else 200

@integrations_bp.route('/<int:integration_id>', methods=['GET'])
@login_required
def get_integration(integration_id):
    return jsonify(get_tenant_object(Integration, integration_id, current_user, "Integration not found").to_dict())

@integrations_bp.route('/<int:integration_id>', methods=['PUT'])
@login_required
def update_integration(integration_id):
    """Token refresh, ad account selection (after OAuth) or re-activation."""
    payload = get_json_payload()
    integration = get_tenant_object(Integration, integration_id, current_user, "Integration not found")
    form = IntegrationUpdateForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)
    for field in form.provided_fields(payload):
        if field.name == 'accessToken' and field.data:
            integration.access_token = field.data.strip()
        elif field.name == 'refreshToken' and field.data:
            integration.refresh_token = field.data.strip()
        elif field.name == 'accountId' and field.data:
            integration.account_id = _validate_account_id(integration.platform, field.data)
        elif field.name == 'accountName':
            integration.account_name = field.data or None
        elif field.name == 'status' and field.data:
            integration.status = IntegrationStatusEnum(field.data)
    commit_session("updating integration")
    current_app.logger.info(f"User {current_user.id} updated integration {integration.id}.")
    return jsonify(integration.to_dict())

@integrations_bp.route('/<int:integration_id>/disable', methods=['POST'])
@login_required
def disable_integration(integration_id):
    integration = get_tenant_object(Integration, integration_id, current_user, "Integration not found")
    integration.status = IntegrationStatusEnum.INACTIVE
    commit_session("disabling integration")
    current_app.logger.info(f"User {current_user.id} disabled integration {integration.id}.")
    return jsonify(integration.to_dict())

@integrations_bp.route('/<int:integration_id>', methods=['DELETE'])
@login_required
def delete_integration(integration_id):
    """Removes the connection. Synced campaigns stay, detached from the integration."""
    integration = get_tenant_object(Integration, integration_id, current_user, "Integration not found")
    for campaign in integration.campaigns:
        campaign.integration_id = None
    db.session.delete(integration)
    commit_session("deleting integration")
    current_app.logger.info(f"User {current_user.id} deleted integration {integration_id}.")
    return '', 204

# --- Validation & synchronization ---

@integrations_bp.route('/<int:integration_id>/validate', methods=['POST'])
@login_required
def validate_integration(integration_id):
    """Checks the stored token against the platform and records the outcome."""
    integration = get_tenant_object(Integration, integration_id, current_user, "Integration not found")
    try:
        if integration.platform == PlatformEnum.META:
            profile = MetaGraphClient.from_app_config(integration.access_token).validate_token()
            details = {"userId": profile.get('id'), "name": profile.get('name')}
        else:
            client = google_ads.build_client(integration.refresh_token)
            customers = google_ads.GoogleAdsSyncClient(client, integration.account_id).list_accessible_customers()
            details = {"accessibleCustomers": customers}
    except MetaTokenExpiredError as e:
        integration.status = IntegrationStatusEnum.EXPIRED
        integration.last_error = e.message
        commit_session("recording integration validation")
        return jsonify({"valid": False, "error": e.message, "integration": integration.to_dict()})
    except SyncError as e:
        integration.mark_error(e.message)
        commit_session("recording integration validation")
        return jsonify({"valid": False, "error": e.message, "integration": integration.to_dict()})

    if integration.status in (IntegrationStatusEnum.ERROR, IntegrationStatusEnum.EXPIRED):
        integration.status = IntegrationStatusEnum.ACTIVE
    integration.last_error = None
    commit_session("recording integration validation")
    current_app.logger.info(f"Integration {integration.id} token validated.")
    return jsonify({"valid": True, "details": details, "integration": integration.to_dict()})

@integrations_bp.route('/<int:integration_id>/sync', methods=['POST'])
@login_required
@active_company_required
def sync(integration_id):
    integration = get_tenant_object(Integration, integration_id, current_user, "Integration not found")
    history = sync_integration(integration)
    return jsonify({"integration": integration.to_dict(), "sync": history.to_dict()})

@integrations_bp.route('/sync-history', methods=['GET'])
@login_required
def sync_history():
    query = tenant_query(SyncHistory, current_user)
    integration_id = request.args.get('integrationId', type=int)
    if integration_id:
        query = query.filter(SyncHistory.integration_id == integration_id)
    limit = min(request.args.get('limit', 50, type=int) or 50, 200)
    return jsonify([row.to_dict() for row in query.order_by(SyncHistory.started_at.desc()).limit(limit).all()])

@integrations_bp.route('/reset-sync', methods=['POST'])
@login_required
def reset_sync():
    """Clears last_sync on the caller's integrations so the next sync starts fresh."""
    integrations = Integration.query.filter_by(company_id=current_user.company_id).all()
    for integration in integrations:
        integration.last_sync = None
    commit_session("resetting sync state")
    current_app.logger.info(f"User {current_user.id} reset sync state of {len(integrations)} integration(s).")
    return jsonify({"reset": len(integrations)})

# --- Account discovery ---

@integrations_bp.route('/meta/accounts', methods=['GET'])
@login_required
def meta_accounts():
    integration = _company_integration(PlatformEnum.META)
    accounts = MetaGraphClient.from_app_config(integration.access_token).list_ad_accounts()
    return jsonify({"integrationId": integration.id, "accounts": accounts})

@integrations_bp.route('/google/accounts', methods=['GET'])
@login_required
def google_accounts():
    integration = _company_integration(PlatformEnum.GOOGLE)
    client = google_ads.build_client(integration.refresh_token)
    customers = google_ads.GoogleAdsSyncClient(client, integration.account_id).list_accessible_customers()
    accounts = [{"id": f"{c[:3]}-{c[3:6]}-{c[6:]}" if len(c) == 10 else c} for c in customers]
    return jsonify({"integrationId": integration.id, "accounts": accounts})

# --- OAuth connect flows ---

def _store_oauth_tokens(platform, access_token, refresh_token, expires_at):
    """Creates or refreshes the caller's integration for `platform` that still awaits an account selection."""
    integration = Integration.query.filter_by(company_id=current_user.company_id, user_id=current_user.id,
                                              platform=platform, account_id=PENDING_ACCOUNT_ID) \
        .order_by(Integration.updated_at.desc()).first()
    if integration is None:
        integration = Integration(company_id=current_user.company_id, user_id=current_user.id,
                                  platform=platform, account_id=PENDING_ACCOUNT_ID,
                                  account_name=f"{platform.value.title()} Ads Account (Pending Selection)")
        db.session.add(integration)
    integration.access_token = access_token
    if refresh_token: # Only replaced when the provider issued a new one.
        integration.refresh_token = refresh_token
    integration.token_expires_at = expires_at
    integration.status = IntegrationStatusEnum.ACTIVE
    integration.last_error = None
    commit_session(f"saving {platform.value} OAuth connection")
    current_app.logger.info(f"{platform.value} OAuth connection saved for user {current_user.id}, integration {integration.id}.")
    return integration

@integrations_bp.route('/google/connect', methods=['GET'])
@login_required
def google_connect():
    redirect_uri = url_for('integrations.google_callback', _external=True)
    # access_type=offline and prompt=consent make Google issue a refresh token.
    return oauth.google_ads.authorize_redirect(redirect_uri, access_type='offline', prompt='consent')

@integrations_bp.route('/google/callback', methods=['GET'])
@login_required
def google_callback():
    try:
        token_response = oauth.google_ads.authorize_access_token()
    except OAuthError as e:
        current_app.logger.error(f"Google Ads OAuthError during token authorization: {e.error} - {e.description}", exc_info=True)
        return _frontend_redirect(error='google_oauth_failed')

    access_token = token_response.get('access_token')
    if not access_token:
        current_app.logger.error("Google Ads OAuth: access token not found in token response.")
        return _frontend_redirect(error='google_oauth_failed')
    expires_in = token_response.get('expires_in')
    expires_at = datetime.utcnow() + timedelta(seconds=int(expires_in)) if expires_in else None
    integration = _store_oauth_tokens(PlatformEnum.GOOGLE, access_token, token_response.get('refresh_token'), expires_at)
    return _frontend_redirect(connected='google', integrationId=integration.id)

@integrations_bp.route('/meta/connect', methods=['GET'])
@login_required
def meta_connect():
    redirect_uri = url_for('integrations.meta_callback', _external=True)
    return oauth.meta_ads.authorize_redirect(redirect_uri)

@integrations_bp.route('/meta/callback', methods=['GET'])
@login_required
def meta_callback():
    """
    Completes the Meta OAuth flow and swaps the short-lived user token for a
    long-lived one. When the exchange fails the short-lived token is kept.
    """
    try:
        token_response = oauth.meta_ads.authorize_access_token()
    except OAuthError as e:
        current_app.logger.error(f"Meta Ads OAuthError during initial token authorization: {e.error} - {e.description}", exc_info=True)
        return _frontend_redirect(error='meta_oauth_failed')

    short_lived_token = token_response.get('access_token')
    if not short_lived_token:
        current_app.logger.error(f"Meta Ads OAuth: no access token for user {current_user.id}.")
        return _frontend_redirect(error='meta_oauth_failed')

    access_token, expires_in = short_lived_token, token_response.get('expires_in')
    app_id, app_secret = get_app_credentials(PlatformEnum.META)
    try:
        long_lived_token, long_expires_in = MetaGraphClient.from_app_config(short_lived_token) \
            .exchange_long_lived_token(app_id, app_secret)
        if long_lived_token:
            access_token, expires_in = long_lived_token, long_expires_in
            current_app.logger.info(f"Exchanged Meta short-lived token for a long-lived token for user {current_user.id}.")
    except SyncError as e:
        current_app.logger.error(f"Meta Ads long-lived token exchange failed for user {current_user.id}: {e.message}")

    expires_at = datetime.utcnow() + timedelta(seconds=int(expires_in)) if expires_in else None
    integration = _store_oauth_tokens(PlatformEnum.META, access_token, None, expires_at)
    return _frontend_redirect(connected='meta', integrationId=integration.id)
