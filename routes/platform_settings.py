from flask import Blueprint, jsonify, current_app
from flask_login import login_required, current_user

from forms import PlatformSettingsForm
from models.platform_settings import PlatformSettings, PlatformEnum
from extensions import db
from utils.decorators import super_admin_required
from utils.errors import BadRequestError, FormValidationError, NotFoundError
from utils.helpers import commit_session, get_json_payload

# OAuth app credentials per ad platform. Secrets are encrypted at rest and masked on read.
platform_settings_bp = Blueprint('platform_settings', __name__, url_prefix='/platform-settings')

def _parse_platform(value):
    platform = PlatformEnum.parse(value)
    if platform is None:
        raise BadRequestError(f"Invalid platform: '{value}'. Supported values are 'meta' or 'google'.")
    return platform

@platform_settings_bp.route('/<platform>', methods=['GET'])
@login_required
@super_admin_required
def get_settings(platform):
    settings = PlatformSettings.for_platform(_parse_platform(platform))
    if settings is None:
        return jsonify({"platform": platform.lower(), "appId": None, "appSecret": None,
                        "redirectUri": None, "isConfigured": False, "updatedAt": None})
    return jsonify(settings.to_dict())

@platform_settings_bp.route('', methods=['POST'])
@login_required
@super_admin_required
def upsert_settings():
    """
    Creates or updates the settings of one platform. An omitted or empty
    appSecret keeps the stored secret.
    """
    get_json_payload()
    form = PlatformSettingsForm()
    if not form.validate_on_submit():
        raise FormValidationError(form)

    platform = _parse_platform(form.platform.data)
    settings = PlatformSettings.for_platform(platform)
    created = settings is None
    if created:
        settings = PlatformSettings(platform=platform)
        db.session.add(settings)
    settings.app_id = form.appId.data.strip()
    if form.appSecret.data:
        settings.app_secret = form.appSecret.data.strip()
    settings.redirect_uri = form.redirectUri.data or settings.redirect_uri
    settings.refresh_configured_flag()
    commit_session("saving platform settings")
    current_app.logger.info(f"Super admin {current_user.id} {'created' if created else 'updated'} {platform.value} platform settings.")
    return jsonify(settings.to_dict()), 201 if created else 200

@platform_settings_bp.route('/<platform>', methods=['DELETE'])
@login_required
@super_admin_required
def delete_settings(platform):
    settings = PlatformSettings.for_platform(_parse_platform(platform))
    if settings is None:
        raise NotFoundError("Platform settings not found")
    db.session.delete(settings)
    commit_session("deleting platform settings")
    current_app.logger.info(f"Super admin {current_user.id} deleted {settings.platform.value} platform settings.")
    return '', 204

def get_app_credentials(platform):
    """
    (app_id, app_secret) for `platform`: stored platform settings first, then the
    META_ADS_* / GOOGLE_ADS_* configuration values.
    """
    settings = PlatformSettings.for_platform(platform)
    if settings is not None and settings.is_configured:
        return settings.app_id, settings.app_secret
    if platform == PlatformEnum.META:
        return current_app.config.get('META_ADS_APP_ID'), current_app.config.get('META_ADS_APP_SECRET')
    return current_app.config.get('GOOGLE_ADS_CLIENT_ID'), current_app.config.get('GOOGLE_ADS_CLIENT_SECRET')
