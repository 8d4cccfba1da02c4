"""
Pulls campaigns, ad sets and creatives from an integration's ad account and
upserts them by external id. Every run is recorded as a SyncHistory row.
"""
from datetime import datetime
from cryptography.fernet import InvalidToken
from flask import current_app
from extensions import db
from models.campaign import AdSet, Campaign
from models.creative import Creative, CreativeTypeEnum
from models.integration import IntegrationStatusEnum, SyncHistory, SyncStatusEnum
from models.platform_settings import PlatformEnum
from services import google_ads
from services.meta_ads import MetaGraphClient, MetaTokenExpiredError, map_ad, map_ad_set, map_campaign
from utils.errors import BadRequestError, SyncError

def _apply(obj, values):
    for key, value in values.items():
        setattr(obj, key, value)
    return obj

def _upsert_campaign(integration, values):
    campaign = Campaign.query.filter_by(company_id=integration.company_id, external_id=values["external_id"]).first()
    if campaign is None:
        campaign = Campaign(company_id=integration.company_id, user_id=integration.user_id)
        db.session.add(campaign)
    campaign.integration_id = integration.id
    return _apply(campaign, values)

def _upsert_ad_set(campaign, values):
    ad_set = AdSet.query.filter_by(campaign_id=campaign.id, external_id=values["external_id"]).first()
    if ad_set is None:
        ad_set = AdSet(campaign_id=campaign.id)
        db.session.add(ad_set)
    return _apply(ad_set, values)

def _upsert_creative(integration, campaign, ad_set, values):
    values = dict(values)
    values["type"] = CreativeTypeEnum(values["type"])
    creative = Creative.query.filter_by(company_id=integration.company_id, external_id=values["external_id"]).first()
    if creative is None:
        creative = Creative(company_id=integration.company_id, user_id=integration.user_id)
        db.session.add(creative)
    creative.campaign_id = campaign.id
    creative.ad_set_id = ad_set.id if ad_set is not None else None
    return _apply(creative, values)

def _store(integration, campaigns, ad_sets, ads):
    """
    Writes mapped platform rows. Ad sets and ads whose parent was not returned
    are skipped.

    Returns:
        tuple: (campaigns, ad sets, creatives) stored.
    """
    campaigns_by_external = {}
    for values in campaigns:
        campaign = _upsert_campaign(integration, values)
        campaigns_by_external[values["external_id"]] = campaign
    db.session.flush() # Campaign ids are needed below.

    ad_sets_by_external = {}
    for values in ad_sets:
        values = dict(values)
        campaign = campaigns_by_external.get(values.pop("campaign_external_id", None))
        if campaign is None:
            continue
        ad_sets_by_external[values["external_id"]] = _upsert_ad_set(campaign, values)
    db.session.flush()

    creatives_stored = 0
    for values in ads:
        values = dict(values)
        campaign = campaigns_by_external.get(values.pop("campaign_external_id", None))
        ad_set = ad_sets_by_external.get(values.pop("ad_set_external_id", None))
        if campaign is None:
            continue
        _upsert_creative(integration, campaign, ad_set, values)
        creatives_stored += 1
    return len(campaigns_by_external), len(ad_sets_by_external), creatives_stored

def _fetch_meta(integration):
    client = MetaGraphClient.from_app_config(integration.access_token)
    account_name = client.get_account_name(integration.account_id)
    campaigns = [map_campaign(row, account_name) for row in client.get_campaigns(integration.account_id)]
    raw_ad_sets = client.get_ad_sets(integration.account_id)
    ad_sets = []
    for row in raw_ad_sets:
        values = map_ad_set(row)
        values["campaign_external_id"] = row.get('campaign_id')
        ad_sets.append(values)
    raw_ads = client.get_ads(integration.account_id)
    hashes = [(row.get('creative') or {}).get('image_hash') for row in raw_ads]
    image_urls = client.get_image_urls(integration.account_id, hashes)
    ads = [map_ad(row, image_urls) for row in raw_ads]
    if account_name and not integration.account_name:
        integration.account_name = account_name
    return campaigns, ad_sets, ads

def _fetch_google(integration):
    client = google_ads.build_client(integration.refresh_token)
    sync_client = google_ads.GoogleAdsSyncClient(client, integration.account_id)
    campaigns = sync_client.get_campaigns()
    for values in campaigns:
        values["account"] = integration.account_name or integration.account_id
    return campaigns, sync_client.get_ad_groups(), sync_client.get_ads()

FETCHERS = {
    PlatformEnum.META: _fetch_meta,
    PlatformEnum.GOOGLE: _fetch_google,
}

def _record_failure(integration, history_id, message, expired=False):
    """Rolls back the partial sync and commits the failure on the integration and its history row."""
    db.session.rollback()
    history = db.session.get(SyncHistory, history_id)
    integration.mark_error(message)
    if expired:
        integration.status = IntegrationStatusEnum.EXPIRED
    history.status = SyncStatusEnum.FAILED
    history.error_message = message
    history.finished_at = datetime.utcnow()
    db.session.commit()
    return history

def sync_integration(integration):
    """
    Runs one synchronization and commits its outcome.

    On any failure the integration is marked `error` (or `expired` for a
    rejected Meta token or undecryptable stored credentials) and the history
    row `failed`. Platform errors are re-raised; anything else is raised as a
    SyncError chained to the original exception.

    Raises:
        BadRequestError: Integration inactive or no ad account selected.
        SyncError: The sync failed.

    Returns:
        SyncHistory: The completed history row.
    """
    if integration.status == IntegrationStatusEnum.INACTIVE:
        raise BadRequestError("Integration is disabled")
    if not integration.account_selected:
        raise BadRequestError("Select an ad account before syncing")

    history = SyncHistory(integration_id=integration.id, company_id=integration.company_id,
                          status=SyncStatusEnum.RUNNING, started_at=datetime.utcnow())
    db.session.add(history)
    db.session.commit()
    history_id = history.id
    current_app.logger.info(f"Sync {history_id} started for integration {integration.id} ({integration.platform.value}, account {integration.account_id}).")

    try:
        campaigns, ad_sets, ads = FETCHERS[integration.platform](integration)
        counts = _store(integration, campaigns, ad_sets, ads)
    except SyncError as e:
        _record_failure(integration, history_id, e.message, expired=isinstance(e, MetaTokenExpiredError))
        current_app.logger.error(f"Sync {history_id} for integration {integration.id} failed: {e.message}")
        raise
    except InvalidToken as e:
        message = "Stored credentials could not be decrypted; reconnect the integration"
        _record_failure(integration, history_id, message, expired=True)
        current_app.logger.error(f"Sync {history_id} for integration {integration.id} failed: {message}")
        raise SyncError(message) from e
    except Exception as e:
        message = f"Unexpected error during sync: {e.__class__.__name__}"
        _record_failure(integration, history_id, message)
        current_app.logger.error(f"Sync {history_id} for integration {integration.id} failed: {e}", exc_info=True)
        raise SyncError(message) from e

    history.campaigns_synced, history.ad_sets_synced, history.creatives_synced = counts
    history.status = SyncStatusEnum.COMPLETED
    history.finished_at = datetime.utcnow()
    integration.last_sync = history.finished_at
    integration.last_error = None
    integration.status = IntegrationStatusEnum.ACTIVE
    company = integration.user.company if integration.user else None
    if company is not None:
        company.current_campaigns = Campaign.query.filter_by(company_id=company.id).count()
    db.session.commit()
    current_app.logger.info(
        f"Sync {history.id} for integration {integration.id} completed: {counts[0]} campaigns, "
        f"{counts[1]} ad sets, {counts[2]} creatives."
    )
    return history
