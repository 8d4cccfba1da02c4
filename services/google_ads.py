"""
Google Ads API access through the official `google-ads` client.

The client is built per integration from the app's OAuth client and developer
token plus the integration's refresh token. Queries use GAQL via search_stream.
"""
from flask import current_app
from google.ads.googleads.client import GoogleAdsClient
from google.ads.googleads.errors import GoogleAdsException
from utils.errors import SyncError

STATUS_MAP = {
    'ENABLED': 'active',
    'PAUSED': 'paused',
    'REMOVED': 'archived',
}

CAMPAIGNS_QUERY = """
    SELECT
        campaign.id,
        campaign.name,
        campaign.status,
        campaign.advertising_channel_type,
        campaign_budget.amount_micros
    FROM campaign
    WHERE campaign.status != 'REMOVED'
"""

AD_GROUPS_QUERY = """
    SELECT
        ad_group.id,
        ad_group.name,
        ad_group.status,
        ad_group.cpc_bid_micros,
        campaign.id
    FROM ad_group
    WHERE ad_group.status != 'REMOVED'
"""

ADS_QUERY = """
    SELECT
        ad_group_ad.ad.id,
        ad_group_ad.ad.name,
        ad_group_ad.ad.type,
        ad_group_ad.ad.final_urls,
        ad_group_ad.ad.responsive_search_ad.headlines,
        ad_group_ad.ad.responsive_search_ad.descriptions,
        ad_group_ad.ad.image_ad.image_url,
        ad_group_ad.ad.video_ad.video.asset,
        ad_group_ad.status,
        ad_group.id,
        campaign.id,
        metrics.impressions,
        metrics.clicks,
        metrics.ctr,
        metrics.average_cpc,
        metrics.conversions
    FROM ad_group_ad
    WHERE ad_group_ad.status != 'REMOVED'
"""

# Video ads reference a YouTube asset; its video id lives on the asset itself.
VIDEO_ASSETS_QUERY = """
    SELECT
        asset.resource_name,
        asset.youtube_video_asset.youtube_video_id
    FROM asset
    WHERE asset.type = 'YOUTUBE_VIDEO'
"""

def normalize_customer_id(customer_id):
    """'123-456-7890' -> '1234567890'."""
    return str(customer_id or '').replace('-', '').strip()

def map_status(status):
    """Maps a Google status enum (or its name) to our lowercase status."""
    name = getattr(status, 'name', status)
    return STATUS_MAP.get(str(name).upper(), 'unknown') if name is not None else 'unknown'

def micros_to_currency(micros):
    if not micros:
        return 0.0
    return round(micros / 1_000_000, 2)

def log_google_ads_exception(ex, context):
    """Writes each failure error of a GoogleAdsException to the app log."""
    current_app.logger.error(f"GoogleAdsException during {context}: request id {ex.request_id}, status {ex.error.code().name}")
    for error in ex.failure.errors:
        current_app.logger.error(f'    Google Ads API Error Code: {error.error_code}, Message: "{error.message}".')
        if error.location:
            for field_path_element in error.location.field_path_elements:
                current_app.logger.error(f'        Error Location Field: {field_path_element.field_name}')

def build_client(refresh_token, login_customer_id=None):
    """
    Creates a GoogleAdsClient for one integration.

    Raises:
        SyncError: Developer token or OAuth client credentials are not configured.
    """
    config = current_app.config
    developer_token = config.get('GOOGLE_ADS_DEVELOPER_TOKEN')
    client_id = config.get('GOOGLE_ADS_CLIENT_ID')
    client_secret = config.get('GOOGLE_ADS_CLIENT_SECRET')
    if not all([developer_token, client_id, client_secret]):
        current_app.logger.error("Google Ads API credentials (developer token, client ID, client secret) are not configured.")
        raise SyncError("Google Ads API credentials are not configured on the server.")
    if not refresh_token:
        raise SyncError("Google Ads integration has no refresh token; reconnect the account.")

    credentials = {
        "developer_token": developer_token,
        "client_id": client_id,
        "client_secret": client_secret,
        "refresh_token": refresh_token,
        "use_proto_plus": True,
    }
    login_customer_id = normalize_customer_id(login_customer_id or config.get('GOOGLE_ADS_LOGIN_CUSTOMER_ID'))
    if login_customer_id:
        credentials["login_customer_id"] = login_customer_id
    return GoogleAdsClient.load_from_dict(credentials)

class GoogleAdsSyncClient:
    """Read-only access to one customer's campaigns, ad groups and ads."""

    def __init__(self, client, customer_id):
        self.client = client
        self.customer_id = normalize_customer_id(customer_id)

    def _search(self, query):
        ga_service = self.client.get_service("GoogleAdsService")
        try:
            stream = ga_service.search_stream(customer_id=self.customer_id, query=query)
            return [row for batch in stream for row in batch.results]
        except GoogleAdsException as ex:
            log_google_ads_exception(ex, f"query for customer {self.customer_id}")
            messages = "; ".join(error.message for error in ex.failure.errors) or str(ex)
            raise SyncError(f"Google Ads API error: {messages}")

    def list_accessible_customers(self):
        """Customer ids (hyphen-free) the refresh token can reach."""
        customer_service = self.client.get_service("CustomerService")
        try:
            response = customer_service.list_accessible_customers()
        except GoogleAdsException as ex:
            log_google_ads_exception(ex, "list_accessible_customers")
            raise SyncError("Could not list accessible Google Ads customers.")
        return [resource_name.split('/')[-1] for resource_name in response.resource_names]

    def get_campaigns(self):
        return [map_campaign(row) for row in self._search(CAMPAIGNS_QUERY)]

    def get_ad_groups(self):
        return [map_ad_group(row) for row in self._search(AD_GROUPS_QUERY)]

    def get_video_ids(self):
        """Asset resource name -> YouTube video id."""
        return {row.asset.resource_name: row.asset.youtube_video_asset.youtube_video_id
                for row in self._search(VIDEO_ASSETS_QUERY)}

    def get_ads(self):
        rows = self._search(ADS_QUERY)
        video_ids = {}
        if any(row.ad_group_ad.ad.video_ad.video.asset for row in rows):
            video_ids = self.get_video_ids()
        return [map_ad(row, video_ids) for row in rows]

# --- Row mappers ---

def map_campaign(row):
    return {
        "external_id": str(row.campaign.id),
        "name": row.campaign.name or f"Campaign {row.campaign.id}",
        "status": map_status(row.campaign.status),
        "objective": getattr(row.campaign.advertising_channel_type, 'name', None),
        "budget": micros_to_currency(row.campaign_budget.amount_micros),
        "platform": 'google',
    }

def map_ad_group(row):
    return {
        "external_id": str(row.ad_group.id),
        "name": row.ad_group.name or f"Ad group {row.ad_group.id}",
        "status": map_status(row.ad_group.status),
        "bid_strategy": f"CPC {micros_to_currency(row.ad_group.cpc_bid_micros)}" if row.ad_group.cpc_bid_micros else None,
        "campaign_external_id": str(row.campaign.id),
    }

def map_ad(row, video_ids=None):
    """Maps an ad_group_ad row onto Creative columns; responsive search ads become text creatives."""
    ad = row.ad_group_ad.ad
    headlines = [asset.text for asset in ad.responsive_search_ad.headlines if asset.text]
    descriptions = [asset.text for asset in ad.responsive_search_ad.descriptions if asset.text]
    image_url = ad.image_ad.image_url or None
    video_id = (video_ids or {}).get(ad.video_ad.video.asset) if ad.video_ad.video.asset else None

    if video_id:
        creative_type = 'video'
    elif image_url:
        creative_type = 'image'
    else:
        creative_type = 'text'

    metrics = row.metrics
    return {
        "external_id": str(ad.id),
        "name": ad.name or (headlines[0] if headlines else f"Ad {ad.id}"),
        "type": creative_type,
        "image_url": image_url,
        "video_url": f"https://www.youtube.com/watch?v={video_id}" if video_id else None,
        "text": ' | '.join(descriptions) or None,
        "headline": ' | '.join(headlines) or None,
        "status": map_status(row.ad_group_ad.status),
        "impressions": int(metrics.impressions or 0),
        "clicks": int(metrics.clicks or 0),
        "conversions": int(metrics.conversions or 0),
        "ctr": round((metrics.ctr or 0) * 100, 2), # API reports a ratio.
        "cpc": micros_to_currency(metrics.average_cpc),
        "platform": 'google',
        "campaign_external_id": str(row.campaign.id),
        "ad_set_external_id": str(row.ad_group.id),
    }
