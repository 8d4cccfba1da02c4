"""
Meta (Facebook) Marketing API access through the Graph API, with `requests`.

`MetaGraphClient` handles authentication, pagination and rate-limit backoff;
the `map_*` functions turn Graph payloads into column dicts for our models.
"""
import json
import time
from datetime import datetime, timezone
import requests
from flask import current_app
from utils.errors import SyncError
from utils.helpers import to_float

GRAPH_BASE_URL = 'https://graph.facebook.com'
RATE_LIMIT_ERROR_CODES = {4, 17, 80004} # App, user and ads-management throttling.
EXPIRED_TOKEN_ERROR_CODE = 190
PURCHASE_ACTION_TYPE = 'offsite_conversion.fb_pixel_purchase'
UNKNOWN_ACCOUNT_NAME = 'Unknown Account'

CAMPAIGN_FIELDS = 'id,name,status,effective_status,objective,daily_budget,lifetime_budget'
AD_SET_FIELDS = 'id,name,status,campaign_id,daily_budget,lifetime_budget,bid_strategy,targeting,start_time,end_time'
AD_FIELDS = ('id,name,status,effective_status,campaign_id,adset_id,'
             'creative{id,name,image_hash,image_url,thumbnail_url,video_id,body,title,call_to_action_type,object_type},'
             'insights.date_preset(maximum){impressions,clicks,spend,ctr,cpc,actions}')

class MetaTokenExpiredError(SyncError):
    """The access token was rejected (Graph error 190); the user must reconnect."""
    status_code = 401

class MetaGraphClient:
    """
    Minimal Graph API client bound to one access token.

    Args:
        access_token (str): User or system-user token with ads_read.
        api_version (str): Graph API version, e.g. 'v21.0'.
        max_retries (int): Attempts on rate-limit errors before giving up.
        retry_base_seconds (float): Backoff base; wait is 2**attempt * base.
        timeout (int): Per-request timeout in seconds.
    """

    def __init__(self, access_token, api_version='v21.0', max_retries=5, retry_base_seconds=3.0, timeout=30):
        self.access_token = access_token
        self.base_url = f"{GRAPH_BASE_URL}/{api_version}"
        self.max_retries = max_retries
        self.retry_base_seconds = retry_base_seconds
        self.timeout = timeout

    @classmethod
    def from_app_config(cls, access_token):
        config = current_app.config
        return cls(
            access_token,
            api_version=config.get('META_GRAPH_API_VERSION', 'v21.0'),
            max_retries=config.get('META_MAX_RETRIES', 5),
            retry_base_seconds=config.get('META_RETRY_BASE_SECONDS', 3.0),
        )

    def _request(self, url, params=None):
        """
        GET with retry on throttling.

        Raises:
            MetaTokenExpiredError: Token rejected.
            SyncError: Any other Graph error, network failure, or retries exhausted.
        """
        request_params = dict(params or {})
        if 'access_token=' not in url:
            request_params['access_token'] = self.access_token

        for attempt in range(self.max_retries + 1):
            try:
                response = requests.get(url, params=request_params, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                current_app.logger.error(f"Meta Graph request to {url} failed: {e}")
                raise SyncError(f"Could not reach the Meta Graph API: {e}")
            try:
                payload = response.json()
            except ValueError:
                raise SyncError(f"Meta Graph API returned a non-JSON response (HTTP {response.status_code}).")

            error = payload.get('error') if isinstance(payload, dict) else None
            if not error:
                return payload

            code = error.get('code')
            message = error.get('message', 'Unknown error')
            if code in RATE_LIMIT_ERROR_CODES and attempt < self.max_retries:
                wait = (2 ** attempt) * self.retry_base_seconds
                current_app.logger.warning(f"Meta rate limit (code {code}) on attempt {attempt + 1}; retrying in {wait}s.")
                time.sleep(wait)
                continue
            if code == EXPIRED_TOKEN_ERROR_CODE:
                raise MetaTokenExpiredError(f"Meta access token is invalid or expired: {message}")
            if code in RATE_LIMIT_ERROR_CODES:
                raise SyncError(f"Meta rate limit persisted after {self.max_retries} retries: {message}")
            raise SyncError(f"Meta Graph API error {code}: {message}")
        raise SyncError("Meta Graph API request failed.") # Unreachable with max_retries >= 0.

    def get(self, path, params=None):
        return self._request(f"{self.base_url}/{path.lstrip('/')}", params)

    def get_all(self, path, params=None):
        """Collects `data` across pages by following `paging.next`."""
        results = []
        page = self.get(path, params)
        while True:
            results.extend(page.get('data', []))
            next_url = (page.get('paging') or {}).get('next')
            if not next_url:
                return results
            page = self._request(next_url)

    # --- Account level ---

    def validate_token(self):
        """Returns the /me payload ({'id', 'name'}) for a valid token."""
        return self.get('me', {'fields': 'id,name'})

    def exchange_long_lived_token(self, app_id, app_secret):
        """
        Trades the current short-lived token for a long-lived one (~60 days).

        Returns:
            tuple: (access_token, expires_in seconds or None)
        """
        payload = self.get('oauth/access_token', {
            'grant_type': 'fb_exchange_token',
            'client_id': app_id,
            'client_secret': app_secret,
            'fb_exchange_token': self.access_token,
        })
        return payload.get('access_token'), payload.get('expires_in')

    def list_ad_accounts(self):
        accounts = self.get_all('me/adaccounts', {'fields': 'id,account_id,name,account_status,currency', 'limit': 100})
        return [{
            "id": account.get('account_id') or strip_account_prefix(account.get('id')),
            "name": account.get('name'),
            "accountStatus": account.get('account_status'),
            "currency": account.get('currency'),
        } for account in accounts]

    def get_account_name(self, account_id):
        try:
            return self.get(account_ref(account_id), {'fields': 'name'}).get('name') or UNKNOWN_ACCOUNT_NAME
        except MetaTokenExpiredError:
            raise
        except SyncError as e:
            current_app.logger.warning(f"Could not read name of Meta account {account_id}: {e.message}")
            return UNKNOWN_ACCOUNT_NAME

    # --- Objects ---

    def get_campaigns(self, account_id):
        return self.get_all(f"{account_ref(account_id)}/campaigns", {'fields': CAMPAIGN_FIELDS, 'limit': 100})

    def get_ad_sets(self, account_id):
        return self.get_all(f"{account_ref(account_id)}/adsets", {'fields': AD_SET_FIELDS, 'limit': 100})

    def get_ads(self, account_id):
        return self.get_all(f"{account_ref(account_id)}/ads", {'fields': AD_FIELDS, 'limit': 50})

    def get_image_urls(self, account_id, hashes):
        """Maps image hashes to their permanent URLs via the account's adimages edge."""
        hashes = sorted({h for h in hashes if h})
        if not hashes:
            return {}
        images = self.get_all(f"{account_ref(account_id)}/adimages",
                              {'hashes': json.dumps(hashes), 'fields': 'hash,url,permalink_url'})
        return {image['hash']: image.get('permalink_url') or image.get('url')
                for image in images if image.get('hash')}

# --- Mapping helpers ---

def strip_account_prefix(account_id):
    if account_id and str(account_id).startswith('act_'):
        return str(account_id)[4:]
    return account_id

def account_ref(account_id):
    return f"act_{strip_account_prefix(account_id)}"

def cents_to_amount(value):
    """Graph API budgets are strings in the account currency's minor unit."""
    amount = to_float(value)
    return round(amount / 100, 2) if amount is not None else None

def parse_graph_time(value):
    """'2024-03-01T10:00:00+0000' -> naive UTC datetime; None when missing or malformed."""
    if not value:
        return None
    try:
        parsed = datetime.strptime(value, '%Y-%m-%dT%H:%M:%S%z')
    except ValueError:
        return None
    return parsed.astimezone(timezone.utc).replace(tzinfo=None)

def extract_conversions(actions):
    """Purchase conversions from an insights `actions` list."""
    for action in actions or []:
        if action.get('action_type') == PURCHASE_ACTION_TYPE:
            try:
                return int(float(action.get('value', 0)))
            except (TypeError, ValueError):
                return 0
    return 0

def map_campaign(data, account_name):
    return {
        "external_id": data.get('id'),
        "name": data.get('name') or f"Campaign {data.get('id')}",
        "status": (data.get('effective_status') or data.get('status') or 'unknown').lower(),
        "objective": data.get('objective'),
        "budget": cents_to_amount(data.get('daily_budget') or data.get('lifetime_budget')),
        "account": account_name,
        "platform": 'meta',
    }

def map_ad_set(data):
    return {
        "external_id": data.get('id'),
        "name": data.get('name') or f"Ad set {data.get('id')}",
        "status": (data.get('status') or 'unknown').lower(),
        "daily_budget": cents_to_amount(data.get('daily_budget')),
        "lifetime_budget": cents_to_amount(data.get('lifetime_budget')),
        "bid_strategy": data.get('bid_strategy'),
        "targeting": data.get('targeting'),
        "start_time": parse_graph_time(data.get('start_time')),
        "end_time": parse_graph_time(data.get('end_time')),
    }

def map_ad(data, image_urls=None):
    """
    Maps an ad (with nested creative and insights) onto Creative columns.

    The permanent image URL from `image_urls` (hash -> url) wins over the
    creative's own image_url, which Meta serves from expiring CDN links.
    """
    creative = data.get('creative') or {}
    insights_rows = (data.get('insights') or {}).get('data') or []
    insights = insights_rows[0] if insights_rows else {}

    image_url = (image_urls or {}).get(creative.get('image_hash')) or creative.get('image_url') or creative.get('thumbnail_url')
    video_id = creative.get('video_id')
    creative_type = 'video' if video_id else ('image' if image_url else 'text')

    return {
        "external_id": data.get('id'),
        "name": data.get('name') or creative.get('name') or f"Ad {data.get('id')}",
        "type": creative_type,
        "image_url": image_url,
        "video_url": f"https://www.facebook.com/watch/?v={video_id}" if video_id else None,
        "text": creative.get('body'),
        "headline": creative.get('title'),
        "call_to_action": creative.get('call_to_action_type'),
        "status": (data.get('effective_status') or data.get('status') or 'unknown').lower(),
        "impressions": int(to_float(insights.get('impressions')) or 0),
        "clicks": int(to_float(insights.get('clicks')) or 0),
        "conversions": extract_conversions(insights.get('actions')),
        "ctr": round(to_float(insights.get('ctr')) or 0.0, 2),
        "cpc": round(to_float(insights.get('cpc')), 2) if to_float(insights.get('cpc')) is not None else None,
        "platform": 'meta',
        "campaign_external_id": data.get('campaign_id'),
        "ad_set_external_id": data.get('adset_id'),
    }
