import pytest
import requests
from datetime import datetime
from services.meta_ads import (MetaGraphClient, MetaTokenExpiredError, account_ref, cents_to_amount,
                               extract_conversions, map_ad, map_ad_set, map_campaign, parse_graph_time)
from utils.errors import SyncError

def graph_response(mocker, payload):
    response = mocker.Mock(status_code=200)
    response.json.return_value = payload
    return response

@pytest.fixture
def graph_client(app_context):
    return MetaGraphClient('token-123', max_retries=2, retry_base_seconds=0)

# --- Client ---

def test_get_all_follows_paging(mocker, graph_client):
    mock_get = mocker.patch('services.meta_ads.requests.get', side_effect=[
        graph_response(mocker, {"data": [{"id": "1"}], "paging": {"next": "https://graph.facebook.com/next?access_token=token-123"}}),
        graph_response(mocker, {"data": [{"id": "2"}], "paging": {}}),
    ])
    rows = graph_client.get_all('act_42/campaigns', {'fields': 'id'})

    assert [row["id"] for row in rows] == ["1", "2"]
    first_call, second_call = mock_get.call_args_list
    assert first_call.args[0] == 'https://graph.facebook.com/v21.0/act_42/campaigns'
    assert first_call.kwargs['params']['access_token'] == 'token-123'
    assert 'access_token' not in second_call.kwargs['params'] # Already part of the next URL.

def test_rate_limit_is_retried(mocker, graph_client):
    mocker.patch('services.meta_ads.time.sleep')
    mocker.patch('services.meta_ads.requests.get', side_effect=[
        graph_response(mocker, {"error": {"code": 17, "message": "User request limit reached"}}),
        graph_response(mocker, {"id": "me", "name": "Ana"}),
    ])
    assert graph_client.validate_token() == {"id": "me", "name": "Ana"}

def test_rate_limit_gives_up_after_retries(mocker, graph_client):
    sleep = mocker.patch('services.meta_ads.time.sleep')
    mocker.patch('services.meta_ads.requests.get',
                 return_value=graph_response(mocker, {"error": {"code": 4, "message": "Application request limit reached"}}))
    with pytest.raises(SyncError, match="rate limit persisted"):
        graph_client.validate_token()
    assert sleep.call_count == 2

def test_expired_token(mocker, graph_client):
    mocker.patch('services.meta_ads.requests.get',
                 return_value=graph_response(mocker, {"error": {"code": 190, "message": "Session has expired"}}))
    with pytest.raises(MetaTokenExpiredError) as exc_info:
        graph_client.get_campaigns('42')
    assert exc_info.value.status_code == 401

def test_network_failure_becomes_sync_error(mocker, graph_client):
    mocker.patch('services.meta_ads.requests.get', side_effect=requests.exceptions.ConnectionError("boom"))
    with pytest.raises(SyncError, match="Could not reach"):
        graph_client.validate_token()

def test_account_name_falls_back(mocker, graph_client):
    mocker.patch('services.meta_ads.requests.get',
                 return_value=graph_response(mocker, {"error": {"code": 100, "message": "Unsupported get request"}}))
    assert graph_client.get_account_name('42') == 'Unknown Account'

def test_list_ad_accounts_strips_prefix(mocker, graph_client):
    mocker.patch('services.meta_ads.requests.get', return_value=graph_response(mocker, {
        "data": [{"id": "act_42", "name": "Main", "account_status": 1, "currency": "BRL"}]}))
    assert graph_client.list_ad_accounts() == [{"id": "42", "name": "Main", "accountStatus": 1, "currency": "BRL"}]

def test_image_urls_skip_request_without_hashes(mocker, graph_client):
    mock_get = mocker.patch('services.meta_ads.requests.get')
    assert graph_client.get_image_urls('42', [None, '']) == {}
    mock_get.assert_not_called()

# --- Mappers ---

def test_small_helpers():
    assert account_ref('act_42') == 'act_42'
    assert account_ref('42') == 'act_42'
    assert cents_to_amount('12345') == 123.45
    assert cents_to_amount(None) is None
    assert parse_graph_time('2024-03-01T10:00:00-0300') == datetime(2024, 3, 1, 13, 0)
    assert parse_graph_time('yesterday') is None

def test_extract_conversions_reads_purchases():
    actions = [{"action_type": "link_click", "value": "40"},
               {"action_type": "offsite_conversion.fb_pixel_purchase", "value": "7"}]
    assert extract_conversions(actions) == 7
    assert extract_conversions(None) == 0

def test_map_campaign_and_ad_set():
    campaign = map_campaign({"id": "9", "name": "Spring", "status": "ACTIVE", "effective_status": "PAUSED",
                             "objective": "OUTCOME_SALES", "daily_budget": "5000"}, "Main")
    assert campaign == {"external_id": "9", "name": "Spring", "status": "paused", "objective": "OUTCOME_SALES",
                        "budget": 50.0, "account": "Main", "platform": "meta"}

    ad_set = map_ad_set({"id": "11", "status": "ACTIVE", "lifetime_budget": "100000",
                         "start_time": "2024-03-01T00:00:00+0000"})
    assert ad_set["name"] == "Ad set 11"
    assert ad_set["lifetime_budget"] == 1000.0
    assert ad_set["daily_budget"] is None
    assert ad_set["start_time"] == datetime(2024, 3, 1)

def test_map_ad_prefers_permanent_image_url():
    data = {
        "id": "77", "name": "Hero ad", "status": "ACTIVE", "campaign_id": "9", "adset_id": "11",
        "creative": {"image_hash": "abc", "image_url": "https://cdn.example.com/expiring.jpg",
                     "body": "Summer sale", "title": "Shop now", "call_to_action_type": "SHOP_NOW"},
        "insights": {"data": [{"impressions": "1000", "clicks": "25", "ctr": "2.5", "cpc": "1.234",
                               "actions": [{"action_type": "offsite_conversion.fb_pixel_purchase", "value": "3"}]}]},
    }
    ad = map_ad(data, {"abc": "https://example.com/permanent.jpg"})

    assert ad["image_url"] == "https://example.com/permanent.jpg"
    assert ad["type"] == "image"
    assert (ad["impressions"], ad["clicks"], ad["conversions"]) == (1000, 25, 3)
    assert ad["ctr"] == 2.5
    assert ad["cpc"] == 1.23
    assert ad["campaign_external_id"] == "9"
    assert ad["ad_set_external_id"] == "11"

def test_map_ad_video_and_missing_insights():
    ad = map_ad({"id": "78", "creative": {"video_id": "555"}})
    assert ad["type"] == "video"
    assert ad["video_url"] == "https://www.facebook.com/watch/?v=555"
    assert ad["impressions"] == 0
    assert ad["cpc"] is None
    assert ad["status"] == "unknown"
