import pytest
from types import SimpleNamespace as Row
from services import google_ads
from utils.errors import SyncError

def ad_row(ad_id=501, image_url='', video_asset='', headlines=(), descriptions=(), ctr=0.025, average_cpc=1_500_000):
    ad = Row(
        id=ad_id, name='',
        responsive_search_ad=Row(headlines=[Row(text=t) for t in headlines],
                                 descriptions=[Row(text=t) for t in descriptions]),
        image_ad=Row(image_url=image_url),
        video_ad=Row(video=Row(asset=video_asset)),
    )
    return Row(
        ad_group_ad=Row(ad=ad, status='ENABLED'),
        ad_group=Row(id=301),
        campaign=Row(id=101),
        metrics=Row(impressions=2000, clicks=50, ctr=ctr, average_cpc=average_cpc, conversions=4.0),
    )

def test_normalize_customer_id_and_status():
    assert google_ads.normalize_customer_id('123-456-7890') == '1234567890'
    assert google_ads.normalize_customer_id(None) == ''
    assert google_ads.map_status('ENABLED') == 'active'
    assert google_ads.map_status(Row(name='PAUSED')) == 'paused'
    assert google_ads.map_status('SOMETHING_NEW') == 'unknown'

def test_micros_to_currency():
    assert google_ads.micros_to_currency(12_345_678) == 12.35
    assert google_ads.micros_to_currency(0) == 0.0
    assert google_ads.micros_to_currency(None) == 0.0

def test_map_campaign_and_ad_group():
    row = Row(campaign=Row(id=101, name='Brand Search', status='ENABLED', advertising_channel_type=Row(name='SEARCH')),
              campaign_budget=Row(amount_micros=25_000_000))
    assert google_ads.map_campaign(row) == {
        "external_id": "101", "name": "Brand Search", "status": "active", "objective": "SEARCH",
        "budget": 25.0, "platform": "google",
    }

    group = Row(ad_group=Row(id=301, name='', status='PAUSED', cpc_bid_micros=750_000), campaign=Row(id=101))
    mapped = google_ads.map_ad_group(group)
    assert mapped["name"] == "Ad group 301"
    assert mapped["bid_strategy"] == "CPC 0.75"
    assert mapped["campaign_external_id"] == "101"

def test_map_responsive_search_ad_as_text():
    ad = google_ads.map_ad(ad_row(headlines=['Fast shipping', 'Big sale'], descriptions=['Order today']))
    assert ad["type"] == "text"
    assert ad["name"] == "Fast shipping"
    assert ad["headline"] == "Fast shipping | Big sale"
    assert ad["text"] == "Order today"
    assert ad["ctr"] == 2.5 # Ratio converted to percent.
    assert ad["cpc"] == 1.5
    assert ad["conversions"] == 4
    assert ad["ad_set_external_id"] == "301"

def test_map_video_ad_uses_asset_lookup():
    asset = 'customers/1/assets/9'
    ad = google_ads.map_ad(ad_row(video_asset=asset), {asset: 'dQw4w9WgXcQ'})
    assert ad["type"] == "video"
    assert ad["video_url"] == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

    image_ad = google_ads.map_ad(ad_row(image_url='https://example.com/banner.png'))
    assert image_ad["type"] == "image"

def test_sync_client_reads_stream(mocker, app_context):
    client = mocker.Mock()
    ga_service = client.get_service.return_value
    ga_service.search_stream.return_value = [Row(results=[ad_row(501)]), Row(results=[ad_row(502)])]

    ads = google_ads.GoogleAdsSyncClient(client, '123-456-7890').get_ads()

    assert [ad["external_id"] for ad in ads] == ["501", "502"]
    assert ga_service.search_stream.call_args.kwargs['customer_id'] == '1234567890'

def test_build_client_requires_credentials(app, mocker):
    with app.app_context():
        mocker.patch.dict(app.config, {'GOOGLE_ADS_DEVELOPER_TOKEN': None})
        with pytest.raises(SyncError, match="credentials are not configured"):
            google_ads.build_client('refresh-token')

def test_build_client_passes_login_customer(app, mocker):
    load = mocker.patch('services.google_ads.GoogleAdsClient.load_from_dict')
    with app.app_context():
        mocker.patch.dict(app.config, {'GOOGLE_ADS_DEVELOPER_TOKEN': 'dev', 'GOOGLE_ADS_CLIENT_ID': 'id',
                                       'GOOGLE_ADS_CLIENT_SECRET': 'secret', 'GOOGLE_ADS_LOGIN_CUSTOMER_ID': '111-222-3333'})
        google_ads.build_client('refresh-token')
    credentials = load.call_args.args[0]
    assert credentials["refresh_token"] == 'refresh-token'
    assert credentials["login_customer_id"] == '1112223333'
