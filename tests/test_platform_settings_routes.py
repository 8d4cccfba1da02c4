from models.platform_settings import PlatformEnum, PlatformSettings
from routes.platform_settings import get_app_credentials

def test_unconfigured_platform(super_admin_client):
    response = super_admin_client.get('/platform-settings/meta')
    assert response.status_code == 200
    assert response.get_json()["isConfigured"] is False

def test_invalid_platform(super_admin_client):
    response = super_admin_client.get('/platform-settings/tiktok')
    assert response.status_code == 400

def test_upsert_masks_and_keeps_secret(super_admin_client):
    response = super_admin_client.post('/platform-settings', json={
        "platform": "meta", "appId": "1234", "appSecret": "meta-secret-value",
        "redirectUri": "https://app.example.com/integrations/meta/callback"})
    assert response.status_code == 201
    assert response.get_json()["appSecret"] == "*" * 13 + "alue"
    assert response.get_json()["isConfigured"] is True

    response = super_admin_client.post('/platform-settings', json={"platform": "meta", "appId": "5678", "appSecret": ""})
    assert response.status_code == 200
    settings = PlatformSettings.for_platform(PlatformEnum.META)
    assert settings.app_id == "5678"
    assert settings.app_secret == "meta-secret-value"
    assert settings.redirect_uri == "https://app.example.com/integrations/meta/callback"
    assert settings.app_secret_encrypted != "meta-secret-value"

def test_stored_settings_win_over_config(super_admin_client):
    assert get_app_credentials(PlatformEnum.META) == ('meta-app-id', 'meta-app-secret')
    super_admin_client.post('/platform-settings', json={"platform": "meta", "appId": "1234", "appSecret": "stored"})
    assert get_app_credentials(PlatformEnum.META) == ('1234', 'stored')

def test_delete_settings(super_admin_client):
    assert super_admin_client.delete('/platform-settings/google').status_code == 404
    super_admin_client.post('/platform-settings', json={"platform": "google", "appId": "client-id", "appSecret": "s"})
    assert super_admin_client.delete('/platform-settings/google').status_code == 204

def test_requires_super_admin(admin_client):
    assert admin_client.get('/platform-settings/meta').status_code == 403
