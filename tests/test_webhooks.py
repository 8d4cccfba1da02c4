import hashlib
import hmac
import json
from conftest import make_company, make_user
from extensions import db
from models.campaign import Campaign
from models.webhook_event import WebhookEvent

APP_SECRET = 'meta-app-secret'

def signed_post(client, payload, secret=APP_SECRET):
    body = json.dumps(payload).encode()
    signature = 'sha256=' + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return client.post('/webhooks/meta', data=body, content_type='application/json',
                       headers={'X-Hub-Signature-256': signature})

def test_verify_handshake(client):
    response = client.get('/webhooks/meta?hub.mode=subscribe&hub.verify_token=verify-me&hub.challenge=42')
    assert response.status_code == 200
    assert response.data == b'42'

def test_verify_rejects_wrong_token(client):
    response = client.get('/webhooks/meta?hub.mode=subscribe&hub.verify_token=nope&hub.challenge=42')
    assert response.status_code == 403

def test_event_with_bad_signature_is_rejected(client):
    response = signed_post(client, {"object": "ad_account", "entry": []}, secret='wrong')
    assert response.status_code == 403
    assert WebhookEvent.query.count() == 0

def test_status_change_updates_campaign(client):
    company = make_company()
    user = make_user('ana@acme.com', company)
    campaign = Campaign(company_id=company.id, user_id=user.id, name='Spring', external_id='120', status='active')
    db.session.add(campaign)
    db.session.commit()

    payload = {"object": "ad_account", "entry": [{"id": "act_42", "changes": [
        {"field": "campaigns", "value": {"id": "120", "status": "PAUSED", "event": "update"}},
        {"field": "leadgen", "value": {"leadgen_id": "9"}},
    ]}]}
    response = signed_post(client, payload)

    assert response.status_code == 200
    assert response.get_json() == {"received": True, "events": 2}
    assert campaign.status == 'paused'
    events = WebhookEvent.query.order_by(WebhookEvent.id).all()
    assert [e.object_type for e in events] == ['campaign', 'leadgen']
    assert events[0].external_id == '120'
    assert events[1].external_id == 'act_42'
    assert all(e.processed for e in events)

def test_malformed_changes_are_skipped(client):
    payload = {"object": "ad_account", "entry": ["oops", {"id": "act_42", "changes": [
        "not-a-change",
        {"field": "ads", "value": {"id": "77", "status": "ACTIVE"}},
    ]}]}
    response = signed_post(client, payload)

    assert response.get_json() == {"received": True, "events": 1}
    event = WebhookEvent.query.one()
    assert event.object_type == 'ad'
    assert event.external_id == '77'
