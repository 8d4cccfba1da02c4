import copy
from conftest import make_user
from extensions import db
from models.policy import Policy
from test_settings_service import VALID_SETTINGS

def test_settings_defaults(operator_client):
    body = operator_client.get('/policies/settings').get_json()
    assert body["brand"]["logoUrl"] is None
    assert body["validationCriteria"]["forbiddenTerms"] == []
    assert body["brandPolicies"]["autoApproval"] is False

def test_update_settings_roundtrip(operator_client):
    response = operator_client.put('/policies/settings', json=copy.deepcopy(VALID_SETTINGS))
    assert response.status_code == 200
    body = operator_client.get('/policies/settings').get_json()
    assert body["brand"]["primaryColor"] == "#112233"
    assert body["validationCriteria"]["forbiddenTerms"] == ["guaranteed"]
    assert body["brandPolicies"]["autoActions"]["pauseOnViolation"] is True

def test_update_settings_rejects_invalid(operator_client):
    payload = copy.deepcopy(VALID_SETTINGS)
    payload["brand"]["primaryColor"] = "blue"
    response = operator_client.put('/policies/settings', json=payload)
    assert response.status_code == 400
    assert response.get_json()["error"] == "Invalid settings data"
    assert response.get_json()["details"]

def test_create_policy(operator_client):
    response = operator_client.post('/policies', json={
        "name": " Strict ", "scope": "campaign", "campaignIds": [3, 4], "rules": {"minTextLength": 20}})
    assert response.status_code == 201
    body = response.get_json()
    assert body["name"] == "Strict"
    assert body["status"] == "active"
    assert body["campaignIds"] == [3, 4]
    assert body["rules"] == {"minTextLength": 20}

def test_create_policy_rejects_bad_json_fields(operator_client):
    response = operator_client.post('/policies', json={"name": "Strict", "campaignIds": ["3"]})
    assert response.status_code == 400
    assert response.get_json()["error"] == "campaignIds must be a list of integers"
    response = operator_client.post('/policies', json={"name": "Strict", "rules": ["no"]})
    assert response.status_code == 400
    assert Policy.query.count() == 0

def test_only_one_default_policy(operator_client):
    first = operator_client.post('/policies', json={"name": "First", "isDefault": True}).get_json()
    second = operator_client.post('/policies', json={"name": "Second", "isDefault": True}).get_json()
    assert operator_client.get(f'/policies/{first["id"]}').get_json()["isDefault"] is False
    assert operator_client.get(f'/policies/{second["id"]}').get_json()["isDefault"] is True

def test_update_and_delete_policy(operator_client):
    policy_id = operator_client.post('/policies', json={"name": "Strict"}).get_json()["id"]
    response = operator_client.put(f'/policies/{policy_id}', json={"status": "inactive", "description": "Old"})
    assert response.get_json()["status"] == "inactive"
    assert response.get_json()["name"] == "Strict"
    assert operator_client.put(f'/policies/{policy_id}', json={"scope": "nowhere"}).status_code == 400
    assert operator_client.delete(f'/policies/{policy_id}').status_code == 204
    assert operator_client.get(f'/policies/{policy_id}').status_code == 404

def test_policies_are_owned_by_user(operator_client, company):
    colleague = make_user('bruno@acme.com', company)
    policy = Policy(company_id=company.id, user_id=colleague.id, name='Private', rules={}, campaign_ids=[])
    db.session.add(policy)
    db.session.commit()
    assert operator_client.get('/policies').get_json() == []
    assert operator_client.get(f'/policies/{policy.id}').status_code == 403
