from decimal import Decimal
from conftest import add_owned_rows, assert_owned_rows_gone, make_company, make_user
from extensions import db
from models.company import Company, CompanyStatusEnum, PlanTierEnum
from models.subscription_plan import SubscriptionPlan
from models.user import User, UserRoleEnum

def make_plan(slug='starter', price='49.90', **kwargs):
    plan = SubscriptionPlan(name=slug.title(), slug=slug, price=Decimal(price), **kwargs)
    db.session.add(plan)
    db.session.commit()
    return plan

def test_admin_area_requires_super_admin(admin_client):
    assert admin_client.get('/admin/companies').status_code == 403

def test_public_plans_lists_active_only(client):
    make_plan('starter', '49.90')
    make_plan('legacy', '9.90', is_active=False)
    response = client.get('/plans')
    assert response.status_code == 200
    assert [plan["slug"] for plan in response.get_json()] == ['starter']

def test_create_and_update_plan(super_admin_client):
    response = super_admin_client.post('/admin/plans', json={
        "name": "Professional", "slug": "professional", "price": 199.0, "maxUsers": 20,
        "billingCycle": "yearly", "features": ["AI analysis", "Priority support"]})
    assert response.status_code == 201
    body = response.get_json()
    assert body["billingCycle"] == "yearly"
    assert body["maxUsers"] == 20
    assert body["features"] == ["AI analysis", "Priority support"]

    response = super_admin_client.put(f'/admin/plans/{body["id"]}', json={"price": 149.5, "stripePriceId": "price_123"})
    assert response.status_code == 200
    assert response.get_json()["price"] == 149.5
    assert response.get_json()["stripePriceId"] == "price_123"
    assert response.get_json()["name"] == "Professional"

def test_plan_features_must_be_strings(super_admin_client):
    response = super_admin_client.post('/admin/plans', json={"name": "Odd", "slug": "odd", "price": 1, "features": [1, 2]})
    assert response.status_code == 400

def test_create_company_applies_plan(super_admin_client):
    plan = make_plan('starter', max_users=3, max_campaigns=7, max_audits_per_month=40)
    response = super_admin_client.post('/admin/companies', json={"name": "Initech Ltd", "planId": plan.id})
    assert response.status_code == 201
    body = response.get_json()
    assert body["slug"] == "initech-ltd"
    assert body["status"] == CompanyStatusEnum.TRIAL.value
    assert (body["maxUsers"], body["maxCampaigns"], body["maxAuditsPerMonth"]) == (3, 7, 40)
    assert body["subscriptionPlan"] == PlanTierEnum.STARTER.value

def test_create_company_duplicate_slug(super_admin_client):
    make_company(name="Initech", slug="initech")
    response = super_admin_client.post('/admin/companies', json={"name": "Initech"})
    assert response.status_code == 409

def test_suspend_company(super_admin_client):
    company = make_company()
    response = super_admin_client.put(f'/admin/companies/{company.id}', json={"status": "suspended"})
    assert response.status_code == 200
    assert company.status == CompanyStatusEnum.SUSPENDED

def test_delete_company_with_users_conflicts(super_admin_client):
    company = make_company()
    make_user('ana@acme.com', company)
    assert super_admin_client.delete(f'/admin/companies/{company.id}').status_code == 409

    empty = make_company(name='Empty', slug='empty')
    assert super_admin_client.delete(f'/admin/companies/{empty.id}').status_code == 204
    assert db.session.get(Company, empty.id) is None

def test_create_admin_user(super_admin_client):
    company = make_company()
    response = super_admin_client.post('/admin/admin-users', json={
        "email": "Boss@Acme.com", "password": "password123", "role": "company_admin", "companyId": company.id})
    assert response.status_code == 201
    assert response.get_json()["email"] == "boss@acme.com"
    assert company.current_users == 1

def test_company_user_needs_company(super_admin_client):
    response = super_admin_client.post('/admin/admin-users', json={
        "email": "boss@acme.com", "password": "password123", "role": "company_admin"})
    assert response.status_code == 400
    assert response.get_json()["error"] == "companyId is required for company users"

def test_list_admin_users(super_admin_client):
    make_user('boss@acme.com', make_company(), role=UserRoleEnum.COMPANY_ADMIN)
    make_user('worker@acme.com', Company.query.one())
    emails = {user["email"] for user in super_admin_client.get('/admin/admin-users').get_json()}
    assert emails == {'root@platform.com', 'boss@acme.com'}

def test_super_admin_cannot_delete_self(super_admin_client, super_admin):
    assert super_admin_client.delete(f'/admin/admin-users/{super_admin.id}').status_code == 400

def test_delete_admin_user_removes_owned_rows(super_admin_client):
    company = make_company()
    owner = make_user('ana@acme.com', company, role=UserRoleEnum.COMPANY_ADMIN)
    add_owned_rows(owner)

    assert super_admin_client.delete(f'/admin/admin-users/{owner.id}').status_code == 204

    assert db.session.get(User, owner.id) is None
    assert_owned_rows_gone()
    assert (company.current_users, company.current_campaigns) == (0, 0)

def test_moving_user_updates_both_companies(super_admin_client):
    acme = make_company()
    globex = make_company(name='Globex', slug='globex')
    user = make_user('ana@acme.com', acme)

    response = super_admin_client.put(f'/admin/admin-users/{user.id}', json={"companyId": globex.id})

    assert response.status_code == 200
    assert response.get_json()["companyId"] == globex.id
    assert (acme.current_users, globex.current_users) == (0, 1)

    super_admin_client.put(f'/admin/admin-users/{user.id}', json={"companyId": globex.id})
    assert globex.current_users == 1
