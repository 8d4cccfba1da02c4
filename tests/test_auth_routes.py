from conftest import PASSWORD, make_company, make_user
from models.company import Company, CompanyStatusEnum
from models.user import User, UserRoleEnum

REGISTRATION = {"email": "Founder@Acme.com", "password": PASSWORD, "confirmPassword": PASSWORD,
                "firstName": "Ana", "lastName": "Silva", "companyName": "Acme Corp"}

def test_register_creates_trial_company_and_admin(client):
    response = client.post('/auth/register', json=REGISTRATION)
    assert response.status_code == 201
    body = response.get_json()
    assert body["user"]["email"] == "founder@acme.com"
    assert body["user"]["role"] == UserRoleEnum.COMPANY_ADMIN.value
    assert body["company"]["slug"] == "acme-corp"
    assert body["company"]["status"] == CompanyStatusEnum.TRIAL.value

    company = Company.query.filter_by(slug="acme-corp").one()
    assert company.current_users == 1
    assert company.trial_ends_at is not None

    me = client.get('/auth/me')
    assert me.status_code == 200
    assert me.get_json()["user"]["email"] == "founder@acme.com"

def test_register_suffixes_taken_slug(client):
    make_company(name="Acme Corp", slug="acme-corp")
    response = client.post('/auth/register', json=REGISTRATION)
    assert response.get_json()["company"]["slug"] == "acme-corp-2"

def test_register_duplicate_email_conflicts(client):
    make_user("founder@acme.com", make_company())
    response = client.post('/auth/register', json=REGISTRATION)
    assert response.status_code == 409
    assert User.query.count() == 1

def test_register_validation_errors(client):
    response = client.post('/auth/register', json=dict(REGISTRATION, password="123", confirmPassword="321"))
    assert response.status_code == 400
    details = response.get_json()["details"]
    assert "password" in details
    assert "confirmPassword" in details

def test_register_requires_json_body(client):
    response = client.post('/auth/register', data="email=a", content_type='text/plain')
    assert response.status_code == 400
    assert response.get_json()["error"] == "Request body must be a JSON object"

def test_login_with_wrong_password(client):
    make_user("ana@acme.com", make_company())
    response = client.post('/auth/login', json={"email": "ana@acme.com", "password": "wrong-password"})
    assert response.status_code == 401
    assert response.get_json() == {"error": "Invalid email or password"}

def test_login_refused_for_suspended_company(client):
    make_user("ana@acme.com", make_company(status=CompanyStatusEnum.SUSPENDED))
    response = client.post('/auth/login', json={"email": "ana@acme.com", "password": PASSWORD})
    assert response.status_code == 401
    assert response.get_json()["error"] == "Company account is suspended"

def test_login_refused_for_deactivated_user(client):
    make_user("ana@acme.com", make_company(), is_active=False)
    response = client.post('/auth/login', json={"email": "ana@acme.com", "password": PASSWORD})
    assert response.status_code == 401

def test_login_updates_last_login(client):
    user = make_user("ana@acme.com", make_company())
    response = client.post('/auth/login', json={"email": "ANA@acme.com", "password": PASSWORD, "rememberMe": True})
    assert response.status_code == 200
    assert response.get_json()["company"]["slug"] == "acme"
    assert user.last_login_at is not None

def test_me_requires_login(client):
    response = client.get('/auth/me')
    assert response.status_code == 401
    assert "error" in response.get_json()

def test_logout(operator_client):
    assert operator_client.post('/auth/logout').status_code == 200
    assert operator_client.get('/auth/me').status_code == 401
