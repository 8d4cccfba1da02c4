import pytest
from app import create_app
from config import Config
from extensions import db as _db # Alias to avoid fixture name conflict
from models.audit import Audit, AuditStatusEnum
from models.brand_settings import PerformanceBenchmarks
from models.campaign import Campaign
from models.company import Company, CompanyStatusEnum
from models.creative import Creative
from models.integration import Integration, SyncHistory, SyncStatusEnum
from models.platform_settings import PlatformEnum
from models.policy import Policy
from models.user import User, UserRoleEnum

PASSWORD = 'password123'

class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:' # Use in-memory SQLite for tests
    WTF_CSRF_ENABLED = False # JSON forms are CSRF-exempt anyway; keeps plain FlaskForm tests simple
    SECRET_KEY = 'test-secret-key-for-forms' # WTForms/Flask-Login require a SECRET_KEY for session context
    # Valid URL-safe base64-encoded 32-byte key (b'0123456789abcdef0123456789abcdef').
    FERNET_KEY = b'MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY='
    STRIPE_SECRET_KEY = 'sk_test_dummy'
    STRIPE_WEBHOOK_SECRET = 'whsec_test_dummy'
    META_ADS_APP_ID = 'meta-app-id'
    META_ADS_APP_SECRET = 'meta-app-secret'
    META_WEBHOOK_VERIFY_TOKEN = 'verify-me'
    META_RETRY_BASE_SECONDS = 0
    OPENAI_API_KEY = None
    OBJECT_STORAGE_BUCKET = 'test-bucket'
    FRONTEND_URL = 'http://frontend.test'

@pytest.fixture(scope='session')
def app():
    """
    Session-wide test Flask application.
    Ensures the app is created once per test session with TestConfig.
    """
    app_instance = create_app(config_class=TestConfig)
    return app_instance

@pytest.fixture(scope='function')
def app_context(app):
    """
    Function-scoped application context.
    Pushes an app context before each test that needs it and pops it afterwards.
    """
    with app.app_context():
        yield

@pytest.fixture(scope='function')
def db(app_context):
    """
    Function-scoped database fixture.
    Creates all database tables before each test and drops them afterwards.
    """
    _db.create_all()
    yield _db
    _db.session.remove()
    _db.drop_all()

@pytest.fixture(scope='function')
def client(app, db):
    """A fresh test client per test, so no session cookie leaks between tests."""
    return app.test_client()

# --- Tenancy fixtures ---

def make_company(name='Acme', slug='acme', status=CompanyStatusEnum.ACTIVE, **kwargs):
    company = Company(name=name, slug=slug, status=status, **kwargs)
    _db.session.add(company)
    _db.session.commit()
    return company

def make_user(email, company=None, role=UserRoleEnum.OPERADOR, password=PASSWORD, **kwargs):
    user = User(email=email, company=company, role=role, first_name=email.split('@')[0], **kwargs)
    user.set_password(password)
    _db.session.add(user)
    if company is not None:
        company.current_users += 1
    _db.session.commit()
    return user

def login(client, user, password=PASSWORD):
    response = client.post('/auth/login', json={'email': user.email, 'password': password})
    assert response.status_code == 200, response.get_json()
    return client

@pytest.fixture
def company(db):
    return make_company()

@pytest.fixture
def other_company(db):
    return make_company(name='Globex', slug='globex')

@pytest.fixture
def admin_user(company):
    return make_user('admin@acme.com', company, role=UserRoleEnum.COMPANY_ADMIN)

@pytest.fixture
def operator_user(company):
    return make_user('operator@acme.com', company)

@pytest.fixture
def super_admin(db):
    return make_user('root@platform.com', role=UserRoleEnum.SUPER_ADMIN)

@pytest.fixture
def admin_client(client, admin_user):
    """Test client with a session for the company admin."""
    return login(client, admin_user)

@pytest.fixture
def operator_client(client, operator_user):
    return login(client, operator_user)

@pytest.fixture
def super_admin_client(client, super_admin):
    return login(client, super_admin)

def add_owned_rows(user):
    """An integration with history, a campaign with a creative and audit, a policy and benchmarks."""
    integration = Integration(company_id=user.company_id, user_id=user.id, platform=PlatformEnum.META, account_id='42')
    campaign = Campaign(company_id=user.company_id, user_id=user.id, name='Spring')
    _db.session.add_all([integration, campaign])
    _db.session.flush()
    creative = Creative(company_id=user.company_id, user_id=user.id, campaign_id=campaign.id, name='Hero')
    _db.session.add_all([
        creative,
        SyncHistory(integration_id=integration.id, company_id=user.company_id, status=SyncStatusEnum.COMPLETED),
        Policy(company_id=user.company_id, user_id=user.id, name='Strict', rules={}, campaign_ids=[]),
        PerformanceBenchmarks(company_id=user.company_id, user_id=user.id),
    ])
    _db.session.flush()
    _db.session.add(Audit(company_id=user.company_id, user_id=user.id, creative_id=creative.id,
                         status=AuditStatusEnum.COMPLIANT))
    user.company.current_campaigns += 1
    _db.session.commit()

def assert_owned_rows_gone():
    for model in (Integration, SyncHistory, Campaign, Creative, Policy, PerformanceBenchmarks, Audit):
        assert model.query.count() == 0, model.__name__
