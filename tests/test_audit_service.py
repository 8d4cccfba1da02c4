import pytest
from conftest import make_company, make_user
from models.audit import AuditActionTypeEnum, AuditStatusEnum
from models.brand_settings import ContentCriteria
from models.campaign import Campaign
from models.creative import Creative
from models.policy import Policy, PolicyStatusEnum
from models.user import UserRoleEnum
from services.audit_service import get_accessible_creative, run_creative_audit
from utils.errors import BadRequestError, ForbiddenError, NotFoundError

@pytest.fixture
def setup(db):
    company = make_company()
    user = make_user('auditor@acme.com', company)
    campaign = Campaign(company_id=company.id, user_id=user.id, name='Spring')
    db.session.add(campaign)
    db.session.flush()
    creative = Creative(company_id=company.id, user_id=user.id, campaign_id=campaign.id, name='Hero',
                        image_url='https://cdn.example.com/hero.jpg', text='Guaranteed results, buy now',
                        impressions=1000, clicks=30, conversions=12, cpc=1.5)
    db.session.add(creative)
    db.session.commit()
    return company, user, creative

def test_audit_stores_result_and_queues_actions(db, setup):
    company, user, creative = setup
    db.session.add_all([
        Policy(company_id=company.id, user_id=user.id, name='Strict', status=PolicyStatusEnum.ACTIVE, is_default=True,
               rules={"pauseOnViolation": True, "sendForReview": True}),
        ContentCriteria(company_id=company.id, user_id=user.id, name='Copy', prohibited_keywords=['guaranteed']),
    ])
    db.session.commit()

    audit = run_creative_audit(creative, user)
    db.session.commit()

    assert audit.status == AuditStatusEnum.NON_COMPLIANT
    assert audit.compliance_score == 85
    assert audit.ai_analysis["policyUsed"]["name"] == 'Strict'
    assert {a.action for a in audit.actions} == {AuditActionTypeEnum.PAUSE, AuditActionTypeEnum.FLAG_REVIEW}
    assert company.audits_this_month == 1

def test_audit_without_configuration_needs_review(db, setup):
    _, user, creative = setup
    audit = run_creative_audit(creative, user)
    assert audit.status == AuditStatusEnum.NEEDS_REVIEW
    assert audit.policy_id is None
    assert audit.actions.count() == 0

@pytest.mark.parametrize('image_url', [None, 'https://via.placeholder.com/300'])
def test_audit_requires_a_real_image(db, setup, image_url):
    _, user, creative = setup
    creative.image_url = image_url
    with pytest.raises(BadRequestError):
        run_creative_audit(creative, user)

def test_audit_respects_monthly_limit(db, setup):
    company, user, creative = setup
    company.max_audits_per_month = 1
    run_creative_audit(creative, user)
    with pytest.raises(ForbiddenError, match="Monthly audit limit"):
        run_creative_audit(creative, user)

def test_ai_analyzer_is_used_when_given(mocker, db, setup):
    _, user, creative = setup
    analyzer = mocker.Mock()
    analyzer.analyze_compliance.return_value = None
    analyzer.analyze_performance.return_value = None
    run_creative_audit(creative, user, ai_analyzer=analyzer)
    analyzer.analyze_compliance.assert_called_once()

def test_get_accessible_creative(db, setup):
    _, user, creative = setup
    assert get_accessible_creative(creative.id, user) is creative
    with pytest.raises(NotFoundError):
        get_accessible_creative(9999, user)

    outsider = make_user('spy@globex.com', make_company(name='Globex', slug='globex'))
    with pytest.raises(ForbiddenError):
        get_accessible_creative(creative.id, outsider)

    root = make_user('root@platform.com', role=UserRoleEnum.SUPER_ADMIN)
    assert get_accessible_creative(creative.id, root) is creative
