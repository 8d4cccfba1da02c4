import pytest
from extensions import db
from models.audit import Audit, AuditStatusEnum
from models.campaign import Campaign
from models.creative import Creative

@pytest.fixture
def scenario(operator_user):
    """One campaign with three creatives: compliant, non-compliant and never audited."""
    campaign = Campaign(company_id=operator_user.company_id, user_id=operator_user.id, name='Spring', status='active')
    db.session.add(campaign)
    db.session.flush()

    def creative(name, impressions, clicks, cpc):
        item = Creative(company_id=operator_user.company_id, user_id=operator_user.id, campaign_id=campaign.id,
                        name=name, impressions=impressions, clicks=clicks, cpc=cpc)
        db.session.add(item)
        db.session.flush()
        return item

    fixed = creative('Fixed', 1000, 20, 1.5)
    broken = creative('Broken', 1000, 40, 1.0)
    fresh = creative('Fresh', 0, 0, None)

    def audit(target, status, issues=None):
        db.session.add(Audit(company_id=target.company_id, user_id=operator_user.id, creative_id=target.id,
                             status=status, compliance_score=50, issues=issues or []))
        db.session.flush()

    audit(fixed, AuditStatusEnum.NON_COMPLIANT, [{"type": "copy", "description": "Text too short"}])
    audit(fixed, AuditStatusEnum.COMPLIANT)
    audit(broken, AuditStatusEnum.NON_COMPLIANT,
          [{"type": "logo", "description": "Missing required logo"}, "Contains prohibited term 'free'"])
    db.session.commit()
    return {"campaign": campaign, "fixed": fixed, "broken": broken, "fresh": fresh}

def test_dashboard_metrics(operator_client, scenario):
    body = operator_client.get('/dashboard/metrics').get_json()
    assert body == {"activeCampaigns": 1, "averageCtr": 3.0, "compliant": 1, "nonCompliant": 1}

def test_dashboard_metrics_bad_custom_range(operator_client):
    response = operator_client.get('/dashboard/metrics?date_range=custom&start_date=2024-02-01')
    assert response.status_code == 400

def test_compliance_stats_counts_latest_audit(operator_client, scenario):
    body = operator_client.get('/dashboard/compliance-stats').get_json()
    assert body["total"] == 3
    assert body["pending"] == 1
    assert body["compliant"] == 1
    assert body["nonCompliant"] == 1
    assert body["complianceRate"] == 33.33

def test_problem_creatives_and_top_campaigns(operator_client, scenario):
    problems = operator_client.get('/dashboard/problem-creatives').get_json()
    assert [p["creative"]["name"] for p in problems] == ["Broken"]

    top = operator_client.get('/dashboard/top-campaigns').get_json()
    assert top[0]["name"] == "Spring"
    assert top[0]["spend"] == 70.0
    assert top[0]["ctr"] == 3.0

def test_recent_audits(operator_client, scenario):
    assert len(operator_client.get('/dashboard/recent-audits').get_json()) == 3

def test_consolidated_metrics(operator_client, scenario):
    body = operator_client.get('/reports/consolidated-metrics').get_json()
    assert body["campaigns"] == {"total": 1, "active": 1, "inactive": 0}
    assert body["creatives"] == {"total": 3, "analyzed": 2, "pending": 1}
    assert body["audits"]["total"] == 3
    assert body["audits"]["avgComplianceScore"] == 50.0

def test_rejection_reasons(operator_client, scenario):
    groups = {g["category"]: g for g in operator_client.get('/reports/rejection-reasons').get_json()}
    assert set(groups) == {"copy", "logo", "prohibited"}
    assert groups["logo"]["creativeIds"] == [scenario["broken"].id]
    assert groups["copy"]["examples"] == ["Text too short"]

def test_by_keyword(operator_client, scenario):
    results = operator_client.get('/reports/by-keyword?keyword=LOGO').get_json()
    assert [r["creative"]["name"] for r in results] == ["Broken"]
    assert results[0]["matchingIssues"] == ["Missing required logo"]
    assert operator_client.get('/reports/by-keyword?keyword=%20').status_code == 400

def test_export_csv(operator_client, scenario):
    response = operator_client.get('/reports/export?format=csv')
    assert response.status_code == 200
    assert response.mimetype == 'text/csv'
    assert 'attachment; filename=audit-report-' in response.headers['Content-Disposition']
    lines = response.data.decode().strip().splitlines()
    assert lines[0].startswith('auditId,creativeId,creativeName')
    assert len(lines) == 4

def test_export_json_and_bad_format(operator_client, scenario):
    assert operator_client.get('/reports/export').get_json()["count"] == 3
    assert operator_client.get('/reports/export?format=xml').status_code == 400
