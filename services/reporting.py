"""
Aggregations behind the dashboard and report endpoints.

All functions take the requesting user and only look at that user's company
(super admins without a company see everything).
"""
import re
from collections import OrderedDict
import numpy as np
from sqlalchemy import func
from extensions import db
from models.audit import Audit, AuditStatusEnum
from models.campaign import AdSet, Campaign
from models.creative import Creative
from utils.helpers import calculate_percentage, day_bounds, tenant_query, to_float

# Category -> patterns matched (case-insensitive) against an issue description.
# Order matters: the first matching category wins.
REJECTION_CATEGORIES = OrderedDict([
    ('logo', re.compile(r'logo', re.I)),
    ('colors', re.compile(r'colou?r', re.I)),
    ('prohibited', re.compile(r'prohibited|forbidden', re.I)),
    ('required', re.compile(r'required|missing', re.I)),
    ('copy', re.compile(r'copy|text|length|short|long', re.I)),
])
MAX_EXAMPLES = 3

def _mean(values):
    """numpy mean rounded to 2 decimals; 0.0 for an empty list."""
    if not values:
        return 0.0
    return round(float(np.mean(np.array(values, dtype=float))), 2)

def _date_filter(query, column, start_date, end_date):
    if start_date and end_date:
        start_dt, end_dt = day_bounds(start_date, end_date)
        query = query.filter(column >= start_dt, column < end_dt)
    return query

def creatives_query(user, integration_id=None):
    query = tenant_query(Creative, user)
    if integration_id:
        query = query.join(Campaign, Creative.campaign_id == Campaign.id).filter(Campaign.integration_id == integration_id)
    return query

def latest_audits(user, start_date=None, end_date=None, integration_id=None, status=None):
    """The most recent audit (by highest id) of every creative, optionally among audits with `status`."""
    latest_ids = db.session.query(func.max(Audit.id))
    if status is not None:
        latest_ids = latest_ids.filter(Audit.status == status)
    latest_ids = latest_ids.group_by(Audit.creative_id)
    query = tenant_query(Audit, user).filter(Audit.id.in_(latest_ids))
    if integration_id:
        query = query.join(Creative, Audit.creative_id == Creative.id) \
            .join(Campaign, Creative.campaign_id == Campaign.id).filter(Campaign.integration_id == integration_id)
    return _date_filter(query, Audit.created_at, start_date, end_date).all()

def issue_descriptions(audit):
    """Issue texts of an audit; issues may be dicts or plain strings."""
    descriptions = []
    for issue in audit.issues or []:
        if isinstance(issue, dict):
            descriptions.append(str(issue.get('description') or issue.get('type') or ''))
        elif issue:
            descriptions.append(str(issue))
    return [d for d in descriptions if d]

def categorize_issue(description):
    for category, pattern in REJECTION_CATEGORIES.items():
        if pattern.search(description):
            return category
    return 'other'

# --- Dashboard ---

def dashboard_metrics(user, integration_id=None, start_date=None, end_date=None):
    campaigns = tenant_query(Campaign, user)
    if integration_id:
        campaigns = campaigns.filter(Campaign.integration_id == integration_id)
    active_campaigns = campaigns.filter(func.lower(Campaign.status) == 'active').count()

    creatives = creatives_query(user, integration_id).filter(Creative.impressions > 0).all()
    average_ctr = _mean([creative.effective_ctr for creative in creatives])

    audits = latest_audits(user, start_date, end_date, integration_id)
    compliant = sum(1 for audit in audits if audit.status == AuditStatusEnum.COMPLIANT)
    non_compliant = sum(1 for audit in audits if audit.status == AuditStatusEnum.NON_COMPLIANT)
    return {
        "activeCampaigns": active_campaigns,
        "averageCtr": average_ctr,
        "compliant": compliant,
        "nonCompliant": non_compliant,
    }

def problem_creatives(user, limit=5, integration_id=None):
    audits = latest_audits(user, integration_id=integration_id, status=AuditStatusEnum.NON_COMPLIANT)
    audits.sort(key=lambda audit: audit.id, reverse=True)
    return [{"creative": audit.creative.to_dict(), "audit": audit.to_dict()} for audit in audits[:limit]]

def top_campaigns(user, limit=5, integration_id=None):
    """Campaigns ranked by spend (clicks x CPC summed over their creatives)."""
    spend = func.coalesce(func.sum(Creative.clicks * Creative.cpc), 0)
    rows = db.session.query(Campaign, spend.label('spend'),
                            func.coalesce(func.sum(Creative.impressions), 0).label('impressions'),
                            func.coalesce(func.sum(Creative.clicks), 0).label('clicks'),
                            func.coalesce(func.sum(Creative.conversions), 0).label('conversions')) \
        .outerjoin(Creative, Creative.campaign_id == Campaign.id)
    if not user.is_super_admin:
        rows = rows.filter(Campaign.company_id == user.company_id)
    if integration_id:
        rows = rows.filter(Campaign.integration_id == integration_id)
    rows = rows.group_by(Campaign.id).order_by(spend.desc()).limit(limit).all()
    return [{
        **campaign.to_dict(),
        "spend": round(to_float(spend_value) or 0.0, 2),
        "impressions": int(impressions),
        "clicks": int(clicks),
        "conversions": int(conversions),
        "ctr": calculate_percentage(int(clicks), int(impressions)),
    } for campaign, spend_value, impressions, clicks, conversions in rows]

def compliance_stats(user, integration_id=None):
    """
    Counts over the latest audit of each creative. `total` is compliant +
    nonCompliant + pending, where pending are creatives never audited; other
    audit outcomes are reported separately and left out of the rate.
    """
    audits = latest_audits(user, integration_id=integration_id)
    audited_ids = {audit.creative_id for audit in audits}
    creative_ids = [row.id for row in creatives_query(user, integration_id).with_entities(Creative.id).all()]
    compliant = sum(1 for audit in audits if audit.status == AuditStatusEnum.COMPLIANT)
    non_compliant = sum(1 for audit in audits if audit.status == AuditStatusEnum.NON_COMPLIANT)
    pending = sum(1 for creative_id in creative_ids if creative_id not in audited_ids)
    total = compliant + non_compliant + pending
    return {
        "total": total,
        "compliant": compliant,
        "nonCompliant": non_compliant,
        "pending": pending,
        "lowPerformance": sum(1 for audit in audits if audit.status == AuditStatusEnum.LOW_PERFORMANCE),
        "needsReview": sum(1 for audit in audits if audit.status == AuditStatusEnum.NEEDS_REVIEW),
        "complianceRate": calculate_percentage(compliant, total),
    }

# --- Reports ---

def consolidated_metrics(user, start_date=None, end_date=None):
    campaigns = tenant_query(Campaign, user)
    total_campaigns = campaigns.count()
    active_campaigns = campaigns.filter(func.lower(Campaign.status) == 'active').count()

    ad_sets = AdSet.query.join(Campaign, AdSet.campaign_id == Campaign.id)
    if not user.is_super_admin:
        ad_sets = ad_sets.filter(Campaign.company_id == user.company_id)

    total_creatives = creatives_query(user).count()
    analyzed = tenant_query(Audit, user).with_entities(func.count(func.distinct(Audit.creative_id))).scalar() or 0

    audits = _date_filter(tenant_query(Audit, user), Audit.created_at, start_date, end_date).all()
    scores = [audit.compliance_score for audit in audits if audit.compliance_score is not None]
    return {
        "campaigns": {
            "total": total_campaigns,
            "active": active_campaigns,
            "inactive": total_campaigns - active_campaigns,
        },
        "adSets": {"total": ad_sets.count()},
        "creatives": {
            "total": total_creatives,
            "analyzed": analyzed,
            "pending": max(total_creatives - analyzed, 0),
        },
        "audits": {
            "total": len(audits),
            "compliant": sum(1 for audit in audits if audit.status == AuditStatusEnum.COMPLIANT),
            "nonCompliant": sum(1 for audit in audits if audit.status == AuditStatusEnum.NON_COMPLIANT),
            "pending": sum(1 for audit in audits if audit.status == AuditStatusEnum.NEEDS_REVIEW),
            "avgComplianceScore": _mean(scores),
        },
    }

def rejection_reasons(user, start_date=None, end_date=None):
    """Issues of non-compliant audits grouped by category, most frequent first."""
    audits = _date_filter(tenant_query(Audit, user).filter(Audit.status == AuditStatusEnum.NON_COMPLIANT),
                          Audit.created_at, start_date, end_date).order_by(Audit.created_at.desc()).all()
    groups = {}
    for audit in audits:
        for description in issue_descriptions(audit):
            category = categorize_issue(description)
            group = groups.setdefault(category, {"category": category, "count": 0, "creativeIds": [], "examples": []})
            group["count"] += 1
            if audit.creative_id not in group["creativeIds"]:
                group["creativeIds"].append(audit.creative_id)
            if len(group["examples"]) < MAX_EXAMPLES and description not in group["examples"]:
                group["examples"].append(description)
    return sorted(groups.values(), key=lambda group: group["count"], reverse=True)

def audits_by_keyword(user, keyword):
    """Non-compliant audits with at least one issue mentioning `keyword`."""
    needle = keyword.strip().lower()
    audits = tenant_query(Audit, user).filter(Audit.status == AuditStatusEnum.NON_COMPLIANT) \
        .order_by(Audit.created_at.desc()).all()
    results = []
    for audit in audits:
        matching = [d for d in issue_descriptions(audit) if needle in d.lower()]
        if matching:
            results.append({
                "audit": audit.to_dict(),
                "creative": audit.creative.to_dict(),
                "matchingIssues": matching,
            })
    return results

EXPORT_COLUMNS = ['auditId', 'creativeId', 'creativeName', 'campaignId', 'status', 'complianceScore',
                  'performanceScore', 'issues', 'createdAt']

def export_rows(user, start_date=None, end_date=None):
    audits = _date_filter(tenant_query(Audit, user), Audit.created_at, start_date, end_date) \
        .order_by(Audit.created_at.desc()).all()
    return [{
        "auditId": audit.id,
        "creativeId": audit.creative_id,
        "creativeName": audit.creative.name if audit.creative else None,
        "campaignId": audit.creative.campaign_id if audit.creative else None,
        "status": audit.status.value,
        "complianceScore": audit.compliance_score,
        "performanceScore": audit.performance_score,
        "issues": '; '.join(issue_descriptions(audit)),
        "createdAt": audit.created_at.isoformat() if audit.created_at else None,
    } for audit in audits]
