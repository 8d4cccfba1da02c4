"""
Runs and persists creative audits: loads the owner's policy and brand setup,
calls the policy engine and stores the Audit plus any automatic follow-up actions.
"""
from flask import current_app
from extensions import db
from models.audit import Audit, AuditAction, AuditActionTypeEnum, AuditStatusEnum
from models.brand_settings import BrandConfiguration, ContentCriteria, PerformanceBenchmarks
from models.creative import Creative
from models.policy import Policy
from services.ai_analysis import CreativeAIAnalyzer
from services import policy_engine
from utils.errors import BadRequestError, ForbiddenError, NotFoundError

PLACEHOLDER_IMAGE_HOST = 'placeholder.com'

def load_active_brand_config(user):
    """The user's active brand configuration, else their first one."""
    query = BrandConfiguration.query.filter_by(user_id=user.id)
    return query.filter_by(is_active=True).first() or query.order_by(BrandConfiguration.id).first()

def load_active_criteria(user):
    query = ContentCriteria.query.filter_by(user_id=user.id)
    return query.filter_by(is_active=True).first() or query.order_by(ContentCriteria.id).first()

def load_benchmarks(user):
    return PerformanceBenchmarks.query.filter_by(user_id=user.id).first()

def get_accessible_creative(creative_id, user):
    """
    Fetches a creative and applies the tenant check.

    Raises:
        NotFoundError: Unknown id.
        ForbiddenError: Creative belongs to another company.
    """
    creative = db.session.get(Creative, creative_id)
    if creative is None:
        raise NotFoundError("Creative not found")
    if not user.can_access_company(creative.company_id):
        raise ForbiddenError("Access denied")
    return creative

def _queue_auto_actions(audit, policy, user):
    """Queues pause / review actions the policy asks for on non-compliant creatives."""
    if policy is None or audit.status != AuditStatusEnum.NON_COMPLIANT:
        return []
    queued = []
    if policy.rule('pauseOnViolation'):
        queued.append(AuditAction(audit=audit, user_id=user.id, action=AuditActionTypeEnum.PAUSE,
                                  notes="Queued automatically: policy pauses creatives on violation."))
    if policy.rule('sendForReview'):
        queued.append(AuditAction(audit=audit, user_id=user.id, action=AuditActionTypeEnum.FLAG_REVIEW,
                                  notes="Queued automatically: policy sends violations for review."))
    for action in queued:
        db.session.add(action)
    return queued

def run_creative_audit(creative, user, ai_analyzer=None):
    """
    Evaluates `creative` for `user` and adds the resulting Audit to the session.

    The caller commits. The owning company's monthly audit allowance is consumed.

    Raises:
        BadRequestError: Creative without a usable image.
        ForbiddenError: Monthly audit limit reached.

    Returns:
        Audit: The new (uncommitted) audit.
    """
    if not creative.image_url or PLACEHOLDER_IMAGE_HOST in creative.image_url:
        raise BadRequestError("Creative has no valid image to analyze")

    company = creative.company
    if company is not None and not company.register_audit():
        raise ForbiddenError(f"Monthly audit limit reached ({company.max_audits_per_month})")

    policies = Policy.query.filter_by(user_id=user.id).order_by(Policy.id).all()
    policy = policy_engine.select_policy(policies, creative.campaign_id)
    brand_config = load_active_brand_config(user)
    criteria = load_active_criteria(user)
    benchmarks = load_benchmarks(user)

    if ai_analyzer is None:
        ai_analyzer = CreativeAIAnalyzer.from_app_config()

    result = policy_engine.evaluate_creative(creative, policy, brand_config, criteria, benchmarks, ai_analyzer)

    audit = Audit(
        company_id=creative.company_id,
        user_id=user.id,
        creative_id=creative.id,
        policy_id=policy.id if policy else None,
        status=result["status"],
        compliance_score=result["complianceScore"],
        performance_score=result["performanceScore"],
        issues=result["issues"],
        recommendations=result["recommendations"],
        ai_analysis=result["aiAnalysis"],
    )
    db.session.add(audit)
    queued = _queue_auto_actions(audit, policy, user)
    current_app.logger.info(
        f"Audit of creative {creative.id} by user {user.id}: {audit.status.value} "
        f"(compliance {audit.compliance_score}, performance {audit.performance_score}, {len(queued)} action(s) queued)."
    )
    return audit
