import enum
from datetime import datetime
from extensions import db
from utils.helpers import isoformat_or_none

class AuditStatusEnum(enum.Enum):
    COMPLIANT = 'compliant'
    NON_COMPLIANT = 'non_compliant'
    LOW_PERFORMANCE = 'low_performance'
    NEEDS_REVIEW = 'needs_review'

class AuditActionTypeEnum(enum.Enum):
    PAUSE = 'pause'
    FLAG_REVIEW = 'flag_review'
    REQUEST_CORRECTION = 'request_correction'

class AuditActionStatusEnum(enum.Enum):
    PENDING = 'pending'
    EXECUTED = 'executed'
    FAILED = 'failed'

class Audit(db.Model):
    """
    Result of evaluating one creative against a policy.

    `issues` is a list of {"type", "description", "severity"} objects,
    `recommendations` a list of strings and `ai_analysis` the full evaluation detail
    (checks, summary, the brand config / criteria snapshot and the policy used).
    """
    __tablename__ = 'audits'

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    creative_id = db.Column(db.Integer, db.ForeignKey('creatives.id'), nullable=False, index=True)
    policy_id = db.Column(db.Integer, db.ForeignKey('policies.id', ondelete='SET NULL'), nullable=True, index=True)
    status = db.Column(db.Enum(AuditStatusEnum), nullable=False, index=True)
    compliance_score = db.Column(db.Float, nullable=True)
    performance_score = db.Column(db.Float, nullable=True)
    issues = db.Column(db.JSON, nullable=True)
    recommendations = db.Column(db.JSON, nullable=True)
    ai_analysis = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    policy = db.relationship('Policy', backref=db.backref('audits', lazy='dynamic'))
    actions = db.relationship('AuditAction', backref='audit', lazy='dynamic', cascade='all, delete-orphan')

    @property
    def overall_score(self):
        """Mean of compliance and performance score, ignoring missing ones."""
        scores = [s for s in (self.compliance_score, self.performance_score) if s is not None]
        if not scores:
            return None
        return round(sum(scores) / len(scores), 2)

    @property
    def is_non_compliant(self):
        return self.status == AuditStatusEnum.NON_COMPLIANT

    def to_dict(self):
        return {
            "id": self.id,
            "companyId": self.company_id,
            "userId": self.user_id,
            "creativeId": self.creative_id,
            "policyId": self.policy_id,
            "status": self.status.value,
            "complianceScore": self.compliance_score,
            "performanceScore": self.performance_score,
            "overallScore": self.overall_score,
            "issues": self.issues or [],
            "recommendations": self.recommendations or [],
            "aiAnalysis": self.ai_analysis,
            "createdAt": isoformat_or_none(self.created_at),
        }

    def __repr__(self):
        return f'<Audit {self.id} creative={self.creative_id} {self.status.value}>'

class AuditAction(db.Model):
    """Follow-up action on an audit (pause the ad, flag for review, ask for a fix)."""
    __tablename__ = 'audit_actions'

    id = db.Column(db.Integer, primary_key=True)
    audit_id = db.Column(db.Integer, db.ForeignKey('audits.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    action = db.Column(db.Enum(AuditActionTypeEnum), nullable=False)
    status = db.Column(db.Enum(AuditActionStatusEnum), nullable=False, default=AuditActionStatusEnum.PENDING)
    notes = db.Column(db.Text, nullable=True)
    executed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "auditId": self.audit_id,
            "userId": self.user_id,
            "action": self.action.value,
            "status": self.status.value,
            "notes": self.notes,
            "executedAt": isoformat_or_none(self.executed_at),
            "createdAt": isoformat_or_none(self.created_at),
        }
