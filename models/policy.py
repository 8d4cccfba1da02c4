import enum
from datetime import datetime
from extensions import db
from utils.helpers import isoformat_or_none

class PolicyStatusEnum(enum.Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'

class PolicyScopeEnum(enum.Enum):
    GLOBAL = 'global'     # Applies to every creative of the owner.
    CAMPAIGN = 'campaign' # Applies only to creatives of the campaigns in campaign_ids.

class Policy(db.Model):
    """
    A set of brand rules used to evaluate creatives.

    `rules` is a flat JSON object of switches, e.g.::

        {"autoApproval": false, "pauseOnViolation": true, "sendForReview": true,
         "autoFixMinor": false, "requireLogo": true, "requireBrandColors": false}

    `performance_thresholds` optionally overrides the user's benchmarks
    (ctrMin, cpcMax, conversionsMin ...).
    """
    __tablename__ = 'policies'

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    rules = db.Column(db.JSON, nullable=True)
    performance_thresholds = db.Column(db.JSON, nullable=True)
    status = db.Column(db.Enum(PolicyStatusEnum), nullable=False, default=PolicyStatusEnum.ACTIVE)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    scope = db.Column(db.Enum(PolicyScopeEnum), nullable=False, default=PolicyScopeEnum.GLOBAL)
    campaign_ids = db.Column(db.JSON, nullable=True) # List of Campaign ids when scope is CAMPAIGN.

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def is_active(self):
        return self.status == PolicyStatusEnum.ACTIVE

    def rule(self, name, default=False):
        return bool((self.rules or {}).get(name, default))

    def should_auto_approve(self):
        return self.rule('autoApproval')

    def covers_campaign(self, campaign_id):
        return self.scope == PolicyScopeEnum.CAMPAIGN and campaign_id in (self.campaign_ids or [])

    def to_dict(self):
        return {
            "id": self.id,
            "companyId": self.company_id,
            "userId": self.user_id,
            "name": self.name,
            "description": self.description,
            "rules": self.rules or {},
            "performanceThresholds": self.performance_thresholds or {},
            "status": self.status.value,
            "isDefault": self.is_default,
            "scope": self.scope.value,
            "campaignIds": self.campaign_ids or [],
            "createdAt": isoformat_or_none(self.created_at),
            "updatedAt": isoformat_or_none(self.updated_at),
        }

    def __repr__(self):
        return f'<Policy {self.id} {self.name!r} ({self.scope.value})>'
