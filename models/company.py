import enum
from datetime import datetime
from extensions import db
from utils.helpers import isoformat_or_none

class CompanyStatusEnum(enum.Enum):
    """Lifecycle state of a tenant account."""
    ACTIVE = 'active'
    SUSPENDED = 'suspended'   # Blocked by a super admin; users cannot log in.
    TRIAL = 'trial'           # Self-registered, limits of the free tier apply.
    CANCELLED = 'cancelled'

class PlanTierEnum(enum.Enum):
    """Commercial tier of a company. Matches SubscriptionPlan.slug for the built-in plans."""
    FREE = 'free'
    STARTER = 'starter'
    PROFESSIONAL = 'professional'
    ENTERPRISE = 'enterprise'

class Company(db.Model):
    """
    A tenant of the platform.

    Every user, integration, campaign, creative, policy and audit belongs to exactly
    one company. The company also carries the plan limits and the usage counters that
    those limits are checked against.
    """
    __tablename__ = 'companies'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True) # ^[a-z0-9-]+$
    logo_url = db.Column(db.String(1024), nullable=True)
    primary_color = db.Column(db.String(7), nullable=True) # '#RRGGBB'
    status = db.Column(db.Enum(CompanyStatusEnum), nullable=False, default=CompanyStatusEnum.TRIAL, index=True)

    # --- Subscription ---
    subscription_plan = db.Column(db.Enum(PlanTierEnum), nullable=False, default=PlanTierEnum.FREE)
    subscription_status = db.Column(db.String(50), nullable=True) # Mirrors SubscriptionStatusEnum values.
    subscription_start_date = db.Column(db.DateTime, nullable=True)
    subscription_end_date = db.Column(db.DateTime, nullable=True)
    trial_ends_at = db.Column(db.DateTime, nullable=True)
    stripe_customer_id = db.Column(db.String(120), unique=True, nullable=True, index=True)
    stripe_subscription_id = db.Column(db.String(120), unique=True, nullable=True, index=True)

    # --- Limits (copied from the plan when it changes) ---
    max_users = db.Column(db.Integer, nullable=False, default=5)
    max_campaigns = db.Column(db.Integer, nullable=False, default=10)
    max_audits_per_month = db.Column(db.Integer, nullable=False, default=100)

    # --- Usage counters ---
    current_users = db.Column(db.Integer, nullable=False, default=0)
    current_campaigns = db.Column(db.Integer, nullable=False, default=0)
    audits_this_month = db.Column(db.Integer, nullable=False, default=0)
    audits_month = db.Column(db.String(7), nullable=True) # 'YYYY-MM' the audit counter refers to.

    # --- Contact / billing ---
    contact_email = db.Column(db.String(255), nullable=True)
    billing_email = db.Column(db.String(255), nullable=True)
    tax_id = db.Column(db.String(50), nullable=True)
    settings = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = db.relationship('User', backref='company', lazy='dynamic')

    def apply_plan_limits(self, plan):
        """Copies the limits of a SubscriptionPlan onto the company."""
        self.max_users = plan.max_users
        self.max_campaigns = plan.max_campaigns
        self.max_audits_per_month = plan.max_audits_per_month
        try:
            self.subscription_plan = PlanTierEnum(plan.slug)
        except ValueError:
            pass # Custom plan slugs keep the current tier label.

    def can_add_user(self):
        return self.current_users < self.max_users

    def can_add_campaign(self):
        return self.current_campaigns < self.max_campaigns

    def release_member(self):
        """A member left the company (deleted or moved elsewhere)."""
        self.current_users = max(self.current_users - 1, 0)

    def release_campaigns(self, count):
        self.current_campaigns = max(self.current_campaigns - count, 0)

    def register_audit(self, now=None):
        """
        Counts one audit against the monthly allowance.

        The counter is reset lazily when the month changes.

        Returns:
            bool: False when the allowance for the current month is used up.
        """
        month = (now or datetime.utcnow()).strftime('%Y-%m')
        if self.audits_month != month:
            self.audits_month = month
            self.audits_this_month = 0
        if self.audits_this_month >= self.max_audits_per_month:
            return False
        self.audits_this_month += 1
        return True

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "logoUrl": self.logo_url,
            "primaryColor": self.primary_color,
            "status": self.status.value,
            "subscriptionPlan": self.subscription_plan.value,
            "subscriptionStatus": self.subscription_status,
            "subscriptionStartDate": isoformat_or_none(self.subscription_start_date),
            "subscriptionEndDate": isoformat_or_none(self.subscription_end_date),
            "trialEndsAt": isoformat_or_none(self.trial_ends_at),
            "maxUsers": self.max_users,
            "maxCampaigns": self.max_campaigns,
            "maxAuditsPerMonth": self.max_audits_per_month,
            "currentUsers": self.current_users,
            "currentCampaigns": self.current_campaigns,
            "auditsThisMonth": self.audits_this_month,
            "contactEmail": self.contact_email,
            "billingEmail": self.billing_email,
            "taxId": self.tax_id,
            "createdAt": isoformat_or_none(self.created_at),
        }

    def __repr__(self):
        return f'<Company {self.slug} ({self.status.value})>'
