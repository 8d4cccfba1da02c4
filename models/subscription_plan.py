import enum
from datetime import datetime
from extensions import db # Import the SQLAlchemy instance from extensions.

class BillingCycleEnum(enum.Enum):
    MONTHLY = 'monthly'
    YEARLY = 'yearly'

class SubscriptionStatusEnum(enum.Enum):
    """
    Status of a company's paid subscription, as reported by Stripe.
    """
    ACTIVE = 'active'
    CANCELLED = 'cancelled'
    PAST_DUE = 'past_due'
    TRIALING = 'trialing'
    INCOMPLETE = 'incomplete'
    INCOMPLETE_EXPIRED = 'incomplete_expired'
    UNPAID = 'unpaid'

    @staticmethod
    def from_stripe_status(stripe_status_str):
        """
        Maps a Stripe subscription status string to a SubscriptionStatusEnum member.

        Args:
            stripe_status_str (str): Status from Stripe (e.g. "active", "trialing", "canceled").

        Returns:
            SubscriptionStatusEnum or None: None for statuses without a local counterpart.
        """
        if not stripe_status_str:
            return None
        mapping = {
            'active': SubscriptionStatusEnum.ACTIVE,
            'trialing': SubscriptionStatusEnum.TRIALING,
            'past_due': SubscriptionStatusEnum.PAST_DUE,
            'canceled': SubscriptionStatusEnum.CANCELLED, # Stripe spells it "canceled"
            'unpaid': SubscriptionStatusEnum.UNPAID,
            'incomplete': SubscriptionStatusEnum.INCOMPLETE,
            'incomplete_expired': SubscriptionStatusEnum.INCOMPLETE_EXPIRED,
        }
        return mapping.get(stripe_status_str.lower(), None)

class SubscriptionPlan(db.Model):
    """
    A plan a company can subscribe to.

    Besides price and the marketing feature list, a plan defines the usage limits
    copied onto the company (users, campaigns, audits per month) and the Stripe
    Price ID used for checkout.
    """
    __tablename__ = 'subscription_plans'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True)
    price = db.Column(db.Numeric(10, 2), nullable=False) # Numeric for exact currency amounts.
    billing_cycle = db.Column(db.Enum(BillingCycleEnum), nullable=False, default=BillingCycleEnum.MONTHLY)

    # --- Limits ---
    max_users = db.Column(db.Integer, nullable=False, default=5)
    max_campaigns = db.Column(db.Integer, nullable=False, default=10)
    max_audits_per_month = db.Column(db.Integer, nullable=False, default=100)

    # List of feature strings shown on the pricing page, e.g. ["AI analysis", "Up to 5 users"].
    features = db.Column(db.JSON, nullable=True)

    # Nullable while the plan is defined locally but not yet sold through Stripe.
    stripe_price_id = db.Column(db.String(100), unique=True, nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "price": float(self.price) if self.price is not None else None,
            "billingCycle": self.billing_cycle.value,
            "maxUsers": self.max_users,
            "maxCampaigns": self.max_campaigns,
            "maxAuditsPerMonth": self.max_audits_per_month,
            "features": self.features or [],
            "stripePriceId": self.stripe_price_id,
            "isActive": self.is_active,
        }

    def __repr__(self):
        return f'<SubscriptionPlan {self.name} - {self.price}>'
