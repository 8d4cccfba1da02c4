from datetime import datetime
from extensions import db
from utils.helpers import isoformat_or_none, to_float

class Campaign(db.Model):
    """
    An advertising campaign, either pulled from an ad platform (external_id set) or
    created by hand in the dashboard.
    """
    __tablename__ = 'campaigns'

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    integration_id = db.Column(db.Integer, db.ForeignKey('integrations.id', ondelete='SET NULL'), nullable=True, index=True)
    external_id = db.Column(db.String(255), nullable=True, index=True) # Platform campaign id.
    name = db.Column(db.String(500), nullable=False)
    platform = db.Column(db.String(20), nullable=True) # 'meta' | 'google' | None for manual campaigns.
    status = db.Column(db.String(50), nullable=False, default='active', index=True)
    account = db.Column(db.String(255), nullable=True) # Ad account display name.
    objective = db.Column(db.String(100), nullable=True)
    budget = db.Column(db.Numeric(14, 2), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    integration = db.relationship('Integration', backref=db.backref('campaigns', lazy='dynamic'))
    ad_sets = db.relationship('AdSet', backref='campaign', lazy='dynamic', cascade='all, delete-orphan')
    creatives = db.relationship('Creative', backref='campaign', lazy='dynamic', cascade='all, delete-orphan')

    @property
    def is_active(self):
        return (self.status or '').lower() == 'active'

    def to_dict(self):
        return {
            "id": self.id,
            "companyId": self.company_id,
            "userId": self.user_id,
            "integrationId": self.integration_id,
            "externalId": self.external_id,
            "name": self.name,
            "platform": self.platform,
            "status": self.status,
            "account": self.account,
            "objective": self.objective,
            "budget": to_float(self.budget),
            "createdAt": isoformat_or_none(self.created_at),
            "updatedAt": isoformat_or_none(self.updated_at),
        }

    def __repr__(self):
        return f'<Campaign {self.id} {self.name!r} ({self.status})>'

class AdSet(db.Model):
    """Ad set (Meta) or ad group (Google) inside a campaign."""
    __tablename__ = 'ad_sets'

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=False, index=True)
    external_id = db.Column(db.String(255), nullable=True, index=True)
    name = db.Column(db.String(500), nullable=False)
    status = db.Column(db.String(50), nullable=False, default='active')
    daily_budget = db.Column(db.Numeric(14, 2), nullable=True)
    lifetime_budget = db.Column(db.Numeric(14, 2), nullable=True)
    bid_strategy = db.Column(db.String(100), nullable=True)
    targeting = db.Column(db.JSON, nullable=True)
    start_time = db.Column(db.DateTime, nullable=True)
    end_time = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    creatives = db.relationship('Creative', backref='ad_set', lazy='dynamic')

    def to_dict(self):
        return {
            "id": self.id,
            "campaignId": self.campaign_id,
            "externalId": self.external_id,
            "name": self.name,
            "status": self.status,
            "dailyBudget": to_float(self.daily_budget),
            "lifetimeBudget": to_float(self.lifetime_budget),
            "bidStrategy": self.bid_strategy,
            "targeting": self.targeting,
            "startTime": isoformat_or_none(self.start_time),
            "endTime": isoformat_or_none(self.end_time),
            "createdAt": isoformat_or_none(self.created_at),
        }

    def __repr__(self):
        return f'<AdSet {self.id} {self.name!r}>'
