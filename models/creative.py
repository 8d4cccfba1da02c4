import enum
from datetime import datetime
from extensions import db
from utils.helpers import isoformat_or_none, to_float

# Creatives under these thresholds are flagged for manual review.
REVIEW_CTR_THRESHOLD = 1.0
REVIEW_CONVERSIONS_THRESHOLD = 5

class CreativeTypeEnum(enum.Enum):
    IMAGE = 'image'
    VIDEO = 'video'
    CAROUSEL = 'carousel'
    TEXT = 'text'

class Creative(db.Model):
    """
    An individual ad asset (image, video, carousel or text) belonging to a campaign.

    Holds the copy that policy rules are evaluated against and the delivery metrics
    (impressions, clicks, conversions, CTR, CPC) used by the performance checks.
    """
    __tablename__ = 'creatives'

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    campaign_id = db.Column(db.Integer, db.ForeignKey('campaigns.id'), nullable=False, index=True)
    ad_set_id = db.Column(db.Integer, db.ForeignKey('ad_sets.id'), nullable=True, index=True)
    external_id = db.Column(db.String(255), nullable=True, index=True) # Platform ad id.
    platform = db.Column(db.String(20), nullable=True)
    name = db.Column(db.String(500), nullable=False)
    type = db.Column(db.Enum(CreativeTypeEnum), nullable=False, default=CreativeTypeEnum.IMAGE)

    # --- Content ---
    image_url = db.Column(db.String(2048), nullable=True)
    video_url = db.Column(db.String(2048), nullable=True)
    text = db.Column(db.Text, nullable=True)
    headline = db.Column(db.String(500), nullable=True)
    description = db.Column(db.Text, nullable=True)
    call_to_action = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(50), nullable=False, default='active', index=True)

    # --- Metrics ---
    impressions = db.Column(db.Integer, nullable=False, default=0)
    clicks = db.Column(db.Integer, nullable=False, default=0)
    conversions = db.Column(db.Integer, nullable=False, default=0)
    ctr = db.Column(db.Numeric(8, 2), nullable=True) # Percent.
    cpc = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    company = db.relationship('Company')
    audits = db.relationship('Audit', backref='creative', lazy='dynamic', cascade='all, delete-orphan')

    def calculate_ctr(self):
        """Click-through rate in percent; 0 when there are no impressions."""
        if not self.impressions:
            return 0.0
        return (self.clicks or 0) / self.impressions * 100

    @property
    def effective_ctr(self):
        """Stored CTR when the platform reported one, computed otherwise."""
        if self.ctr is not None:
            return float(self.ctr)
        return self.calculate_ctr()

    def needs_review(self):
        return self.effective_ctr < REVIEW_CTR_THRESHOLD or (self.conversions or 0) < REVIEW_CONVERSIONS_THRESHOLD

    @property
    def spend(self):
        return (self.clicks or 0) * (to_float(self.cpc) or 0.0)

    def combined_text(self):
        """All copy fields joined, as the rule engine sees them."""
        parts = (self.text, self.headline, self.description, self.call_to_action)
        return ' '.join(part for part in parts if part)

    def to_dict(self):
        return {
            "id": self.id,
            "companyId": self.company_id,
            "userId": self.user_id,
            "campaignId": self.campaign_id,
            "adSetId": self.ad_set_id,
            "externalId": self.external_id,
            "platform": self.platform,
            "name": self.name,
            "type": self.type.value,
            "imageUrl": self.image_url,
            "videoUrl": self.video_url,
            "text": self.text,
            "headline": self.headline,
            "description": self.description,
            "callToAction": self.call_to_action,
            "status": self.status,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "conversions": self.conversions,
            "ctr": to_float(self.ctr),
            "cpc": to_float(self.cpc),
            "createdAt": isoformat_or_none(self.created_at),
            "updatedAt": isoformat_or_none(self.updated_at),
        }

    def __repr__(self):
        return f'<Creative {self.id} {self.name!r} ({self.type.value})>'
