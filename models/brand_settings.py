from datetime import datetime
from extensions import db
from utils.helpers import isoformat_or_none, to_float

# Used when a user has not stored benchmarks yet.
DEFAULT_BENCHMARKS = {
    "ctrMin": 1.0,
    "ctrTarget": 2.0,
    "cpcMax": 5.0,
    "cpcTarget": 2.0,
    "conversionsMin": 5,
    "conversionsTarget": 10,
}

class BrandConfiguration(db.Model):
    """Visual identity of a brand: logo, colours, font and free-form guidelines."""
    __tablename__ = 'brand_configurations'

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    brand_name = db.Column(db.String(255), nullable=False)
    logo_url = db.Column(db.String(2048), nullable=True)
    primary_color = db.Column(db.String(7), nullable=True)
    secondary_color = db.Column(db.String(7), nullable=True)
    accent_color = db.Column(db.String(7), nullable=True)
    font_family = db.Column(db.String(100), nullable=True)
    brand_guidelines = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def colors(self):
        return [c for c in (self.primary_color, self.secondary_color, self.accent_color) if c]

    def to_dict(self):
        return {
            "id": self.id,
            "brandName": self.brand_name,
            "logoUrl": self.logo_url,
            "primaryColor": self.primary_color,
            "secondaryColor": self.secondary_color,
            "accentColor": self.accent_color,
            "fontFamily": self.font_family,
            "brandGuidelines": self.brand_guidelines,
            "isActive": self.is_active,
            "updatedAt": isoformat_or_none(self.updated_at),
        }

class ContentCriteria(db.Model):
    """Text rules: keywords and phrases that must or must not appear, and length bounds."""
    __tablename__ = 'content_criteria'

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    required_keywords = db.Column(db.JSON, nullable=True)
    prohibited_keywords = db.Column(db.JSON, nullable=True)
    required_phrases = db.Column(db.JSON, nullable=True)
    prohibited_phrases = db.Column(db.JSON, nullable=True)
    min_text_length = db.Column(db.Integer, nullable=True)
    max_text_length = db.Column(db.Integer, nullable=True)
    requires_logo = db.Column(db.Boolean, nullable=False, default=False)
    requires_brand_colors = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "requiredKeywords": self.required_keywords or [],
            "prohibitedKeywords": self.prohibited_keywords or [],
            "requiredPhrases": self.required_phrases or [],
            "prohibitedPhrases": self.prohibited_phrases or [],
            "minTextLength": self.min_text_length,
            "maxTextLength": self.max_text_length,
            "requiresLogo": self.requires_logo,
            "requiresBrandColors": self.requires_brand_colors,
            "isActive": self.is_active,
        }

class PerformanceBenchmarks(db.Model):
    """Per-user thresholds for the performance checks. One row per user."""
    __tablename__ = 'performance_benchmarks'

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    ctr_min = db.Column(db.Numeric(8, 2), nullable=True)
    ctr_target = db.Column(db.Numeric(8, 2), nullable=True)
    cpc_max = db.Column(db.Numeric(12, 2), nullable=True)
    cpc_target = db.Column(db.Numeric(12, 2), nullable=True)
    conversions_min = db.Column(db.Integer, nullable=True)
    conversions_target = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        """Benchmarks in the settings DTO shape; unset values fall back to DEFAULT_BENCHMARKS."""
        values = {
            "ctrMin": to_float(self.ctr_min),
            "ctrTarget": to_float(self.ctr_target),
            "cpcMax": to_float(self.cpc_max),
            "cpcTarget": to_float(self.cpc_target),
            "conversionsMin": self.conversions_min,
            "conversionsTarget": self.conversions_target,
        }
        return {key: DEFAULT_BENCHMARKS[key] if value is None else value for key, value in values.items()}
