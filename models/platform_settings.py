import enum
from datetime import datetime
from extensions import db
from utils.security import encrypt_token, decrypt_token, mask_secret

class PlatformEnum(enum.Enum):
    """Ad platforms the auditor can pull campaigns and creatives from."""
    META = 'meta'
    GOOGLE = 'google'

    @classmethod
    def parse(cls, value):
        """Returns the member for `value` ('meta'/'google', case-insensitive) or None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

class PlatformSettings(db.Model):
    """
    Platform-wide OAuth app credentials for one ad platform, managed by super admins.

    The app secret is stored Fernet-encrypted and never returned in clear.
    """
    __tablename__ = 'platform_settings'

    id = db.Column(db.Integer, primary_key=True)
    platform = db.Column(db.Enum(PlatformEnum), unique=True, nullable=False)
    app_id = db.Column(db.String(255), nullable=True)
    app_secret_encrypted = db.Column(db.Text, nullable=True)
    redirect_uri = db.Column(db.String(1024), nullable=True)
    is_configured = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def app_secret(self):
        if self.app_secret_encrypted:
            return decrypt_token(self.app_secret_encrypted)
        return None

    @app_secret.setter
    def app_secret(self, value):
        self.app_secret_encrypted = encrypt_token(value) if value else None

    def refresh_configured_flag(self):
        self.is_configured = bool(self.app_id and self.app_secret_encrypted)

    @classmethod
    def for_platform(cls, platform):
        return cls.query.filter_by(platform=platform).first()

    def to_dict(self):
        return {
            "platform": self.platform.value,
            "appId": self.app_id,
            "appSecret": mask_secret(self.app_secret),
            "redirectUri": self.redirect_uri,
            "isConfigured": self.is_configured,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<PlatformSettings {self.platform.value} configured={self.is_configured}>'
