import enum
from datetime import datetime
from extensions import db
from models.platform_settings import PlatformEnum
from utils.helpers import isoformat_or_none
from utils.security import encrypt_token, decrypt_token # For encrypting/decrypting tokens.

# Placeholder account id stored right after an OAuth connect, until the user picks an ad account.
PENDING_ACCOUNT_ID = 'pending_selection'

class IntegrationStatusEnum(enum.Enum):
    """
    State of the connection to an ad account.
    """
    ACTIVE = 'active'      # Token valid, account selected; sync allowed.
    INACTIVE = 'inactive'  # Disabled by the user.
    ERROR = 'error'        # Last sync or validation failed; see last_error.
    EXPIRED = 'expired'    # Token rejected by the platform; the user must reconnect.

class SyncStatusEnum(enum.Enum):
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'

class Integration(db.Model):
    """
    A company's connection to one Meta or Google Ads ad account.

    Stores the OAuth tokens (encrypted through the `access_token` / `refresh_token`
    properties), the selected ad account and the bookkeeping of the last sync.
    Campaigns and creatives pulled through this connection reference it.
    """
    __tablename__ = 'integrations'

    id = db.Column(db.Integer, primary_key=True)

    # --- Ownership ---
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    platform = db.Column(db.Enum(PlatformEnum), nullable=False, index=True)

    # --- Ad Account Details ---
    # Meta: ad account id without 'act_' prefix. Google: customer id 'XXX-XXX-XXXX'.
    account_id = db.Column(db.String(255), nullable=True, index=True)
    account_name = db.Column(db.String(255), nullable=True)
    account_status = db.Column(db.String(50), nullable=True) # Raw status reported by the platform.

    # --- Token Management (Encrypted) ---
    access_token_encrypted = db.Column(db.Text, nullable=True)
    # Google issues refresh tokens; Meta relies on long-lived access tokens instead.
    refresh_token_encrypted = db.Column(db.Text, nullable=True)
    token_expires_at = db.Column(db.DateTime, nullable=True)

    # --- Status ---
    status = db.Column(db.Enum(IntegrationStatusEnum), nullable=False, default=IntegrationStatusEnum.ACTIVE, index=True)
    last_sync = db.Column(db.DateTime, nullable=True)
    last_error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sync_history = db.relationship('SyncHistory', backref='integration', lazy='dynamic',
                                   cascade='all, delete-orphan', order_by='SyncHistory.started_at.desc()')

    @property
    def access_token(self):
        """Decrypted access token, or None."""
        if self.access_token_encrypted:
            return decrypt_token(self.access_token_encrypted)
        return None

    @access_token.setter
    def access_token(self, value):
        if value:
            self.access_token_encrypted = encrypt_token(value)
        else:
            self.access_token_encrypted = None

    @property
    def refresh_token(self):
        """Decrypted refresh token, or None."""
        if self.refresh_token_encrypted:
            return decrypt_token(self.refresh_token_encrypted)
        return None

    @refresh_token.setter
    def refresh_token(self, value):
        self.refresh_token_encrypted = encrypt_token(value) if value else None

    @property
    def account_selected(self):
        return bool(self.account_id) and self.account_id != PENDING_ACCOUNT_ID

    def mark_error(self, message):
        self.status = IntegrationStatusEnum.ERROR
        self.last_error = message

    def to_dict(self):
        return {
            "id": self.id,
            "companyId": self.company_id,
            "userId": self.user_id,
            "platform": self.platform.value,
            "accountId": self.account_id,
            "accountName": self.account_name,
            "accountStatus": self.account_status,
            "status": self.status.value,
            "hasAccessToken": self.access_token_encrypted is not None,
            "tokenExpiresAt": isoformat_or_none(self.token_expires_at),
            "lastSync": isoformat_or_none(self.last_sync),
            "lastError": self.last_error,
            "createdAt": isoformat_or_none(self.created_at),
        }

    def __repr__(self):
        return f'<Integration {self.id} {self.platform.value} (account: {self.account_name or self.account_id}) - {self.status.value}>'

class SyncHistory(db.Model):
    """One run of the campaign/creative synchronization for an integration."""
    __tablename__ = 'sync_history'

    id = db.Column(db.Integer, primary_key=True)
    integration_id = db.Column(db.Integer, db.ForeignKey('integrations.id'), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey('companies.id'), nullable=False, index=True)
    status = db.Column(db.Enum(SyncStatusEnum), nullable=False, default=SyncStatusEnum.RUNNING)
    campaigns_synced = db.Column(db.Integer, nullable=False, default=0)
    ad_sets_synced = db.Column(db.Integer, nullable=False, default=0)
    creatives_synced = db.Column(db.Integer, nullable=False, default=0)
    error_message = db.Column(db.Text, nullable=True)
    started_at = db.Column(db.DateTime, default=datetime.utcnow)
    finished_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "integrationId": self.integration_id,
            "status": self.status.value,
            "campaignsSynced": self.campaigns_synced,
            "adSetsSynced": self.ad_sets_synced,
            "creativesSynced": self.creatives_synced,
            "errorMessage": self.error_message,
            "startedAt": isoformat_or_none(self.started_at),
            "finishedAt": isoformat_or_none(self.finished_at),
        }
