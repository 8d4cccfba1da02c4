from datetime import datetime
from extensions import db
from utils.helpers import isoformat_or_none

class WebhookEvent(db.Model):
    """A single change notification received from an ad platform webhook."""
    __tablename__ = 'webhook_events'

    id = db.Column(db.Integer, primary_key=True)
    platform = db.Column(db.String(20), nullable=False, index=True)
    event_type = db.Column(db.String(100), nullable=False) # Webhook field, e.g. 'campaigns'.
    external_id = db.Column(db.String(255), nullable=True, index=True)
    object_type = db.Column(db.String(50), nullable=True) # 'campaign' | 'adset' | 'ad' ...
    action = db.Column(db.String(50), nullable=True)
    payload = db.Column(db.JSON, nullable=True)
    processed = db.Column(db.Boolean, nullable=False, default=False)
    processed_at = db.Column(db.DateTime, nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "platform": self.platform,
            "eventType": self.event_type,
            "externalId": self.external_id,
            "objectType": self.object_type,
            "action": self.action,
            "processed": self.processed,
            "processedAt": isoformat_or_none(self.processed_at),
            "errorMessage": self.error_message,
        }
