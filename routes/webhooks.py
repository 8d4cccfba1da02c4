from datetime import datetime
from flask import Blueprint, jsonify, current_app, request

from extensions import db
from models.campaign import AdSet, Campaign
from models.creative import Creative
from models.platform_settings import PlatformEnum
from models.webhook_event import WebhookEvent
from routes.platform_settings import get_app_credentials
from utils.security import verify_hub_signature

webhooks_bp = Blueprint('webhooks', __name__, url_prefix='/webhooks')

# Webhook object type -> model whose status column a change updates.
STATUS_TARGETS = {
    'campaign': Campaign,
    'adset': AdSet,
    'ad': Creative,
}

@webhooks_bp.route('/meta', methods=['GET'])
def meta_verify():
    """Subscription handshake: echo hub.challenge when the verify token matches."""
    mode = request.args.get('hub.mode')
    token = request.args.get('hub.verify_token')
    challenge = request.args.get('hub.challenge', '')
    expected = current_app.config.get('META_WEBHOOK_VERIFY_TOKEN')
    if mode == 'subscribe' and expected and token == expected:
        current_app.logger.info("Meta webhook subscription verified.")
        return challenge, 200, {'Content-Type': 'text/plain'}
    current_app.logger.warning(f"Meta webhook verification failed (mode={mode}).")
    return jsonify({"error": "Verification failed"}), 403

def _apply_status_change(object_type, value):
    """Copies a status carried by the change onto the matching local row, if any."""
    model = STATUS_TARGETS.get(object_type)
    external_id = value.get('id')
    status = value.get('status') or value.get('effective_status')
    if model is None or not external_id or not status:
        return 0
    rows = model.query.filter_by(external_id=str(external_id)).all()
    for row in rows:
        row.status = str(status).lower()
    return len(rows)

def _process_change(change, entry_id):
    field = change.get('field') or 'unknown'
    value = change.get('value') if isinstance(change.get('value'), dict) else {}
    object_type = field[:-1] if field.endswith('s') else field # 'campaigns' -> 'campaign'
    event = WebhookEvent(
        platform=PlatformEnum.META.value,
        event_type=field,
        external_id=str(value.get('id') or entry_id or '') or None,
        object_type=object_type,
        action=value.get('event') or value.get('verb'),
        payload=change,
    )
    db.session.add(event)
    try:
        updated = _apply_status_change(object_type, value)
        event.processed = True
        event.processed_at = datetime.utcnow()
        if updated:
            current_app.logger.info(f"Meta webhook: {object_type} {event.external_id} status updated on {updated} row(s).")
    except Exception as e:
        event.error_message = str(e)
        current_app.logger.error(f"Meta webhook change processing failed ({field}): {e}", exc_info=True)
    return event

@webhooks_bp.route('/meta', methods=['POST'])
def meta_events():
    """
    Receives Meta change notifications.

    The X-Hub-Signature-256 header is checked when an app secret is known.
    After that the endpoint always answers 200 so Meta does not retry; failures
    are kept on the stored WebhookEvent rows.
    """
    raw_body = request.get_data()
    _, app_secret = get_app_credentials(PlatformEnum.META)
    if app_secret and not verify_hub_signature(raw_body, request.headers.get('X-Hub-Signature-256'), app_secret):
        current_app.logger.warning("Meta webhook rejected: invalid X-Hub-Signature-256.")
        return jsonify({"error": "Invalid signature"}), 403

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    stored = 0
    try:
        for entry in payload.get('entry') or []:
            if not isinstance(entry, dict):
                current_app.logger.warning(f"Meta webhook: skipping malformed entry {entry!r}.")
                continue
            for change in entry.get('changes') or []:
                if not isinstance(change, dict):
                    current_app.logger.warning(f"Meta webhook: skipping malformed change in entry {entry.get('id')}.")
                    continue
                _process_change(change, entry.get('id'))
                stored += 1
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Meta webhook: failed to store events: {e}", exc_info=True)
    current_app.logger.info(f"Meta webhook received ({payload.get('object')}), {stored} change(s).")
    return jsonify({"received": True, "events": stored}), 200
