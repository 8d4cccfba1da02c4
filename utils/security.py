import hashlib
import hmac
from cryptography.fernet import Fernet # Symmetric encryption for secrets stored in the database.
from flask import current_app # To read FERNET_KEY from the app configuration.

def get_fernet():
    """
    Builds a Fernet cipher from the application's FERNET_KEY.

    Raises:
        ValueError: If FERNET_KEY is not configured.

    Returns:
        cryptography.fernet.Fernet: Cipher used for ad platform tokens and app secrets.
    """
    key = current_app.config.get('FERNET_KEY')
    if not key:
        current_app.logger.critical("FERNET_KEY is not configured. Integration tokens and platform secrets cannot be stored.")
        raise ValueError("FERNET_KEY not configured properly. Please set it in your application configuration.")
    if isinstance(key, str):
        key = key.encode('utf-8')
    return Fernet(key)

def encrypt_token(token):
    """
    Encrypts a plain-text secret (OAuth token, app secret) for storage.

    Args:
        token (str or None): Plain-text value. None passes through.

    Returns:
        str or None: Fernet token as a UTF-8 string.
    """
    if token is None:
        return None
    return get_fernet().encrypt(token.encode('utf-8')).decode('utf-8')

def decrypt_token(encrypted_token):
    """
    Reverses `encrypt_token`.

    Raises:
        cryptography.fernet.InvalidToken: Wrong key or corrupted value. Callers decide
            whether that marks the integration as expired or is a hard failure.
    """
    if encrypted_token is None:
        return None
    return get_fernet().decrypt(encrypted_token.encode('utf-8')).decode('utf-8')

def mask_secret(value, visible=4):
    """Returns `value` with everything but the last `visible` characters replaced by '*'."""
    if not value:
        return None
    if len(value) <= visible:
        return '*' * len(value)
    return '*' * (len(value) - visible) + value[-visible:]

def verify_hub_signature(payload, signature_header, app_secret):
    """
    Checks a Meta webhook `x-hub-signature-256` header against the raw request body.

    Args:
        payload (bytes): Raw request body, exactly as received.
        signature_header (str or None): Header value in the form 'sha256=<hexdigest>'.
        app_secret (str): Meta app secret the subscription was created with.

    Returns:
        bool: True when the HMAC-SHA256 digest matches.
    """
    if not signature_header or not signature_header.startswith('sha256='):
        return False
    expected = hmac.new(app_secret.encode('utf-8'), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header.split('=', 1)[1])
