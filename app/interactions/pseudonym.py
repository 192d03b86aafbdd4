# FILE: app/interactions/pseudonym.py
"""
Searchable pseudo-anonymous student identifiers.

HMAC-SHA256 over the normalised (trimmed, lower-cased) identifier. The same
student always maps to the same id, and the id cannot be reversed without
the secret.
"""

import hashlib
import hmac
from typing import Optional

from app.errors import ConfigError
from config.settings import MIN_HMAC_KEY_LENGTH

UNIDENTIFIED = "UNIDENTIFIED"


def generate_pseudo_id(raw_identifier: str, secret_key: Optional[str]) -> str:
    if not secret_key or len(secret_key) < MIN_HMAC_KEY_LENGTH:
        raise ConfigError(f"Secret key must be at least {MIN_HMAC_KEY_LENGTH} characters long.")
    normalised = raw_identifier.strip().lower()
    return hmac.new(secret_key.encode("utf-8"), normalised.encode("utf-8"), hashlib.sha256).hexdigest()


def student_id_for(username: Optional[str], secret_key: Optional[str]) -> str:
    """Pseudonym for a username, or UNIDENTIFIED when none was sent."""
    if not username:
        return UNIDENTIFIED
    return generate_pseudo_id(username, secret_key)
