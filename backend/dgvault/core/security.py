"""User API key hashing for the X-User-Key header.

Keys are issued out of band as ``dgv_sk_<64 hex>``; only their SHA-256
digest is stored on the user row.
"""

import hashlib
import hmac


def hash_api_key(api_key: str) -> str:
    """Return the hex SHA-256 digest stored in ``users.api_key_hash``."""
    return hashlib.sha256(api_key.encode()).hexdigest()


def verify_api_key(provided_key: str, stored_hash: str) -> bool:
    """Constant-time comparison of a presented key against a stored digest."""
    return hmac.compare_digest(hash_api_key(provided_key), stored_hash)
