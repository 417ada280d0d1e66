"""
Paytrack — core/passwords.py
─────────────────────────────────────────────────────────────────
WordPress password hashes, every format a live wp_users table holds:

    $wp$2y$...   WordPress 6.8+: bcrypt over base64(HMAC-SHA384(pw))
    $2y$ / $2b$  PHP password_hash() bcrypt
    $P$ / $H$    phpass portable hashes (WordPress < 6.8)
    32 hex chars plain MD5 (very old installs, upgraded on next login)
─────────────────────────────────────────────────────────────────
"""

import base64
import hashlib
import hmac
import logging

import bcrypt
from passlib.hash import phpass

logger = logging.getLogger("paytrack.passwords")

WP_PREFIX = "$wp"
WP_HMAC_KEY = b"wp-sha384"


def _wp_prehash(password: str) -> bytes:
    digest = hmac.new(WP_HMAC_KEY, password.encode("utf-8"), hashlib.sha384).digest()
    return base64.b64encode(digest)


def _bcrypt_check(secret: bytes, hashed: str) -> bool:
    # PHP writes $2y$, same algorithm as $2b$
    if hashed.startswith("$2y$"):
        hashed = "$2b$" + hashed[4:]
    try:
        return bcrypt.checkpw(secret, hashed.encode("utf-8"))
    except ValueError:
        return False


def verify_wordpress_password(password: str, stored_hash: str) -> bool:
    if not password or not stored_hash:
        return False

    if stored_hash.startswith(WP_PREFIX + "$2"):
        return _bcrypt_check(_wp_prehash(password), stored_hash[len(WP_PREFIX):])

    if stored_hash.startswith(("$2y$", "$2b$", "$2a$")):
        return _bcrypt_check(password.encode("utf-8"), stored_hash)

    if stored_hash.startswith(("$P$", "$H$")):
        try:
            return phpass.verify(password, stored_hash)
        except ValueError:
            return False

    if len(stored_hash) == 32 and all(c in "0123456789abcdef" for c in stored_hash.lower()):
        digest = hashlib.md5(password.encode("utf-8")).hexdigest()
        return hmac.compare_digest(digest, stored_hash.lower())

    logger.warning("Unrecognised password hash format")
    return False


def hash_wordpress_password(password: str) -> str:
    """Same format WordPress 6.8 writes."""
    hashed = bcrypt.hashpw(_wp_prehash(password), bcrypt.gensalt()).decode("utf-8")
    return WP_PREFIX + "$2y$" + hashed[4:]
