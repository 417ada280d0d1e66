"""
Paytrack — core/security.py
─────────────────────────────────────────────────────────────────
All JWT and auth helpers in one place.

Tokens are stateless: nothing is stored server-side, validity is
recomputed from signature + expiry on every request.

Usage:
    from paytrack.core.security import TokenService, get_current_user

    tokens = TokenService(secret, ttl_hours=24)
    token = tokens.issue(user_id=7, username="acc001", email="a@b.c")
    identity = tokens.verify(token)

    # In a route:
    @router.get("/api/devices")
    async def list_devices(user: Identity = Depends(get_current_user)):
        ...
─────────────────────────────────────────────────────────────────
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError

from paytrack.core.errors import AuthenticationError, InvalidTokenError

logger = logging.getLogger("paytrack.security")


# ─────────────────────────────────────────────
# Exceptions
# ─────────────────────────────────────────────
class AuthError(Exception):
    """Base token verification failure."""
    reason = "invalid"


class MalformedTokenError(AuthError):
    """Not a parseable signed token, or missing identity claims."""
    reason = "malformed"


class InvalidSignatureError(AuthError):
    """Signature does not match the process-wide secret."""
    reason = "signature_invalid"


class TokenExpiredError(AuthError):
    reason = "expired"


# ─────────────────────────────────────────────
# Identity claim
# ─────────────────────────────────────────────
@dataclass(frozen=True)
class Identity:
    id:         int
    username:   str
    email:      str
    issued_at:  datetime
    expires_at: datetime

    @property
    def account_no(self) -> int:
        """Devices, transactions and withdrawals are scoped by user id."""
        return self.id


# ─────────────────────────────────────────────
# Issuer / verifier
# ─────────────────────────────────────────────
class TokenService:
    def __init__(self, secret: str, algorithm: str = "HS256", ttl_hours: int = 24):
        if not secret:
            raise ValueError("TokenService needs a signing secret")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl = timedelta(hours=ttl_hours)

    def issue(self, user_id: int, username: str, email: str,
              now: Optional[datetime] = None) -> str:
        """
        Sign a token for an authenticated user. Pure: same inputs,
        same secret and same `now` give the same token.
        """
        if user_id is None or user_id == "" or not username or not email:
            raise ValueError("user_id, username and email are all required")

        issued = (now or datetime.now(timezone.utc)).replace(microsecond=0)
        expires = issued + self.ttl
        claims = {
            "sub":      str(user_id),
            "id":       int(user_id),
            "username": username,
            "email":    email,
            "iat":      int(issued.timestamp()),
            "exp":      int(expires.timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Identity:
        """
        Raises:
            MalformedTokenError   : unparseable / missing claims
            InvalidSignatureError : signed with another secret or tampered
            TokenExpiredError     : past exp (checked after the signature)
        """
        if not token or not isinstance(token, str):
            raise MalformedTokenError("empty token")

        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as e:
            raise MalformedTokenError(str(e)) from e

        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpiredError(str(e)) from e
        except JWTClaimsError as e:
            raise MalformedTokenError(str(e)) from e
        except JWTError as e:
            raise InvalidSignatureError(str(e)) from e

        try:
            return Identity(
                id         = int(payload["id"]),
                username   = payload["username"],
                email      = payload["email"],
                issued_at  = datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedTokenError(f"missing identity claim: {e}") from e


# ─────────────────────────────────────────────
# Request helpers
# ─────────────────────────────────────────────
def get_token_from_request(request: Request) -> Optional[str]:
    """
    Authorization: Bearer <token>
    Any other shape (no header, other scheme, empty token) → None.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[len("Bearer "):].strip()
    return token or None


async def get_current_user(request: Request) -> Identity:
    """
    FastAPI dependency guarding every protected route.

        no token        → 401 Authentication required
        any AuthError   → 403 Invalid token
        valid           → identity attached to request.state.user
    """
    token = get_token_from_request(request)
    if not token:
        raise AuthenticationError()

    tokens = get_tokens(request)
    try:
        identity = tokens.verify(token)
    except AuthError as e:
        logger.warning(f"Token rejected ({e.reason}) on {request.url.path}")
        raise InvalidTokenError()

    request.state.user = identity
    return identity


def get_tokens(request: Request) -> TokenService:
    """Route dependency: the app's TokenService."""
    return request.app.state.tokens
