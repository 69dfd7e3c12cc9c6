"""
Password hashing and JWT issuance.

Passwords: bcrypt used directly.  ``verify_password`` never raises, so a
malformed stored hash reads as a mismatch.

Tokens: PyJWT, HS256 by default.  Access and refresh tokens carry the same
``{sub, email, role}`` claims but are signed with different secrets, so a
refresh token never verifies as an access token (and vice versa).  Each
token also carries a random ``jti``, which keeps two tokens issued within
the same second for the same user distinct.  No revocation list exists:
a token stays valid until ``exp``.
"""
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from cms.config import settings
from cms.exceptions import InvalidTokenError
from cms.schemas import TokenPair

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


# bcrypt only reads the first 72 bytes; newer releases raise instead of truncating.
BCRYPT_MAX_BYTES = 72


def _secret(plain: str) -> bytes:
    return plain.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of *plain* using ``settings.BCRYPT_ROUNDS``."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_secret(plain), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if *plain* matches the bcrypt *hashed* value."""
    try:
        return bcrypt.checkpw(_secret(plain), hashed.encode("utf-8"))
    except ValueError:
        return False


# Compared against when the login email is unknown, so both failure paths
# pay for one bcrypt check.
DUMMY_HASH: str = hash_password("cms-timing-equalizer")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def _sign(claims: dict, secret: str, expires_in: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)


def _claims(subject_id: str, email: str, role: str) -> dict:
    return {"sub": subject_id, "email": email, "role": getattr(role, "value", role)}


def issue_access_token(subject_id: str, email: str, role: str) -> str:
    return _sign(
        _claims(subject_id, email, role),
        settings.JWT_ACCESS_SECRET,
        settings.JWT_ACCESS_EXPIRES_IN,
    )


def issue_tokens(subject_id: str, email: str, role: str) -> TokenPair:
    """Sign an access/refresh pair for the given identity."""
    claims = _claims(subject_id, email, role)
    return TokenPair(
        access_token=_sign(claims, settings.JWT_ACCESS_SECRET, settings.JWT_ACCESS_EXPIRES_IN),
        refresh_token=_sign(claims, settings.JWT_REFRESH_SECRET, settings.JWT_REFRESH_EXPIRES_IN),
    )


def verify_token(token: str, secret: str) -> dict:
    """
    Decode *token* with *secret* and return its claims.

    Raises ``InvalidTokenError`` for an expired, mis-signed or malformed
    token, or one without a subject.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise InvalidTokenError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidTokenError("Invalid token") from exc
    return payload


def verify_access_token(token: str) -> dict:
    return verify_token(token, settings.JWT_ACCESS_SECRET)


def verify_refresh_token(token: str) -> dict:
    return verify_token(token, settings.JWT_REFRESH_SECRET)
