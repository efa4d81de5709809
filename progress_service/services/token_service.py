"""JWT access token validation (ES256).

Tokens are issued upstream by the auth service; this service only
verifies them.  ``create_access_token`` exists for dev tooling and tests,
which sign with the same key the verifier trusts.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from progress_service.core.config import SETTINGS

# ---------------------------------------------------------------------------
# Key management
# ---------------------------------------------------------------------------
# With JWT_PUBLIC_KEY_FILE set, verify against the auth service's public
# key (PEM).  Otherwise generate an ephemeral key pair on import, which is
# only useful in dev and tests.
_private_key: ec.EllipticCurvePrivateKey | None
if SETTINGS.jwt_public_key_file:
    with open(SETTINGS.jwt_public_key_file, "rb") as fh:
        _public_key = serialization.load_pem_public_key(fh.read())
    _private_key = None
else:
    _private_key = ec.generate_private_key(ec.SECP256R1())
    _public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "lms-identity"
AUDIENCE = "progress-service"
ACCESS_TOKEN_TTL_MIN = 15


def create_access_token(*, sub: str, roles: list[str] | None = None) -> str:
    """Sign an access token with the local key.

    Raises RuntimeError when the service runs with an external public key,
    since it holds no private key in that mode.
    """
    if _private_key is None:
        raise RuntimeError("token signing is unavailable with an external key")
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["student"],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256.  Raises jwt.ExpiredSignatureError or
    jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
