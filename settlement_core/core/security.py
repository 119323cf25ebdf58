"""Bearer token handling.

Tokens are issued by the identity service and carry the account id in
``sub`` and its role in ``role``. This service only verifies them;
``create_access_token`` exists for local development and tests.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from jose import JWTError, jwt

from settlement_core.config import settings
from settlement_core.core.exceptions import AuthenticationError
from settlement_core.models.user import UserRole

KNOWN_ROLES = (UserRole.ADMIN, UserRole.TOURIST, *UserRole.OWNERS)


@dataclass(frozen=True)
class TokenClaims:
    user_id: UUID
    role: str


def create_access_token(user_id: UUID, role: str, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    claims = {"sub": str(user_id), "role": role, "type": "access", "exp": expire}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenClaims:
    """Verify signature and expiry, then read the claims this service uses.

    Raises:
        AuthenticationError: bad signature, expired, wrong token type,
            or ``sub``/``role`` missing or malformed
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise AuthenticationError(f"Token validation failed: {e}")

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")
    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise AuthenticationError("Invalid token subject")
    role = payload.get("role")
    if role not in KNOWN_ROLES:
        raise AuthenticationError("Invalid token role")
    return TokenClaims(user_id=user_id, role=role)
