"""Bearer credential verification and role gating."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from .errors import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

_BEARER_SCHEME = "bearer"
_RESERVED_CLAIMS = {"sub", "email", "username", "role", "iat", "exp"}


@dataclass(frozen=True)
class Claims:
    """Decoded identity and role carried by a verified credential."""

    user_id: Optional[str]
    email: Optional[str]
    username: Optional[str]
    role: Optional[str]
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Claims":
        return cls(
            user_id=None if payload.get("sub") is None else str(payload["sub"]),
            email=payload.get("email"),
            username=payload.get("username"),
            role=payload.get("role"),
            issued_at=_timestamp(payload.get("iat")),
            expires_at=_timestamp(payload.get("exp")),
            extra={k: v for k, v in payload.items() if k not in _RESERVED_CLAIMS},
        )


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _strip_scheme(raw: str) -> str:
    scheme, _, rest = raw.strip().partition(" ")
    if scheme.lower() == _BEARER_SCHEME:
        return rest.strip()
    return raw.strip()


class CredentialVerifier:
    """Verify signed bearer tokens against a process-wide secret."""

    def __init__(self, secret_key: str, *, algorithm: str = "HS256", ttl_minutes: int = 60) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._ttl = timedelta(minutes=ttl_minutes)

    def issue(
        self,
        *,
        user_id: Any,
        email: str,
        username: str,
        role: str = "user",
        expires_in: Optional[timedelta] = None,
        **extra: Any,
    ) -> str:
        now = datetime.now(timezone.utc)
        payload: Dict[str, Any] = dict(extra)
        payload.update(
            {
                "sub": str(user_id),
                "email": email,
                "username": username,
                "role": role,
                "iat": now,
                "exp": now + (self._ttl if expires_in is None else expires_in),
            }
        )
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def verify(self, raw: Optional[str]) -> Claims:
        if raw is None or not raw.strip():
            raise Unauthenticated("missing credential")
        token = _strip_scheme(raw)
        if not token:
            raise Unauthenticated("missing credential")
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as exc:
            logger.info("Rejected credential: %s", exc.__class__.__name__)
            raise Unauthenticated("invalid credential") from exc
        return Claims.from_payload(payload)

    def authorize(self, raw: Optional[str], role: str = "user") -> Claims:
        """Verify ``raw`` and require the given role."""

        claims = self.verify(raw)
        if claims.role != role:
            logger.warning("Role %r denied where %r is required", claims.role, role)
            raise Forbidden("insufficient role")
        return claims


__all__ = ["Claims", "CredentialVerifier"]
