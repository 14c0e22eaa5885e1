"""
Identity provider integration.

The identity provider verifies bearer credentials, reports the caller's plan
and keeps the per-user ``free_usage`` counter in private metadata. Clerk is
the production implementation; the in-memory variant backs tests and local
development.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Protocol

import jwt
import requests

from createkit.errors import ProviderUnavailable, Unauthorized

logger = logging.getLogger(__name__)

FREE_USAGE_KEY = "free_usage"


class PlanTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


@dataclass(frozen=True)
class Caller:
    user_id: str
    plan: PlanTier = PlanTier.FREE

    @property
    def is_premium(self) -> bool:
        return self.plan == PlanTier.PREMIUM


class IdentityProvider(Protocol):
    def authenticate(self, token: str) -> Caller:
        ...


class QuotaSource(Protocol):
    """Read/write access to the stored remaining free-usage counter."""

    def get(self, owner_id: str) -> Optional[int]:
        ...

    def update(self, owner_id: str, remaining: int) -> None:
        ...


def _stored_count(value) -> Optional[int]:
    # JSON booleans are ints in Python and never a valid counter.
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


@dataclass
class InMemoryIdentityProvider:
    """Maps opaque tokens to callers and keeps metadata in a dict."""

    tokens: Dict[str, Caller] = field(default_factory=dict)
    metadata: Dict[str, dict] = field(default_factory=dict)

    def register(
        self,
        token: str,
        user_id: str,
        plan: PlanTier = PlanTier.FREE,
        free_usage: Optional[int] = None,
    ) -> Caller:
        caller = Caller(user_id=user_id, plan=plan)
        self.tokens[token] = caller
        if free_usage is not None:
            self.metadata.setdefault(user_id, {})[FREE_USAGE_KEY] = free_usage
        return caller

    def authenticate(self, token: str) -> Caller:
        caller = self.tokens.get(token)
        if caller is None:
            raise Unauthorized("Unauthorized")
        return caller

    def get(self, owner_id: str) -> Optional[int]:
        return _stored_count(self.metadata.get(owner_id, {}).get(FREE_USAGE_KEY))

    def update(self, owner_id: str, remaining: int) -> None:
        self.metadata.setdefault(owner_id, {})[FREE_USAGE_KEY] = remaining

    def reset(self) -> None:
        self.tokens.clear()
        self.metadata.clear()


def plan_from_claims(claims: dict) -> PlanTier:
    """
    Read the plan from Clerk session claims.

    The ``pla`` claim looks like ``u:premium`` (user plan) or ``o:premium``
    (organization plan).
    """
    raw = claims.get("pla") or ""
    plans = {part.split(":", 1)[-1] for part in str(raw).split(",") if part}
    return PlanTier.PREMIUM if PlanTier.PREMIUM.value in plans else PlanTier.FREE


class ClerkIdentityProvider:
    """
    Clerk-backed identity provider.

    Session tokens are verified locally against the instance JWKS; metadata is
    read and written through the Backend API.
    """

    def __init__(
        self,
        *,
        secret_key: str,
        jwks_url: str,
        issuer: Optional[str] = None,
        api_url: str = "https://api.clerk.com/v1",
        timeout: float = 30.0,
    ):
        self.secret_key = secret_key
        self.issuer = issuer
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._jwks_client = jwt.PyJWKClient(jwks_url)
        self._session = requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {secret_key}"})

    def authenticate(self, token: str) -> Caller:
        try:
            signing_key = self._jwks_client.get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                issuer=self.issuer,
                options={"verify_aud": False, "verify_iss": bool(self.issuer)},
            )
        except jwt.PyJWTError as exc:
            logger.info("Rejected session token: %s", exc)
            raise Unauthorized(str(exc) or "Unauthorized") from exc

        user_id = claims.get("sub")
        if not user_id:
            raise Unauthorized("Unauthorized")
        return Caller(user_id=user_id, plan=plan_from_claims(claims))

    def get(self, owner_id: str) -> Optional[int]:
        try:
            response = self._session.get(
                f"{self.api_url}/users/{owner_id}", timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ProviderUnavailable("Failed to load usage metadata.") from exc
        private_metadata = response.json().get("private_metadata") or {}
        return _stored_count(private_metadata.get(FREE_USAGE_KEY))

    def update(self, owner_id: str, remaining: int) -> None:
        try:
            response = self._session.patch(
                f"{self.api_url}/users/{owner_id}/metadata",
                json={"private_metadata": {FREE_USAGE_KEY: remaining}},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ProviderUnavailable("Failed to update usage metadata.") from exc
