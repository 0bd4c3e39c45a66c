"""Shared-secret check for mutating control-plane requests."""
from __future__ import annotations

import enum
import hmac
import logging

from serverbee_deploy.storage.settings_store import SettingsStore
from serverbee_deploy.storage.storage_config import read_token

logger = logging.getLogger(__name__)


class TokenPolicy(enum.Enum):
    """What to do when no token has been configured yet."""

    FAIL_CLOSED = "fail-closed"
    FAIL_OPEN = "fail-open"


class TokenGuard:
    """Compares a caller-presented token with the one in the store.

    The stored token is read on every call, so a rotation takes effect for
    the very next request.
    """

    def __init__(
        self,
        store: SettingsStore,
        policy: TokenPolicy = TokenPolicy.FAIL_CLOSED,
    ) -> None:
        self._store = store
        self._policy = policy

    @property
    def policy(self) -> TokenPolicy:
        return self._policy

    def is_configured(self) -> bool:
        return read_token(self._store) is not None

    def authorize(self, presented: str | None) -> bool:
        expected = read_token(self._store)
        if expected is None:
            allowed = self._policy is TokenPolicy.FAIL_OPEN
            if not allowed:
                logger.warning("Rejected request: no token configured")
            return allowed
        if presented is None:
            return False
        return hmac.compare_digest(
            presented.encode("utf-8"), expected.encode("utf-8"),
        )


def extract_token(headers) -> str | None:
    """Pull the presented token from ``Authorization: Bearer`` or ``X-Token``."""
    auth = headers.get("Authorization", "")
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    token = headers.get("X-Token")
    return token if token else None
