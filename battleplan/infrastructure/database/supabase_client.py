from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from supabase import Client, create_client

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UserInfo:
    id: str
    email: str | None


@dataclass(frozen=True, slots=True)
class SupabaseSettings:
    url: str | None
    key: str | None
    disabled: bool

    @classmethod
    def from_env(cls) -> "SupabaseSettings":
        return cls(
            url=os.getenv("SUPABASE_URL"),
            key=os.getenv("SUPABASE_ANON_KEY"),
            disabled=os.getenv("SUPABASE_DISABLED", "0") == "1",
        )

    @property
    def configured(self) -> bool:
        return not self.disabled and bool(self.url) and bool(self.key)


@lru_cache(maxsize=4)
def _client_for(url: str, key: str) -> Client:
    return create_client(url, key)


def get_supabase_client() -> Client | None:
    """Shared Supabase client, or ``None`` when running without Supabase."""
    settings = SupabaseSettings.from_env()
    if not settings.configured:
        return None
    return _client_for(settings.url, settings.key)


def fake_user_id(token: str) -> str:
    digest = hashlib.sha256(token.encode("utf-8")).hexdigest()
    return f"fake-{digest[:12]}"


class SupabaseAuthAdapter:
    """Resolves the user behind a Supabase access token.

    When Supabase is disabled any non-empty token maps to a deterministic
    fake user, which is what the tests and local demos run on.
    """

    def __init__(self, settings: SupabaseSettings | None = None) -> None:
        self.settings = settings or SupabaseSettings.from_env()
        self._client = _client_for(self.settings.url, self.settings.key) if self.settings.configured else None

    def validate_token(self, token: str) -> UserInfo:
        if not token:
            raise ValueError("Missing access token")
        if self._client is None:
            return UserInfo(id=fake_user_id(token), email=None)
        try:  # pragma: no cover - network
            res = self._client.auth.get_user(token)
        except Exception as exc:  # pragma: no cover - network
            logger.warning("Supabase rejected access token: %s", exc)
            raise ValueError(f"Invalid access token: {exc}") from exc
        user = res.user if res else None
        if not user:
            raise ValueError("Invalid access token")
        return UserInfo(id=user.id, email=user.email)
