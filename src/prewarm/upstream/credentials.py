"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Ordered credential providers for upstream bearer tokens.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from ..errors import AuthFailure
from ..settings import WarmSettings

logger = logging.getLogger("prewarm.upstream.credentials")


@dataclass(frozen=True, slots=True)
class CredentialContext:
    """Inbound request material a provider may read a token from."""

    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass(frozen=True, slots=True)
class ResolvedCredential:
    token: str
    source: str


class CredentialProvider(Protocol):
    """Provider contract: return a token, or None when this source has none."""

    provider_id: str

    async def resolve(self, context: CredentialContext) -> str | None: ...


class CookieCredentialProvider:
    provider_id = "cookie"

    def __init__(self, cookie_name: str) -> None:
        self._cookie_name = cookie_name

    async def resolve(self, context: CredentialContext) -> str | None:
        value = context.cookies.get(self._cookie_name)
        return value.strip() if value and value.strip() else None


class BearerHeaderCredentialProvider:
    provider_id = "header"

    async def resolve(self, context: CredentialContext) -> str | None:
        auth = context.header("authorization")
        if auth and auth.lower().startswith("bearer "):
            token = auth[7:].strip()
            return token or None
        return None


class ServiceTokenCredentialProvider:
    provider_id = "service"

    def __init__(self, token: str | None) -> None:
        self._token = token

    async def resolve(self, context: CredentialContext) -> str | None:
        _ = context
        return self._token or None


class LoginCredentialProvider:
    """Log in with service account email/password and read ``authToken``."""

    provider_id = "login"

    def __init__(
        self,
        *,
        auth_url: str | None,
        email: str | None,
        password: str | None,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 20.0,
    ) -> None:
        self._auth_url = auth_url
        self._email = email
        self._password = password
        self._client = client
        self._timeout_s = timeout_s

    async def resolve(self, context: CredentialContext) -> str | None:
        _ = context
        if not self._auth_url or not self._email or not self._password:
            missing = [
                name
                for name, value in (
                    ("auth_url", self._auth_url),
                    ("email", self._email),
                    ("password", self._password),
                )
                if not value
            ]
            raise LookupError(f"login not configured (missing: {', '.join(missing)})")

        payload = {"email": self._email, "password": self._password}
        if self._client is not None:
            resp = await self._client.post(self._auth_url, json=payload, timeout=self._timeout_s)
        else:
            async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                resp = await client.post(self._auth_url, json=payload)

        if not resp.is_success:
            raise LookupError(f"login returned HTTP {resp.status_code}")
        token = resp.json().get("authToken")
        if not token:
            raise LookupError("login response had no authToken")
        return str(token)


class CredentialChain:
    """Evaluate providers in priority order; the first non-empty token wins."""

    def __init__(self, providers: Sequence[CredentialProvider]) -> None:
        self._providers = list(providers)

    @property
    def provider_ids(self) -> list[str]:
        return [provider.provider_id for provider in self._providers]

    async def resolve(self, context: CredentialContext | None = None) -> ResolvedCredential:
        context = context or CredentialContext()
        details: dict[str, str] = {}
        for provider in self._providers:
            try:
                token = await provider.resolve(context)
            except Exception as exc:  # noqa: BLE001
                details[provider.provider_id] = str(exc) or type(exc).__name__
                logger.warning("Credential provider %s failed: %s", provider.provider_id, exc)
                continue
            if token:
                return ResolvedCredential(token=token, source=provider.provider_id)
            details[provider.provider_id] = "empty"

        raise AuthFailure(
            "No credential source produced an upstream token",
            tried=self.provider_ids,
            details=details,
        )


def build_credential_chain(
    names: Sequence[str],
    settings: WarmSettings,
    *,
    client: httpx.AsyncClient | None = None,
) -> CredentialChain:
    """Build a chain from provider ids such as ``("cookie", "header")``."""
    providers: list[CredentialProvider] = []
    for name in names:
        key = name.strip().lower()
        if key == "cookie":
            providers.append(CookieCredentialProvider(settings.auth_cookie_name))
        elif key == "header":
            providers.append(BearerHeaderCredentialProvider())
        elif key == "service":
            providers.append(ServiceTokenCredentialProvider(settings.service_token))
        elif key == "login":
            providers.append(
                LoginCredentialProvider(
                    auth_url=settings.auth_url,
                    email=settings.auth_email,
                    password=settings.auth_password,
                    client=client,
                    timeout_s=settings.timeout_s,
                )
            )
        else:
            raise ValueError(f"Unknown credential provider: {name}")
    return CredentialChain(providers)
