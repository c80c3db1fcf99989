"""
Dynatrace credential resolution.

A credential set is looked up by name, walking a fallback chain:

1. The name configured in dynatrace.conf.yaml (``dtCreds``)
2. ``dynatrace-credentials-<project>``
3. ``dynatrace-credentials``
4. ``dynatrace``

A set named ``foo-bar`` is read from ``FOO_BAR_DT_TENANT`` and
``FOO_BAR_DT_API_TOKEN``. The final ``dynatrace`` set also falls back to
the application settings (``DT_TENANT`` / ``DT_API_TOKEN``).
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Mapping

import structlog

from dtsli.config.settings import Settings, get_settings
from dtsli.core.errors import ConfigurationError

logger = structlog.get_logger()

DEFAULT_CREDENTIALS_NAME = "dynatrace"


@dataclass(frozen=True)
class DynatraceCredentials:
    """Tenant URL and API token for one Dynatrace environment."""

    tenant: str
    api_token: str
    name: str = DEFAULT_CREDENTIALS_NAME

    @property
    def base_url(self) -> str:
        tenant = self.tenant.strip().rstrip("/")
        if not tenant.startswith(("http://", "https://")):
            tenant = f"https://{tenant}"
        return tenant

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Api-Token {self.api_token}"}


def credential_candidates(configured: str, project: str) -> list[str]:
    """Names to try, in order, without duplicates."""
    names = [configured, f"dynatrace-credentials-{project}", "dynatrace-credentials", "dynatrace"]
    seen: list[str] = []
    for name in names:
        if name and name not in seen:
            seen.append(name)
    return seen


def _env_key(name: str, suffix: str) -> str:
    return f"{re.sub(r'[^A-Za-z0-9]', '_', name).upper()}_{suffix}"


class EnvCredentialProvider:
    """Credential sets from environment variables."""

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._environ = os.environ if environ is None else environ
        self._settings = settings

    def lookup(self, name: str) -> DynatraceCredentials | None:
        tenant = self._environ.get(_env_key(name, "DT_TENANT"))
        token = self._environ.get(_env_key(name, "DT_API_TOKEN"))
        if tenant and token:
            return DynatraceCredentials(tenant=tenant, api_token=token, name=name)

        if name == DEFAULT_CREDENTIALS_NAME:
            settings = self._settings or get_settings()
            if settings.dt_tenant and settings.dt_api_token:
                return DynatraceCredentials(
                    tenant=settings.dt_tenant, api_token=settings.dt_api_token, name=name
                )
        return None

    def resolve(self, configured: str, project: str) -> DynatraceCredentials:
        """
        Walk the fallback chain and return the first complete credential set.

        Raises:
            ConfigurationError: If no set in the chain is available
        """
        candidates = credential_candidates(configured, project)
        for name in candidates:
            credentials = self.lookup(name)
            if credentials is not None:
                if name != configured:
                    logger.info("credentials_fallback_used", configured=configured, used=name)
                return credentials

        raise ConfigurationError(
            f"could not find Dynatrace credentials; tried {', '.join(candidates)}",
            {"candidates": candidates},
        )
