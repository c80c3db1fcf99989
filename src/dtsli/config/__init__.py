"""
Configuration for dtsli.

Provides:
- Settings from environment / .env (pydantic-settings)
- Dynatrace credential resolution with a fallback chain
- Loading of dynatrace.conf.yaml and custom sli.yaml queries
"""

from dtsli.config.credentials import (
    DEFAULT_CREDENTIALS_NAME,
    DynatraceCredentials,
    EnvCredentialProvider,
    credential_candidates,
)
from dtsli.config.loader import (
    DynatraceConfigFile,
    load_custom_queries,
    load_dynatrace_config,
)
from dtsli.config.settings import Settings, get_settings

__all__ = [
    "DEFAULT_CREDENTIALS_NAME",
    "DynatraceConfigFile",
    "DynatraceCredentials",
    "EnvCredentialProvider",
    "Settings",
    "credential_candidates",
    "get_settings",
    "load_custom_queries",
    "load_dynatrace_config",
]
