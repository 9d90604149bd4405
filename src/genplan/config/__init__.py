"""Configuration for genplan."""

from .settings import SENSITIVE_ENV_VAR_NAMES, CoreSettings, Settings, load_settings

__all__ = ["CoreSettings", "Settings", "load_settings", "SENSITIVE_ENV_VAR_NAMES"]
