"""Configuration package exports."""

from .loader import CONFIG_ENV_VAR, build_config, load_settings
from .models import (
    DEFAULT_CDX_ENDPOINT,
    DEFAULT_EXCLUDE_EXTENSIONS,
    HarvestConfig,
    OutputMode,
    derive_base_domain,
    normalize_cdx_pattern,
)

__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CDX_ENDPOINT",
    "DEFAULT_EXCLUDE_EXTENSIONS",
    "HarvestConfig",
    "OutputMode",
    "build_config",
    "derive_base_domain",
    "load_settings",
    "normalize_cdx_pattern",
]
