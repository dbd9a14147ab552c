"""Public API for tutoring configuration."""

from .loader import load_settings
from .models import (
    DEFAULT_CONFIG_PATH,
    LoggingSettings,
    RecoverySettings,
    RetrySettings,
    TutorSettings,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "LoggingSettings",
    "RecoverySettings",
    "RetrySettings",
    "TutorSettings",
    "load_settings",
]
