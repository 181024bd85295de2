"""
Configuration layer - Settings and constants
"""

from dashquery.config.settings import settings, Settings, ConnectionConfig, PROJECT_ROOT
from dashquery.config.constants import (
    FORBIDDEN_KEYWORDS,
    READ_ONLY_LEADERS,
    CATEGORICAL_CHART_TYPES,
    SERIES_CHART_TYPES,
    FallbackStage,
)

__all__ = [
    "settings",
    "Settings",
    "ConnectionConfig",
    "PROJECT_ROOT",
    "FORBIDDEN_KEYWORDS",
    "READ_ONLY_LEADERS",
    "CATEGORICAL_CHART_TYPES",
    "SERIES_CHART_TYPES",
    "FallbackStage",
]
