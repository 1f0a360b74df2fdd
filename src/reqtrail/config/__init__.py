"""reqtrail configuration layer.

- RuntimeMode: development / test / production (``APP_ENV``)
- AppSettings, LoggingSettings: validated settings models
- load_settings: YAML file plus environment overrides
"""

from .loader import load_settings
from .runtime import RuntimeMode, get_runtime_mode, is_development
from .schema import AppSettings, LoggingSettings

__all__ = [
    "AppSettings",
    "LoggingSettings",
    "RuntimeMode",
    "get_runtime_mode",
    "is_development",
    "load_settings",
]
