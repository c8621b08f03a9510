"""Configuration and logging for the credential store."""

from .config import DEFAULT_SCOPES, StoreSettings, get_settings
from .logging import setup_logging

__all__ = ["DEFAULT_SCOPES", "StoreSettings", "get_settings", "setup_logging"]
