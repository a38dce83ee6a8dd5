"""
Broker configuration.

Pydantic-based settings read from ATLAS_BROKER_* environment variables
or a .env file.
"""

from atlasbroker.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
