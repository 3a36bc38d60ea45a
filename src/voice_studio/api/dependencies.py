"""
FastAPI Dependency Injection Providers.

    get_settings()        - loads and caches configuration
    get_studio_service()  - returns the StudioService singleton

The settings path comes from VOICE_STUDIO_SETTINGS (default
``config/settings.yaml``); a missing file means all defaults.
"""
from __future__ import annotations

import os
from functools import lru_cache

from voice_studio.core.config import Settings, load_settings
from voice_studio.services.studio_service import StudioService, get_service


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings(os.getenv("VOICE_STUDIO_SETTINGS", "config/settings.yaml"), missing_ok=True)


def get_studio_service() -> StudioService:
    """Shared session used by every request."""
    return get_service(get_settings())
