"""
FastAPI dependency providers.

    get_settings()   - settings file, loaded once
    get_service()    - the process-wide StudioService
    get_membership() - effective plan from the X-Membership-Tier header

Tests replace ``get_service`` through ``app.dependency_overrides`` to
inject a StudioService with a fake backend.

The settings path comes from SSML_STUDIO_SETTINGS (default
config/settings.yaml). A missing file means built-in defaults.
"""
from __future__ import annotations

import os
from functools import lru_cache

from fastapi import Header

from ssml_studio.core.config import Settings, load_settings
from ssml_studio.services.membership import MembershipInfo, get_membership_info
from ssml_studio.services.studio import StudioService
from ssml_studio.services.studio import get_service as _get_service


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    path = os.getenv("SSML_STUDIO_SETTINGS", "config/settings.yaml")
    try:
        return load_settings(path)
    except FileNotFoundError:
        return Settings(raw={})


def get_service() -> StudioService:
    return _get_service(get_settings())


def get_membership(x_membership_tier: str | None = Header(default=None)) -> MembershipInfo:
    """
    Effective membership of the caller.

    Authentication lives in front of this service; the gateway forwards
    the caller's plan in ``X-Membership-Tier``. No header means free.
    """
    return get_membership_info(x_membership_tier)
