"""
apps.view_profiles.services package.
"""
from .view_service import (  # noqa: F401
    get_view_profile,
    resolve_effective_view,
)
