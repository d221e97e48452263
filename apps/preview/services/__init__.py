"""
apps.preview.services package.
"""
from .preview_service import (  # noqa: F401
    OpenedPreview,
    open_preview,
    resolve_subject_role,
    role_for_user,
    start_preview,
)
