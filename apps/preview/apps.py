"""
apps.preview.apps
"""
from django.apps import AppConfig


class PreviewConfig(AppConfig):
    name = "apps.preview"
    label = "preview"
    verbose_name = "Preview Sessions"

    def ready(self) -> None:
        # Build the signing codec now so a missing secret stops start-up.
        from apps.preview.services.preview_session import get_token_codec  # noqa: PLC0415

        get_token_codec()
