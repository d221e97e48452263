"""
apps.preview.serializers
~~~~~~~~~~~~~~~~~~~~~~~~
I/O-only serializers for the Preview API.
No business logic; shape validation only.
"""
from rest_framework import serializers

from apps.preview.services.subjects import DataMode, SubjectType
from apps.view_profiles.serializers import ViewProfileSummarySerializer


# ---------------------------------------------------------------------------
# Start preview
# ---------------------------------------------------------------------------

class CreatePreviewSessionSerializer(serializers.Serializer):
    """Validates POST /views/preview-session/ request body."""

    view_id = serializers.UUIDField()
    subject_type = serializers.ChoiceField(choices=[t.value for t in SubjectType])
    subject_target_id = serializers.CharField(
        max_length=255, required=False, allow_null=True, allow_blank=True, default=None
    )
    data_mode = serializers.ChoiceField(
        choices=[m.value for m in DataMode], default=DataMode.SNAPSHOT.value
    )


class PreviewSessionResponseSerializer(serializers.Serializer):
    """Response shape for a successful POST /views/preview-session/."""

    token = serializers.CharField()
    session_id = serializers.UUIDField()
    expires_at = serializers.IntegerField(help_text="Expiry as epoch milliseconds.")
    preview_url = serializers.CharField()


# ---------------------------------------------------------------------------
# Open preview
# ---------------------------------------------------------------------------

class OpenPreviewQuerySerializer(serializers.Serializer):
    """Validates GET /views/preview/ query parameters."""

    token = serializers.CharField(trim_whitespace=False, allow_blank=True)


class OpenedPreviewSerializer(serializers.Serializer):
    """Response shape for GET /views/preview/."""

    session_id = serializers.CharField(source="payload.session_id")
    subject_type = serializers.CharField(source="payload.subject_type.value")
    target_id = serializers.CharField(source="payload.target_id", allow_null=True)
    resolved_role = serializers.CharField(source="payload.resolved_role")
    data_mode = serializers.CharField(source="payload.data_mode.value")
    expires_at = serializers.IntegerField(source="payload.expires_at")
    subject_label = serializers.CharField()
    role_label = serializers.CharField()
    view = ViewProfileSummarySerializer()
