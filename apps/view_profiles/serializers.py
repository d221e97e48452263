"""
apps.view_profiles.serializers
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
I/O-only serializers for the View Profiles API.
No business logic; shape validation only.
"""
from rest_framework import serializers

from apps.view_profiles.audience import ViewerIdentifiers


class EffectiveViewQuerySerializer(serializers.Serializer):
    """Validates GET /views/effective/ query parameters."""

    staff_id = serializers.CharField(max_length=255, required=False, allow_blank=True)
    role = serializers.CharField(max_length=100, required=False, allow_blank=True)
    partner_id = serializers.CharField(max_length=255, required=False, allow_blank=True)
    partner_type = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def to_identifiers(self) -> ViewerIdentifiers:
        vd = self.validated_data
        return ViewerIdentifiers(
            staff_id=vd.get("staff_id") or None,
            role_slug=vd.get("role") or None,
            partner_id=vd.get("partner_id") or None,
            partner_type_slug=vd.get("partner_type") or None,
        )


class ViewProfileSummarySerializer(serializers.Serializer):
    """Read shape of a resolved view profile (record or model instance)."""

    id = serializers.CharField()
    slug = serializers.CharField()
    name = serializers.CharField()
    description = serializers.CharField()
    is_default = serializers.BooleanField()


class EffectiveViewResponseSerializer(serializers.Serializer):
    """Response shape for GET /views/effective/."""

    view = ViewProfileSummarySerializer(allow_null=True)
