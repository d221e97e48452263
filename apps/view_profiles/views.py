"""
apps.view_profiles.views
~~~~~~~~~~~~~~~~~~~~~~~~
Thin DRF API views for view resolution.
All business logic is delegated to
:mod:`apps.view_profiles.services.view_service`.

Endpoints
---------
GET    /views/effective/    – Resolve the effective view for a viewer
"""
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.view_profiles import services
from .serializers import (
    EffectiveViewQuerySerializer,
    EffectiveViewResponseSerializer,
    ViewProfileSummarySerializer,
)


class EffectiveViewView(APIView):
    """GET /views/effective/ – resolve the view profile for a viewer."""

    @extend_schema(
        summary="Resolve Effective View",
        description=(
            "Walks the five audience tiers (staff, role, partner, partner type, "
            "default) and returns the winning active view profile, or null when "
            "no active rule matches.  Omitted identifiers are treated as absent."
        ),
        parameters=[
            OpenApiParameter("staff_id", str, required=False),
            OpenApiParameter("role", str, required=False),
            OpenApiParameter("partner_id", str, required=False),
            OpenApiParameter("partner_type", str, required=False),
        ],
        responses={
            200: EffectiveViewResponseSerializer,
            503: OpenApiResponse(description="Audience rules could not be read."),
        },
        tags=["Views"],
    )
    def get(self, request: Request) -> Response:
        serializer = EffectiveViewQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        view = services.resolve_effective_view(serializer.to_identifiers())
        return Response(
            {"view": ViewProfileSummarySerializer(view).data if view else None},
            status=status.HTTP_200_OK,
        )
