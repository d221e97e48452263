"""
apps.preview.views
~~~~~~~~~~~~~~~~~~
Thin DRF API views for preview ("see-as") sessions.
All business logic is delegated to
:mod:`apps.preview.services.preview_service`.

Endpoints
---------
POST   /views/preview-session/    – Start a preview (admins only)
GET    /views/preview/?token=…    – Open a preview started by the caller
"""
from __future__ import annotations

from urllib.parse import urlencode

from django.urls import reverse
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.preview import services
from common.exceptions import PreviewUnavailableError
from .serializers import (
    CreatePreviewSessionSerializer,
    OpenedPreviewSerializer,
    OpenPreviewQuerySerializer,
    PreviewSessionResponseSerializer,
)


class PreviewSessionCreateView(APIView):
    """POST /views/preview-session/ – issue a signed preview token."""

    permission_classes = [IsAdminUser]

    @extend_schema(
        summary="Start Preview Session",
        description=(
            "Issues a 15-minute signed token that lets the calling admin render "
            "a view profile as another subject.  Live data requires a concrete "
            "staff member or partner as the subject."
        ),
        request=CreatePreviewSessionSerializer,
        responses={
            201: PreviewSessionResponseSerializer,
            403: OpenApiResponse(description="Caller is not an admin, or live mode on an aggregate subject."),
            404: OpenApiResponse(description="View profile or staff member not found."),
            422: OpenApiResponse(description="Inactive view, invalid subject, role or partner type."),
        },
        tags=["Preview"],
    )
    def post(self, request: Request) -> Response:
        serializer = CreatePreviewSessionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        vd = serializer.validated_data

        issued = services.start_preview(
            actor=request.user,
            view_id=str(vd["view_id"]),
            subject_type=vd["subject_type"],
            subject_target_id=vd["subject_target_id"],
            data_mode=vd["data_mode"],
        )
        preview_url = f"{reverse('preview-open')}?{urlencode({'token': issued.token})}"
        return Response(
            {
                "token": issued.token,
                "session_id": issued.session_id,
                "expires_at": issued.expires_at,
                "preview_url": preview_url,
            },
            status=status.HTTP_201_CREATED,
        )


class PreviewOpenView(APIView):
    """GET /views/preview/ – verify a token and describe the preview."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Open Preview",
        description=(
            "Verifies the token, checks it was issued to the caller and that the "
            "view is still active.  Every failure returns the same "
            "'Preview unavailable' response."
        ),
        parameters=[OpenApiParameter("token", str, required=True)],
        responses={
            200: OpenedPreviewSerializer,
            404: OpenApiResponse(description="Preview unavailable."),
        },
        tags=["Preview"],
    )
    def get(self, request: Request) -> Response:
        serializer = OpenPreviewQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            raise PreviewUnavailableError()

        opened = services.open_preview(
            user=request.user,
            token=serializer.validated_data["token"],
        )
        return Response(
            OpenedPreviewSerializer(opened).data,
            status=status.HTTP_200_OK,
        )
