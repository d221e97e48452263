"""
apps.preview.urls
~~~~~~~~~~~~~~~~~
URL routing for the Preview application.
Mounted at /api/v1/ by the root URLconf.
"""
from django.urls import path

from .views import PreviewOpenView, PreviewSessionCreateView

urlpatterns = [
    # POST /api/v1/views/preview-session/
    path(
        "views/preview-session/",
        PreviewSessionCreateView.as_view(),
        name="preview-session-create",
    ),
    # GET /api/v1/views/preview/?token=...
    path(
        "views/preview/",
        PreviewOpenView.as_view(),
        name="preview-open",
    ),
]
