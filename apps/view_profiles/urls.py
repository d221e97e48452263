"""
apps.view_profiles.urls
~~~~~~~~~~~~~~~~~~~~~~~
URL routing for the View Profiles application.
Mounted at /api/v1/ by the root URLconf.
"""
from django.urls import path

from .views import EffectiveViewView

urlpatterns = [
    # GET /api/v1/views/effective/
    path(
        "views/effective/",
        EffectiveViewView.as_view(),
        name="view-effective",
    ),
]
