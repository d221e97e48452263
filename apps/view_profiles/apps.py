"""
apps.view_profiles.apps
"""
from django.apps import AppConfig


class ViewProfilesConfig(AppConfig):
    name = "apps.view_profiles"
    label = "view_profiles"
    verbose_name = "View Profiles"
