"""
apps.view_profiles.admin
~~~~~~~~~~~~~~~~~~~~~~~~
Django admin registrations for view profiles and audience rules.
"""
from django.contrib import admin

from .models import AudienceRule, ViewProfile


class AudienceRuleInline(admin.TabularInline):
    model = AudienceRule
    extra = 0
    fields = ["target_type", "target_id", "priority", "is_active", "tier", "created_at"]
    readonly_fields = ["tier", "created_at"]
    ordering = ["tier", "priority", "created_at"]


@admin.register(ViewProfile)
class ViewProfileAdmin(admin.ModelAdmin):
    list_display = ["name", "slug", "is_default", "is_active", "created_at"]
    list_filter = ["is_active", "is_default"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ["name"]}
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["name"]
    inlines = [AudienceRuleInline]

    def save_model(self, request, obj, form, change):
        """Record the creating admin on first save."""
        if not change and obj.created_by_id is None:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(AudienceRule)
class AudienceRuleAdmin(admin.ModelAdmin):
    """
    Admin interface for audience rules.

    ``tier`` is read-only: it is derived from ``target_type`` in
    :meth:`AudienceRule.save <apps.view_profiles.models.AudienceRule.save>`.
    """

    list_display = ["view", "tier", "target_type", "target_id", "priority", "is_active", "created_at"]
    list_filter = ["is_active", "target_type", "view"]
    search_fields = ["target_id", "view__name", "view__slug"]
    readonly_fields = ["id", "tier", "created_at"]
    ordering = ["tier", "priority", "created_at"]
    list_select_related = ["view"]
