"""
apps.view_profiles.models
~~~~~~~~~~~~~~~~~~~~~~~~~
Models for view profiles and the audience rules that select them.

Models
------
ViewProfile
    A named, independently activatable bundle of modules/dashboards.

AudienceRule
    Binds a view profile to one audience dimension (staff, role, partner,
    partner type or default) with a precedence tier and a tie-break priority.
"""
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q

from apps.view_profiles.audience import TARGET_TYPE_TIERS


class ViewProfile(models.Model):
    """
    A named view definition controlling which modules/dashboards an audience
    sees.

    Only active profiles are eligible targets of an audience rule; rules
    pointing at an inactive profile are ignored during resolution.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    slug = models.SlugField(
        max_length=255,
        unique=True,
        help_text="URL-safe unique identifier (e.g. ppc-basic-view).",
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    is_default = models.BooleanField(
        default=False,
        help_text="True if this view is the fallback when no audience rule matches.",
    )
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "View Profile"
        verbose_name_plural = "View Profiles"

    def __str__(self) -> str:
        status = "active" if self.is_active else "inactive"
        return f"{self.name} ({self.slug}) [{status}]"


class AudienceRule(models.Model):
    """
    Audience-to-view mapping with five-tier precedence
    (staff > role > partner > partner_type > default).

    ``tier`` is derived from ``target_type`` on every save and is never set
    by hand.  ``target_id`` is required for every target type except
    ``default``, where it must be empty.  Both invariants are also enforced
    by database check constraints.
    """

    class TargetType(models.TextChoices):
        STAFF = "staff", "Staff member"
        ROLE = "role", "Role"
        PARTNER = "partner", "Partner"
        PARTNER_TYPE = "partner_type", "Partner type"
        DEFAULT = "default", "Default"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    view = models.ForeignKey(
        ViewProfile,
        on_delete=models.CASCADE,
        related_name="audience_rules",
    )
    tier = models.PositiveSmallIntegerField(
        editable=False,
        help_text="Precedence tier: 1=staff, 2=role, 3=partner, 4=partner_type, 5=default. Lower wins.",
    )
    target_type = models.CharField(max_length=20, choices=TargetType.choices)
    target_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Identifier within the target_type dimension (empty for default).",
    )
    priority = models.SmallIntegerField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(1000)],
        help_text="Tie-break within the same tier. Lower priority wins.",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["tier", "priority", "created_at"]
        verbose_name = "Audience Rule"
        verbose_name_plural = "Audience Rules"
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(tier=1, target_type="staff")
                    | Q(tier=2, target_type="role")
                    | Q(tier=3, target_type="partner")
                    | Q(tier=4, target_type="partner_type")
                    | Q(tier=5, target_type="default")
                ),
                name="chk_tier_target_type",
            ),
            models.CheckConstraint(
                condition=(
                    Q(target_type="default", target_id__isnull=True)
                    | (~Q(target_type="default") & Q(target_id__isnull=False))
                ),
                name="chk_target_id_required",
            ),
            models.UniqueConstraint(
                fields=["view"],
                condition=Q(target_type="default", is_active=True),
                name="uq_audience_rule_active_default",
                violation_error_message="This view already has an active default rule.",
            ),
            models.UniqueConstraint(
                fields=["view", "target_type", "target_id"],
                condition=Q(target_id__isnull=False),
                name="uq_audience_rule_target",
                violation_error_message="A rule for this target already exists on this view.",
            ),
        ]

    def __str__(self) -> str:
        target = self.target_id or "*"
        return f"{self.view.slug} ← {self.target_type}:{target} (tier {self.tier}, p{self.priority})"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def clean(self) -> None:
        """
        Normalise ``target_id`` and check it against ``target_type``.

        Raises:
            django.core.exceptions.ValidationError: A default rule carries a
                target, or a non-default rule lacks one.
        """
        self.target_id = self.target_id or None
        if self.target_type == self.TargetType.DEFAULT and self.target_id is not None:
            raise ValidationError({"target_id": "target_id must be empty for default rules."})
        if self.target_type != self.TargetType.DEFAULT and self.target_id is None:
            raise ValidationError({"target_id": "target_id is required for non-default rules."})

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args, **kwargs) -> None:
        """Derive ``tier`` from ``target_type`` before persisting."""
        self.target_id = self.target_id or None
        self.tier = TARGET_TYPE_TIERS[self.target_type]
        super().save(*args, **kwargs)
