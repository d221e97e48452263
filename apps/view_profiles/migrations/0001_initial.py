import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ViewProfile",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("slug", models.SlugField(help_text="URL-safe unique identifier (e.g. ppc-basic-view).", max_length=255, unique=True)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("is_default", models.BooleanField(default=False, help_text="True if this view is the fallback when no audience rule matches.")),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "View Profile",
                "verbose_name_plural": "View Profiles",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="AudienceRule",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("tier", models.PositiveSmallIntegerField(editable=False, help_text="Precedence tier: 1=staff, 2=role, 3=partner, 4=partner_type, 5=default. Lower wins.")),
                (
                    "target_type",
                    models.CharField(
                        choices=[
                            ("staff", "Staff member"),
                            ("role", "Role"),
                            ("partner", "Partner"),
                            ("partner_type", "Partner type"),
                            ("default", "Default"),
                        ],
                        max_length=20,
                    ),
                ),
                ("target_id", models.CharField(blank=True, help_text="Identifier within the target_type dimension (empty for default).", max_length=255, null=True)),
                (
                    "priority",
                    models.SmallIntegerField(
                        default=0,
                        help_text="Tie-break within the same tier. Lower priority wins.",
                        validators=[
                            django.core.validators.MinValueValidator(0),
                            django.core.validators.MaxValueValidator(1000),
                        ],
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "view",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="audience_rules",
                        to="view_profiles.viewprofile",
                    ),
                ),
            ],
            options={
                "verbose_name": "Audience Rule",
                "verbose_name_plural": "Audience Rules",
                "ordering": ["tier", "priority", "created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("target_type", "staff"), ("tier", 1)),
                            models.Q(("target_type", "role"), ("tier", 2)),
                            models.Q(("target_type", "partner"), ("tier", 3)),
                            models.Q(("target_type", "partner_type"), ("tier", 4)),
                            models.Q(("target_type", "default"), ("tier", 5)),
                            _connector="OR",
                        ),
                        name="chk_tier_target_type",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("target_id__isnull", True), ("target_type", "default")),
                            models.Q(
                                models.Q(("target_type", "default"), _negated=True),
                                ("target_id__isnull", False),
                            ),
                            _connector="OR",
                        ),
                        name="chk_target_id_required",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True), ("target_type", "default")),
                        fields=("view",),
                        name="uq_audience_rule_active_default",
                        violation_error_message="This view already has an active default rule.",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("target_id__isnull", False)),
                        fields=("view", "target_type", "target_id"),
                        name="uq_audience_rule_target",
                        violation_error_message="A rule for this target already exists on this view.",
                    ),
                ],
            },
        ),
    ]
