"""
apps.preview.services.preview_service
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
All business logic behind the preview endpoints.

Views must call only these functions.  The admin gate itself is a DRF
permission on the "start preview" view; everything after it lives here.

Responsibilities
----------------
- Resolving the role a subject is previewed with.
- Enforcing that live data is only previewed for a concrete staff member or
  partner.
- Issuing the token and writing the ``preview_session_created`` audit line.
- Opening a preview: verification, actor-binding and a re-check that the
  view profile is still active.  Every failure surfaces as the same
  :class:`~common.exceptions.PreviewUnavailableError`.

Audit lines carry ids and shortcodes only.  Tokens are never logged.
"""
from __future__ import annotations

from dataclasses import dataclass

import structlog
from django.conf import settings
from django.contrib.auth import get_user_model

from apps.view_profiles.audience import ROLE_SLUGS, ROLES
from apps.view_profiles.models import ViewProfile
from apps.view_profiles.services import get_view_profile
from common.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    PreviewUnavailableError,
    ValidationError,
)
from .preview_session import (
    CreatePreviewTokenInput,
    PreviewToken,
    create_preview_token,
    verify_preview_token,
)
from .subjects import (
    DataMode,
    PartnerSubject,
    PartnerTypeSubject,
    RoleSubject,
    SelfSubject,
    StaffSubject,
    Subject,
    subject_from_parts,
)
from .token_codec import PreviewSessionPayload

logger = structlog.get_logger(__name__)

ROLE_LABELS: dict[str, str] = {
    ROLES.ADMIN: "Admin",
    ROLES.POD_LEADER: "PPC Strategist",
    ROLES.STAFF: "Staff",
    ROLES.PARTNER: "Partner",
}

#: Group names checked (in this order) when mapping a user to a role.
_ROLE_GROUP_ORDER: tuple[str, ...] = (ROLES.ADMIN, ROLES.POD_LEADER, ROLES.PARTNER)


@dataclass(frozen=True)
class OpenedPreview:
    payload: PreviewSessionPayload
    view: ViewProfile
    subject_label: str
    role_label: str


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

def role_for_user(user) -> str:
    """
    Map a Django user onto an RBAC role slug.

    Superusers are ``admin``; otherwise the first of the ``admin``,
    ``pod_leader`` and ``partner`` groups the user belongs to wins, and
    everyone else is ``staff``.
    """
    if user.is_superuser:
        return ROLES.ADMIN
    groups = set(user.groups.values_list("name", flat=True))
    for role in _ROLE_GROUP_ORDER:
        if role in groups:
            return role
    return ROLES.STAFF


def resolve_subject_role(subject: Subject, actor) -> str:
    """
    Return the role *subject* is previewed with.

    Raises:
        NotFoundError: A staff subject does not exist.
        ValidationError: Unknown role slug or partner type.
    """
    if isinstance(subject, SelfSubject):
        return role_for_user(actor)

    if isinstance(subject, StaffSubject):
        staff = _get_user(subject.staff_id)
        if staff is None:
            raise NotFoundError(f"Staff member '{subject.staff_id}' not found.")
        return role_for_user(staff)

    if isinstance(subject, PartnerSubject):
        return ROLES.PARTNER

    if isinstance(subject, RoleSubject):
        if subject.role_slug not in ROLE_SLUGS:
            raise ValidationError(
                f'Invalid role slug "{subject.role_slug}".', code="invalid_role"
            )
        return subject.role_slug

    if isinstance(subject, PartnerTypeSubject):
        if subject.partner_type_slug not in settings.CANONICAL_PARTNER_TYPES:
            raise ValidationError(
                f'Unknown partner type "{subject.partner_type_slug}".',
                code="invalid_partner_type",
            )
        return ROLES.PARTNER

    raise TypeError(f"Unsupported subject: {subject!r}")


# ---------------------------------------------------------------------------
# Start preview
# ---------------------------------------------------------------------------

def start_preview(
    *,
    actor,
    view_id: str,
    subject_type: str,
    subject_target_id: str | None,
    data_mode: str = DataMode.SNAPSHOT.value,
) -> PreviewToken:
    """
    Issue a preview token for *actor* to see *view_id* as a subject.

    The caller must already have authorised *actor* to start previews.

    Steps:

    1. Fetch the view profile (404) and require it to be active.
    2. Build the subject variant from ``(subject_type, subject_target_id)``.
    3. Resolve the subject's role.
    4. Refuse live data unless the subject is a concrete staff member or
       partner.
    5. Issue the token and write the audit line.

    Raises:
        NotFoundError: Unknown view profile or staff member.
        ValidationError: Inactive view, bad subject, unknown role or
            partner type.
        PermissionDeniedError: Live data requested for an aggregate subject.
    """
    view = get_view_profile(view_id)
    if not view.is_active:
        raise ValidationError("View is not active.", code="view_inactive")

    try:
        subject = subject_from_parts(subject_type, subject_target_id or None)
    except ValueError as exc:
        raise ValidationError(str(exc), code="invalid_subject") from exc

    resolved_role = resolve_subject_role(subject, actor)
    mode = DataMode(data_mode)

    if mode is DataMode.LIVE and not isinstance(subject, (StaffSubject, PartnerSubject)):
        raise PermissionDeniedError(
            "Live data mode requires a specific partner or staff member target.",
            code="live_requires_entity",
        )

    issued = create_preview_token(
        CreatePreviewTokenInput(
            view_id=str(view.id),
            subject=subject,
            resolved_role=resolved_role,
            data_mode=mode,
            actor_id=str(actor.pk),
        )
    )

    logger.info(
        "preview_session_created",
        actor_id=str(actor.pk),
        view_id=str(view.id),
        session_id=issued.session_id,
        subject_type=subject.subject_type.value,
        target_id=subject.target_id,
        data_mode=mode.value,
        expires_at=issued.expires_at,
    )
    return issued


# ---------------------------------------------------------------------------
# Open preview
# ---------------------------------------------------------------------------

def open_preview(*, user, token: str) -> OpenedPreview:
    """
    Verify *token* for the authenticated *user* and load what it previews.

    Raises:
        PreviewUnavailableError: Any failure, including a token issued to
            another user or a view deactivated since issuance.
    """
    payload = verify_preview_token(token)
    if payload is None:
        raise PreviewUnavailableError()

    if payload.actor_id != str(user.pk):
        logger.warning(
            "preview_actor_mismatch",
            session_id=payload.session_id,
            user_id=str(user.pk),
        )
        raise PreviewUnavailableError()

    view = ViewProfile.objects.filter(pk=payload.view_id, is_active=True).first()
    if view is None:
        logger.info(
            "preview_view_inactive",
            session_id=payload.session_id,
            view_id=payload.view_id,
        )
        raise PreviewUnavailableError()

    return OpenedPreview(
        payload=payload,
        view=view,
        subject_label=subject_label(payload.subject, user),
        role_label=ROLE_LABELS.get(payload.resolved_role, ROLE_LABELS[ROLES.STAFF]),
    )


def subject_label(subject: Subject, actor) -> str:
    """Human-readable name of who is being previewed."""
    if isinstance(subject, SelfSubject):
        return _display_name(actor)
    if isinstance(subject, StaffSubject):
        staff = _get_user(subject.staff_id)
        return _display_name(staff) if staff is not None else "Staff member"
    if isinstance(subject, RoleSubject):
        return ROLE_LABELS.get(subject.role_slug, subject.role_slug)
    if isinstance(subject, PartnerTypeSubject):
        labels: dict = settings.PARTNER_TYPE_LABELS
        return labels.get(subject.partner_type_slug, subject.partner_type_slug)
    return f"Partner {subject.target_id}"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_user(user_id: str):
    User = get_user_model()
    try:
        return User.objects.filter(pk=user_id).first()
    except (ValueError, TypeError):
        return None


def _display_name(user) -> str:
    return user.get_full_name() or user.get_username()
