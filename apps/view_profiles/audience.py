"""
apps.view_profiles.audience
~~~~~~~~~~~~~~~~~~~~~~~~~~~
Audience taxonomy shared by view resolution and preview sessions.

This module is **pure Python**: it has zero Django view, serializer, or ORM
imports.  The ORM store converts model rows into the records defined here so
the resolver can be tested with plain in-memory fixtures.

Public API
----------
TARGET_TYPE_TIERS    – target type → precedence tier (1 = most specific)
ROLES / ROLE_SLUGS   – RBAC role slugs
ViewerIdentifiers    – resolver input
ViewProfileRecord    – read-only view profile snapshot
AudienceRuleRecord   – read-only audience rule snapshot
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------

TARGET_STAFF = "staff"
TARGET_ROLE = "role"
TARGET_PARTNER = "partner"
TARGET_PARTNER_TYPE = "partner_type"
TARGET_DEFAULT = "default"

#: Precedence tier for each audience dimension.  Lower tiers win.
TARGET_TYPE_TIERS: dict[str, int] = {
    TARGET_STAFF: 1,
    TARGET_ROLE: 2,
    TARGET_PARTNER: 3,
    TARGET_PARTNER_TYPE: 4,
    TARGET_DEFAULT: 5,
}

DEFAULT_TIER = TARGET_TYPE_TIERS[TARGET_DEFAULT]


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

class ROLES:
    ADMIN = "admin"
    POD_LEADER = "pod_leader"
    STAFF = "staff"
    PARTNER = "partner"


ROLE_SLUGS: frozenset[str] = frozenset(
    {ROLES.ADMIN, ROLES.POD_LEADER, ROLES.STAFF, ROLES.PARTNER}
)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ViewerIdentifiers:
    """
    Everything the resolver knows about a viewer.

    Any subset may be absent.  ``None`` and ``""`` are both treated as
    absent; with every field absent only default-tier rules can match.
    """

    staff_id: str | None = None
    role_slug: str | None = None
    partner_id: str | None = None
    partner_type_slug: str | None = None

    def targets(self) -> dict[str, str]:
        """Return ``{target_type: target_id}`` for every present identifier."""
        present = {
            TARGET_STAFF: self.staff_id,
            TARGET_ROLE: self.role_slug,
            TARGET_PARTNER: self.partner_id,
            TARGET_PARTNER_TYPE: self.partner_type_slug,
        }
        return {ttype: str(tid) for ttype, tid in present.items() if tid}


@dataclass(frozen=True)
class ViewProfileRecord:
    id: str
    slug: str
    name: str
    is_active: bool = True
    is_default: bool = False
    description: str = ""


@dataclass(frozen=True)
class AudienceRuleRecord:
    """
    One audience rule joined with the view profile it points at.

    ``tier`` is fully determined by ``target_type`` and ``target_id`` is
    ``None`` iff ``target_type == "default"``; the database enforces both.
    """

    id: str
    view_id: str
    tier: int
    target_type: str
    target_id: str | None
    priority: int
    is_active: bool
    created_at: datetime
    view_profile: ViewProfileRecord

    @property
    def sort_key(self) -> tuple[int, int, datetime, str]:
        return (self.tier, self.priority, self.created_at, self.id)
