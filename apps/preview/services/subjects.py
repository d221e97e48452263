"""
apps.preview.services.subjects
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Who a preview session renders the product *as*.

A subject is one of five closed variants, each carrying only the field its
kind needs:

=====================  ==============================  ====================
Variant                Field                           ``target_id``
=====================  ==============================  ====================
``SelfSubject``        –                               ``None``
``StaffSubject``       ``staff_id`` (needs a lookup)   ``staff_id``
``PartnerSubject``     ``partner_id``                  ``partner_id``
``RoleSubject``        ``role_slug``                   ``role_slug``
``PartnerTypeSubject`` ``partner_type_slug``           ``partner_type_slug``
=====================  ==============================  ====================

so "``target_id`` is ``None`` iff the subject is *self*" holds by
construction.

This module is **pure Python** with no Django imports.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import ClassVar, Union

from apps.view_profiles.audience import ViewerIdentifiers


class SubjectType(str, enum.Enum):
    SELF = "self"
    STAFF = "staff"
    PARTNER = "partner"
    ROLE = "role"
    PARTNER_TYPE = "partner_type"


class DataMode(str, enum.Enum):
    SNAPSHOT = "snapshot"
    LIVE = "live"


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SelfSubject:
    """The acting admin, seen as themselves."""

    subject_type: ClassVar[SubjectType] = SubjectType.SELF

    @property
    def target_id(self) -> None:
        return None

    def viewer_identifiers(self, actor_id: str, resolved_role: str) -> ViewerIdentifiers:
        return ViewerIdentifiers(staff_id=actor_id, role_slug=resolved_role)


@dataclass(frozen=True)
class StaffSubject:
    staff_id: str

    subject_type: ClassVar[SubjectType] = SubjectType.STAFF

    def __post_init__(self) -> None:
        _require(self.staff_id, "staff_id")

    @property
    def target_id(self) -> str:
        return self.staff_id

    def viewer_identifiers(self, actor_id: str, resolved_role: str) -> ViewerIdentifiers:
        return ViewerIdentifiers(staff_id=self.staff_id, role_slug=resolved_role)


@dataclass(frozen=True)
class PartnerSubject:
    partner_id: str

    subject_type: ClassVar[SubjectType] = SubjectType.PARTNER

    def __post_init__(self) -> None:
        _require(self.partner_id, "partner_id")

    @property
    def target_id(self) -> str:
        return self.partner_id

    def viewer_identifiers(self, actor_id: str, resolved_role: str) -> ViewerIdentifiers:
        return ViewerIdentifiers(partner_id=self.partner_id)


@dataclass(frozen=True)
class RoleSubject:
    role_slug: str

    subject_type: ClassVar[SubjectType] = SubjectType.ROLE

    def __post_init__(self) -> None:
        _require(self.role_slug, "role_slug")

    @property
    def target_id(self) -> str:
        return self.role_slug

    def viewer_identifiers(self, actor_id: str, resolved_role: str) -> ViewerIdentifiers:
        return ViewerIdentifiers(role_slug=self.role_slug)


@dataclass(frozen=True)
class PartnerTypeSubject:
    """A canonical partner-type slug such as ``ppc_basic``."""

    partner_type_slug: str

    subject_type: ClassVar[SubjectType] = SubjectType.PARTNER_TYPE

    def __post_init__(self) -> None:
        _require(self.partner_type_slug, "partner_type_slug")

    @property
    def target_id(self) -> str:
        return self.partner_type_slug

    def viewer_identifiers(self, actor_id: str, resolved_role: str) -> ViewerIdentifiers:
        return ViewerIdentifiers(partner_type_slug=self.partner_type_slug)


Subject = Union[SelfSubject, StaffSubject, PartnerSubject, RoleSubject, PartnerTypeSubject]

_VARIANTS: dict[SubjectType, type] = {
    SubjectType.STAFF: StaffSubject,
    SubjectType.PARTNER: PartnerSubject,
    SubjectType.ROLE: RoleSubject,
    SubjectType.PARTNER_TYPE: PartnerTypeSubject,
}


def subject_from_parts(subject_type: SubjectType | str, target_id: str | None) -> Subject:
    """
    Build the variant for a ``(subject_type, target_id)`` pair.

    Raises:
        ValueError: Unknown subject type, a target on *self*, or a missing
            target on any other kind.
    """
    subject_type = SubjectType(subject_type)
    if subject_type is SubjectType.SELF:
        if target_id is not None:
            raise ValueError("A self subject cannot carry a target id.")
        return SelfSubject()
    if not isinstance(target_id, str):
        raise ValueError(f"A {subject_type.value} subject requires a target id.")
    return _VARIANTS[subject_type](target_id)


def _require(value: object, name: str) -> None:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty string.")
