"""
apps.view_profiles.services.view_resolver
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Deterministic view-precedence resolver.

Precedence (most specific → least specific):
    1. **staff**        - a rule targeting the viewer's staff id.
    2. **role**         - a rule targeting the viewer's role slug.
    3. **partner**      - a rule targeting the viewer's partner id.
    4. **partner_type** - a rule targeting the viewer's canonical partner type.
    5. **default**      - catch-all rules with no target.

Within a tier the rule with the lowest ``priority`` wins; equal priorities
fall back to the earliest ``created_at`` and then to the rule ``id``.  Inactive rules and rules pointing
at an inactive view profile are skipped as if absent, so resolution falls
through to the next tier instead of failing.

"No rule matched" is a ``None`` result.  A failed read from the rule store is
*not*: the store raises :class:`~common.exceptions.DataUnavailableError` and
the resolver lets it propagate.

This module has zero Django view, serializer, or ORM imports.

Public API
----------
AudienceRuleStore                       – collaborator protocol
ViewPrecedenceResolver.resolve(ids)     -> ViewProfileRecord | None
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol

import structlog

from apps.view_profiles.audience import (
    TARGET_DEFAULT,
    AudienceRuleRecord,
    ViewerIdentifiers,
    ViewProfileRecord,
)

logger = structlog.get_logger(__name__)


class AudienceRuleStore(Protocol):
    """Read-only source of audience rules."""

    def list_active_rules(
        self,
        view_ids: Iterable[str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Sequence[AudienceRuleRecord]:
        """
        Return active rules joined with their view profile.

        Args:
            view_ids: Restrict to rules of these views; ``None`` means all.
            timeout: Upper bound in seconds for the read, or ``None``.

        Raises:
            common.exceptions.DataUnavailableError: The read failed, timed
                out, or was cancelled.
        """
        ...


class ViewPrecedenceResolver:
    """
    Picks the winning view profile for a viewer.

    Example::

        resolver = ViewPrecedenceResolver(DjangoAudienceRuleStore())
        view = resolver.resolve(ViewerIdentifiers(staff_id="s1", role_slug="staff"))
        # → ViewProfileRecord(slug="ops-view", ...) or None
    """

    def __init__(self, store: AudienceRuleStore) -> None:
        self._store = store

    def resolve(
        self,
        identifiers: ViewerIdentifiers | None = None,
        *,
        timeout: float | None = None,
    ) -> ViewProfileRecord | None:
        """
        Resolve the effective view profile for *identifiers*.

        Args:
            identifiers: The viewer's identifiers.  ``None`` is the same as
                all-absent and only default-tier rules can match.
            timeout: Passed through to the store read.

        Returns:
            The winning :class:`ViewProfileRecord`, or ``None`` when no
            eligible rule exists.

        Raises:
            common.exceptions.DataUnavailableError: Propagated from the store.
        """
        identifiers = identifiers or ViewerIdentifiers()
        rules = self._store.list_active_rules(timeout=timeout)
        candidates = self.candidates(rules, identifiers)

        if not candidates:
            logger.info("view_unresolved", targets=identifiers.targets())
            return None

        winner = candidates[0]
        same_tier = [r for r in candidates if r.tier == winner.tier]
        if len(same_tier) > 1:
            logger.info(
                "view_tie_break",
                tier=winner.tier,
                rule_ids=[r.id for r in same_tier],
                selected_priority=winner.priority,
            )

        logger.info(
            "view_resolved",
            view_slug=winner.view_profile.slug,
            rule_id=winner.id,
            tier=winner.tier,
            target_type=winner.target_type,
        )
        return winner.view_profile

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def candidates(
        rules: Iterable[AudienceRuleRecord],
        identifiers: ViewerIdentifiers,
    ) -> list[AudienceRuleRecord]:
        """
        Return the eligible rules for *identifiers* in precedence order.

        Eligible means: active, bound to an active view profile, and either a
        default rule or a rule whose ``(target_type, target_id)`` equals one
        of the viewer's present identifiers.
        """
        targets = identifiers.targets()
        eligible = [
            rule
            for rule in rules
            if rule.is_active
            and rule.view_profile.is_active
            and ViewPrecedenceResolver._matches(rule, targets)
        ]
        return sorted(eligible, key=lambda r: r.sort_key)

    @staticmethod
    def _matches(rule: AudienceRuleRecord, targets: dict[str, str]) -> bool:
        if rule.target_type == TARGET_DEFAULT:
            return rule.target_id is None
        wanted = targets.get(rule.target_type)
        return wanted is not None and rule.target_id == wanted
