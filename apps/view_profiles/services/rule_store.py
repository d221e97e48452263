"""
apps.view_profiles.services.rule_store
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Django ORM implementation of the audience-rule store.

Rows are read in a single query (rules joined with their view profile) and
converted into immutable :class:`~apps.view_profiles.audience.AudienceRuleRecord`
snapshots, so nothing downstream of the read touches the ORM.

Every database failure, including a query cancelled by ``statement_timeout``,
is re-raised as :class:`~common.exceptions.DataUnavailableError`.
"""
from __future__ import annotations

from collections.abc import Iterable

import structlog
from django.db import DatabaseError, connections, transaction

from apps.view_profiles.models import AudienceRule, ViewProfile
from apps.view_profiles.audience import AudienceRuleRecord, ViewProfileRecord
from common.exceptions import DataUnavailableError

logger = structlog.get_logger(__name__)


def to_view_record(view: ViewProfile) -> ViewProfileRecord:
    return ViewProfileRecord(
        id=str(view.id),
        slug=view.slug,
        name=view.name,
        is_active=view.is_active,
        is_default=view.is_default,
        description=view.description,
    )


def to_rule_record(rule: AudienceRule) -> AudienceRuleRecord:
    return AudienceRuleRecord(
        id=str(rule.id),
        view_id=str(rule.view_id),
        tier=rule.tier,
        target_type=rule.target_type,
        target_id=rule.target_id,
        priority=rule.priority,
        is_active=rule.is_active,
        created_at=rule.created_at,
        view_profile=to_view_record(rule.view),
    )


class DjangoAudienceRuleStore:
    """Reads active audience rules bound to active view profiles."""

    def __init__(self, using: str = "default") -> None:
        self.using = using

    def list_active_rules(
        self,
        view_ids: Iterable[str] | None = None,
        *,
        timeout: float | None = None,
    ) -> list[AudienceRuleRecord]:
        """
        Return active rules (on active profiles) ordered by precedence.

        Args:
            view_ids: Restrict to rules of these view profiles.
            timeout: Statement timeout in seconds.  Applied as a
                transaction-local ``statement_timeout`` on PostgreSQL; other
                backends ignore it.

        Raises:
            DataUnavailableError: The query failed or was cancelled.
        """
        qs = (
            AudienceRule.objects.using(self.using)
            .select_related("view")
            .filter(is_active=True, view__is_active=True)
            .order_by("tier", "priority", "created_at", "id")
        )
        if view_ids is not None:
            qs = qs.filter(view_id__in=list(view_ids))

        try:
            with transaction.atomic(using=self.using):
                if timeout:
                    self._set_statement_timeout(timeout)
                rows = list(qs)
        except DatabaseError as exc:
            logger.error("rule_store_unavailable", error=str(exc), timeout=timeout)
            raise DataUnavailableError(
                "Audience rules could not be read."
            ) from exc

        return [to_rule_record(rule) for rule in rows]

    def _set_statement_timeout(self, timeout: float) -> None:
        conn = connections[self.using]
        if conn.vendor != "postgresql":
            return
        with conn.cursor() as cursor:
            # set_config(..., is_local=true) scopes the timeout to this transaction
            cursor.execute(
                "SELECT set_config('statement_timeout', %s, true)",
                [str(max(1, int(timeout * 1000)))],
            )
