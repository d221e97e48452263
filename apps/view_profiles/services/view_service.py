"""
apps.view_profiles.services.view_service
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Business logic for view profiles.

Views must call only these functions.  No business logic lives in views or
serializers.

Responsibilities
----------------
- Resolving the effective view for a viewer via
  :class:`~apps.view_profiles.services.view_resolver.ViewPrecedenceResolver`
  backed by :class:`~apps.view_profiles.services.rule_store.DjangoAudienceRuleStore`.
- Fetching a single :class:`~apps.view_profiles.models.ViewProfile`.
"""
from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError

from apps.view_profiles.audience import ViewerIdentifiers, ViewProfileRecord
from apps.view_profiles.models import ViewProfile
from common.exceptions import NotFoundError
from .rule_store import DjangoAudienceRuleStore
from .view_resolver import AudienceRuleStore, ViewPrecedenceResolver


def resolve_effective_view(
    identifiers: ViewerIdentifiers | None = None,
    *,
    store: AudienceRuleStore | None = None,
    timeout: float | None = None,
) -> ViewProfileRecord | None:
    """
    Return the view profile that applies to *identifiers*, or ``None``.

    Args:
        identifiers: The viewer's identifiers; ``None`` means all absent.
        store: Rule store to read from.  Defaults to the ORM store.
        timeout: Read timeout in seconds.  Defaults to
            ``settings.VIEW_RULE_STORE_TIMEOUT_SECONDS``.

    Raises:
        common.exceptions.DataUnavailableError: The rule store could not be
            read.  Never converted into a ``None`` result.
    """
    if timeout is None:
        timeout = settings.VIEW_RULE_STORE_TIMEOUT_SECONDS
    resolver = ViewPrecedenceResolver(store or DjangoAudienceRuleStore())
    return resolver.resolve(identifiers, timeout=timeout)


def get_view_profile(view_id: str) -> ViewProfile:
    """
    Fetch a :class:`ViewProfile` by UUID.

    Raises:
        NotFoundError: No profile with that id exists (or the id is not a
            valid UUID).
    """
    try:
        return ViewProfile.objects.get(pk=view_id)
    except (ViewProfile.DoesNotExist, DjangoValidationError, ValueError):
        raise NotFoundError(f"View profile '{view_id}' not found.")
