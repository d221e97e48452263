"""
tests.test_view_resolution
~~~~~~~~~~~~~~~~~~~~~~~~~~
pytest-django tests for view precedence resolution.

Covers:
- ViewPrecedenceResolver   (unit, no DB, in-memory rule store)
- AudienceRule model       (integration, DB)
- DjangoAudienceRuleStore  (integration, DB)
- GET /views/effective/    (integration, DB)
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError, transaction
from rest_framework import status
from rest_framework.test import APIClient

from apps.view_profiles.audience import (
    TARGET_TYPE_TIERS,
    AudienceRuleRecord,
    ViewerIdentifiers,
    ViewProfileRecord,
)
from apps.view_profiles.models import AudienceRule, ViewProfile
from apps.view_profiles.services import resolve_effective_view
from apps.view_profiles.services.rule_store import DjangoAudienceRuleStore
from apps.view_profiles.services.view_resolver import ViewPrecedenceResolver
from common.exceptions import DataUnavailableError


# ===========================================================================
# In-memory fixtures
# ===========================================================================

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_view(slug: str, *, is_active: bool = True) -> ViewProfileRecord:
    return ViewProfileRecord(id=f"id-{slug}", slug=slug, name=slug.title(), is_active=is_active)


_rule_seq = iter(range(1, 1_000_000))


def make_rule(
    target_type: str,
    target_id: str | None,
    view: ViewProfileRecord,
    *,
    priority: int = 0,
    is_active: bool = True,
    created_at: datetime = T0,
) -> AudienceRuleRecord:
    return AudienceRuleRecord(
        id=f"rule-{next(_rule_seq)}",
        view_id=view.id,
        tier=TARGET_TYPE_TIERS[target_type],
        target_type=target_type,
        target_id=target_id,
        priority=priority,
        is_active=is_active,
        created_at=created_at,
        view_profile=view,
    )


class InMemoryRuleStore:
    """Rule store returning a fixed list, or raising a given error."""

    def __init__(self, rules=(), error: Exception | None = None) -> None:
        self.rules = list(rules)
        self.error = error
        self.calls: list[dict] = []

    def list_active_rules(self, view_ids=None, *, timeout=None):
        self.calls.append({"view_ids": view_ids, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return list(self.rules)


def resolve(rules, **identifiers):
    resolver = ViewPrecedenceResolver(InMemoryRuleStore(rules))
    return resolver.resolve(ViewerIdentifiers(**identifiers))


# ===========================================================================
# TestViewPrecedenceResolver  (unit — no DB)
# ===========================================================================

class TestViewPrecedenceResolver:
    """Unit tests for ViewPrecedenceResolver.  No database access required."""

    def test_no_rules_returns_none(self):
        """With zero rules every viewer resolves to None."""
        assert resolve([]) is None
        assert resolve([], staff_id="s1", role_slug="admin", partner_id="p1") is None

    def test_staff_rule_beats_default(self):
        """Staff-tier rule wins for its staff id; others fall through to default."""
        view_a, view_b = make_view("a"), make_view("b")
        rules = [
            make_rule("staff", "s1", view_a),
            make_rule("default", None, view_b),
        ]
        assert resolve(rules, staff_id="s1").slug == "a"
        assert resolve(rules, staff_id="s2").slug == "b"

    def test_lower_priority_wins_within_tier(self):
        """Two role rules for 'admin': priority 0 beats priority 10."""
        rules = [
            make_rule("role", "admin", make_view("low"), priority=10),
            make_rule("role", "admin", make_view("high"), priority=0),
        ]
        assert resolve(rules, role_slug="admin").slug == "high"

    def test_equal_priority_falls_back_to_earliest_created(self):
        """Same tier and priority: the oldest rule wins regardless of input order."""
        rules = [
            make_rule("partner", "p1", make_view("newer"), created_at=T0 + timedelta(seconds=5)),
            make_rule("partner", "p1", make_view("older"), created_at=T0),
        ]
        assert resolve(rules, partner_id="p1").slug == "older"
        assert resolve(list(reversed(rules)), partner_id="p1").slug == "older"

    def test_full_tie_falls_back_to_rule_id(self):
        """Same tier, priority and created_at: the smallest rule id wins."""
        rules = [
            replace(make_rule("partner", "p1", make_view("second")), id="rule-b"),
            replace(make_rule("partner", "p1", make_view("first")), id="rule-a"),
        ]
        assert resolve(rules, partner_id="p1").slug == "first"
        assert resolve(list(reversed(rules)), partner_id="p1").slug == "first"

    def test_lower_tier_outranks_any_priority(self):
        """A tier-1 rule beats every other tier even with the worst priority."""
        rules = [
            make_rule("default", None, make_view("fallback"), priority=0),
            make_rule("partner_type", "ppc_basic", make_view("ptype"), priority=0),
            make_rule("partner", "p1", make_view("partner"), priority=0),
            make_rule("role", "staff", make_view("role"), priority=0),
            make_rule("staff", "s1", make_view("staff"), priority=1000),
        ]
        result = resolve(
            rules,
            staff_id="s1",
            role_slug="staff",
            partner_id="p1",
            partner_type_slug="ppc_basic",
        )
        assert result.slug == "staff"

    @pytest.mark.parametrize(
        "identifiers, expected",
        [
            ({"role_slug": "staff", "partner_id": "p1", "partner_type_slug": "cc"}, "role"),
            ({"partner_id": "p1", "partner_type_slug": "cc"}, "partner"),
            ({"partner_type_slug": "cc"}, "ptype"),
            ({}, "fallback"),
        ],
    )
    def test_tiers_fall_through_in_order(self, identifiers, expected):
        """Each missing identifier drops resolution to the next tier."""
        rules = [
            make_rule("role", "staff", make_view("role")),
            make_rule("partner", "p1", make_view("partner")),
            make_rule("partner_type", "cc", make_view("ptype")),
            make_rule("default", None, make_view("fallback")),
        ]
        assert resolve(rules, **identifiers).slug == expected

    def test_inactive_rule_is_skipped(self):
        """An inactive rule never wins; resolution falls through."""
        rules = [
            make_rule("staff", "s1", make_view("staff"), is_active=False),
            make_rule("default", None, make_view("fallback")),
        ]
        assert resolve(rules, staff_id="s1").slug == "fallback"

    def test_rule_on_inactive_view_is_skipped(self):
        """A rule whose view profile is inactive never wins."""
        rules = [
            make_rule("staff", "s1", make_view("dead", is_active=False)),
            make_rule("role", "admin", make_view("live")),
        ]
        assert resolve(rules, staff_id="s1", role_slug="admin").slug == "live"

    def test_only_inactive_candidates_returns_none(self):
        rules = [
            make_rule("default", None, make_view("dead", is_active=False)),
            make_rule("staff", "s1", make_view("off"), is_active=False),
        ]
        assert resolve(rules, staff_id="s1") is None

    def test_empty_string_identifiers_are_absent(self):
        """'' behaves exactly like a missing identifier."""
        rules = [
            make_rule("staff", "", make_view("blank")),
            make_rule("default", None, make_view("fallback")),
        ]
        assert resolve(rules, staff_id="").slug == "fallback"

    def test_none_identifiers_match_only_default(self):
        view = make_view("fallback")
        store = InMemoryRuleStore([
            make_rule("staff", "s1", make_view("staff")),
            make_rule("default", None, view),
        ])
        assert ViewPrecedenceResolver(store).resolve(None) == view

    def test_identifier_in_wrong_dimension_does_not_match(self):
        """A partner id equal to a staff rule's target must not match it."""
        rules = [make_rule("staff", "x1", make_view("staff"))]
        assert resolve(rules, partner_id="x1") is None

    def test_store_error_propagates(self):
        """A failed read is an error, never a None result."""
        store = InMemoryRuleStore(error=DataUnavailableError("boom"))
        with pytest.raises(DataUnavailableError):
            ViewPrecedenceResolver(store).resolve(ViewerIdentifiers(staff_id="s1"))

    def test_timeout_passed_to_store(self):
        store = InMemoryRuleStore()
        ViewPrecedenceResolver(store).resolve(timeout=2.5)
        assert store.calls == [{"view_ids": None, "timeout": 2.5}]

    def test_candidates_are_in_precedence_order(self):
        rules = [
            make_rule("default", None, make_view("d")),
            make_rule("role", "admin", make_view("r2"), priority=5),
            make_rule("role", "admin", make_view("r1"), priority=1),
            make_rule("staff", "s1", make_view("s")),
        ]
        ordered = ViewPrecedenceResolver.candidates(
            rules, ViewerIdentifiers(staff_id="s1", role_slug="admin")
        )
        assert [r.view_profile.slug for r in ordered] == ["s", "r1", "r2", "d"]


# ===========================================================================
# DB fixtures
# ===========================================================================

@pytest.fixture
def view_factory(db):
    """Return a callable creating ViewProfile rows."""

    def _create(slug: str, **kwargs) -> ViewProfile:
        return ViewProfile.objects.create(slug=slug, name=slug.title(), **kwargs)

    return _create


@pytest.fixture
def viewer(db):
    """An authenticated, non-admin user."""
    return get_user_model().objects.create_user(username="viewer", password="pw")


@pytest.fixture
def api_client(viewer) -> APIClient:
    """Return a DRF APIClient authenticated as a regular user."""
    client = APIClient()
    client.force_authenticate(user=viewer)
    return client


# ===========================================================================
# TestAudienceRuleModel  (integration — DB)
# ===========================================================================

@pytest.mark.django_db
class TestAudienceRuleModel:
    """Tier derivation and database constraints on AudienceRule."""

    @pytest.mark.parametrize("target_type, tier", sorted(TARGET_TYPE_TIERS.items()))
    def test_tier_derived_from_target_type(self, view_factory, target_type, tier):
        view = view_factory("v")
        target_id = None if target_type == "default" else "t1"
        rule = AudienceRule.objects.create(view=view, target_type=target_type, target_id=target_id)
        assert rule.tier == tier

    def test_blank_target_id_normalised_to_null(self, view_factory):
        rule = AudienceRule.objects.create(
            view=view_factory("v"), target_type="default", target_id=""
        )
        rule.refresh_from_db()
        assert rule.target_id is None

    def test_clean_rejects_default_with_target(self, view_factory):
        rule = AudienceRule(view=view_factory("v"), target_type="default", target_id="x")
        with pytest.raises(DjangoValidationError):
            rule.clean()

    def test_clean_rejects_non_default_without_target(self, view_factory):
        rule = AudienceRule(view=view_factory("v"), target_type="staff", target_id=None)
        with pytest.raises(DjangoValidationError):
            rule.clean()

    def test_db_rejects_non_default_without_target(self, view_factory):
        with pytest.raises(IntegrityError), transaction.atomic():
            AudienceRule.objects.create(view=view_factory("v"), target_type="role", target_id=None)

    def test_one_active_default_per_view(self, view_factory):
        view = view_factory("v")
        AudienceRule.objects.create(view=view, target_type="default")
        with pytest.raises(IntegrityError), transaction.atomic():
            AudienceRule.objects.create(view=view, target_type="default")

    def test_inactive_default_does_not_block_new_default(self, view_factory):
        view = view_factory("v")
        AudienceRule.objects.create(view=view, target_type="default", is_active=False)
        AudienceRule.objects.create(view=view, target_type="default")
        assert view.audience_rules.count() == 2


# ===========================================================================
# TestDjangoAudienceRuleStore  (integration — DB)
# ===========================================================================

@pytest.mark.django_db
class TestDjangoAudienceRuleStore:
    """ORM store and resolve_effective_view against real rows."""

    def test_store_returns_only_active_rules_on_active_views(self, view_factory):
        live, dead = view_factory("live"), view_factory("dead", is_active=False)
        AudienceRule.objects.create(view=live, target_type="staff", target_id="s1")
        AudienceRule.objects.create(view=live, target_type="role", target_id="admin", is_active=False)
        AudienceRule.objects.create(view=dead, target_type="staff", target_id="s1")

        records = DjangoAudienceRuleStore().list_active_rules()

        assert len(records) == 1
        record = records[0]
        assert record.target_type == "staff"
        assert record.tier == 1
        assert record.view_profile.slug == "live"
        assert record.view_id == str(live.id)

    def test_store_filters_by_view_ids(self, view_factory):
        one, two = view_factory("one"), view_factory("two")
        AudienceRule.objects.create(view=one, target_type="default")
        AudienceRule.objects.create(view=two, target_type="default")

        records = DjangoAudienceRuleStore().list_active_rules([str(two.id)])

        assert [r.view_profile.slug for r in records] == ["two"]

    def test_database_error_raises_data_unavailable(self, view_factory, monkeypatch):
        """A failed or cancelled query surfaces as DataUnavailableError."""

        def cancelled(self, timeout):
            raise DatabaseError("canceling statement due to statement timeout")

        monkeypatch.setattr(DjangoAudienceRuleStore, "_set_statement_timeout", cancelled)
        with pytest.raises(DataUnavailableError):
            DjangoAudienceRuleStore().list_active_rules(timeout=0.01)

    def test_resolve_effective_view_scenario(self, view_factory):
        view_a, view_b = view_factory("a"), view_factory("b")
        AudienceRule.objects.create(view=view_a, target_type="staff", target_id="s1")
        AudienceRule.objects.create(view=view_b, target_type="default")

        assert resolve_effective_view(ViewerIdentifiers(staff_id="s1")).slug == "a"
        assert resolve_effective_view(ViewerIdentifiers(staff_id="s2")).slug == "b"

    def test_resolve_effective_view_created_at_tie_break(self, view_factory):
        older, newer = view_factory("older"), view_factory("newer")
        r_newer = AudienceRule.objects.create(view=newer, target_type="role", target_id="staff")
        r_older = AudienceRule.objects.create(view=older, target_type="role", target_id="staff")
        AudienceRule.objects.filter(pk=r_older.pk).update(created_at=T0)
        AudienceRule.objects.filter(pk=r_newer.pk).update(created_at=T0 + timedelta(minutes=1))

        assert resolve_effective_view(ViewerIdentifiers(role_slug="staff")).slug == "older"

    def test_resolve_effective_view_full_tie_uses_rule_id(self, view_factory):
        rules = [
            AudienceRule.objects.create(view=view_factory(slug), target_type="role", target_id="staff")
            for slug in ("one", "two", "three")
        ]
        AudienceRule.objects.all().update(created_at=T0)
        winner = min(rules, key=lambda r: str(r.id))

        for _ in range(3):
            result = resolve_effective_view(ViewerIdentifiers(role_slug="staff"))
            assert result.id == str(winner.view_id)

        records = DjangoAudienceRuleStore().list_active_rules()
        assert [r.id for r in records] == sorted(str(r.id) for r in rules)

    def test_deactivating_view_falls_through(self, view_factory):
        staff_view, fallback = view_factory("staff"), view_factory("fallback")
        AudienceRule.objects.create(view=staff_view, target_type="staff", target_id="s1")
        AudienceRule.objects.create(view=fallback, target_type="default")

        ViewProfile.objects.filter(pk=staff_view.pk).update(is_active=False)

        assert resolve_effective_view(ViewerIdentifiers(staff_id="s1")).slug == "fallback"

    def test_no_rules_returns_none(self, db):
        assert resolve_effective_view(ViewerIdentifiers(staff_id="s1")) is None


# ===========================================================================
# TestEffectiveViewEndpoint  (integration — DB)
# ===========================================================================

EFFECTIVE_URL = "/api/v1/views/effective/"


@pytest.mark.django_db
class TestEffectiveViewEndpoint:
    """GET /views/effective/."""

    def test_returns_winning_view(self, api_client, view_factory):
        view = view_factory("partner-view", description="For p1")
        AudienceRule.objects.create(view=view, target_type="partner", target_id="p1")

        resp = api_client.get(EFFECTIVE_URL, {"partner_id": "p1", "role": "partner"})

        assert resp.status_code == status.HTTP_200_OK
        body = resp.json()["view"]
        assert body["id"] == str(view.id)
        assert body["slug"] == "partner-view"
        assert body["description"] == "For p1"

    def test_returns_null_when_nothing_matches(self, api_client, db):
        resp = api_client.get(EFFECTIVE_URL, {"staff_id": "s9"})
        assert resp.status_code == status.HTTP_200_OK
        assert resp.json() == {"view": None}

    def test_store_failure_returns_503(self, api_client, monkeypatch):
        def unavailable(self, view_ids=None, *, timeout=None):
            raise DataUnavailableError("Audience rules could not be read.")

        monkeypatch.setattr(DjangoAudienceRuleStore, "list_active_rules", unavailable)

        resp = api_client.get(EFFECTIVE_URL, {"staff_id": "s1"})

        assert resp.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert resp.json()["code"] == "data_unavailable"

    def test_requires_authentication(self, db):
        resp = APIClient().get(EFFECTIVE_URL)
        assert resp.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)
