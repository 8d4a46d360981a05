"""
Tests for usage aggregation against in-memory collaborators.
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from sitequota.core.errors import MalformedInputError, StoreUnavailableError
from sitequota.features.usage.service import (
    collect_team_member_emails,
    compute_usage,
    monthly_pageview_usage,
    site_usage,
    team_member_usage,
)
from sitequota.models.account import Account
from sitequota.models.usage import Usage


NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
OWNER = Account(account_id="owner", email="owner@x.com", inserted_at=datetime(2023, 1, 1, tzinfo=timezone.utc))


def test_site_usage_counts_owned_sites(fakes):
    ownership = fakes.Ownership(owned={"owner": {"s1", "s2", "s3"}})
    assert site_usage(OWNER, ownership) == 3


def test_site_usage_none_owned(fakes):
    assert site_usage(OWNER, fakes.Ownership()) == 0


def test_pageview_usage_sums_breakdown(fakes):
    metrics = fakes.Metrics(breakdowns={"owner": (9_000, 3_000)})
    assert monthly_pageview_usage(OWNER, metrics, NOW) == 12_000


def test_pageview_usage_any_number_of_categories(fakes):
    metrics = fakes.Metrics(breakdowns={"owner": (1, 2, 3, 4)})
    assert monthly_pageview_usage(OWNER, metrics, NOW) == 10


@pytest.mark.parametrize("breakdown", [(-1, 5), (1.5, 2), ("10", 0), (True, 0)])
def test_garbled_breakdown_raises(fakes, breakdown):
    metrics = fakes.Metrics(breakdowns={"owner": breakdown})
    with pytest.raises(MalformedInputError):
        monthly_pageview_usage(OWNER, metrics, NOW)


def test_negative_site_count_raises():
    class Negative:
        def count_owned_sites(self, account_id):
            return -2

    with pytest.raises(MalformedInputError):
        site_usage(OWNER, Negative())


def test_store_failures_propagate(fakes):
    failing = fakes.Failing(StoreUnavailableError("timeout"))
    with pytest.raises(StoreUnavailableError):
        site_usage(OWNER, failing)
    with pytest.raises(StoreUnavailableError):
        monthly_pageview_usage(OWNER, failing, NOW)
    with pytest.raises(StoreUnavailableError):
        team_member_usage(OWNER, fakes.Ownership(owned={"owner": {"s1"}}), failing)


class TestCollectTeamMemberEmails:
    def test_union_is_distinct(self):
        emails = collect_team_member_emails(["a@x.com", "b@x.com"], ["a@x.com", "c@x.com"], "owner@x.com")
        assert emails == {"a@x.com", "b@x.com", "c@x.com"}

    def test_owner_excluded_from_both_sources(self):
        emails = collect_team_member_emails(["owner@x.com", "a@x.com"], ["owner@x.com"], "owner@x.com")
        assert emails == {"a@x.com"}

    def test_duplicates_within_one_source(self):
        emails = collect_team_member_emails(["a@x.com", "a@x.com"], [], "owner@x.com")
        assert emails == {"a@x.com"}

    def test_empty(self):
        assert collect_team_member_emails([], [], "owner@x.com") == set()

    def test_accepts_generators(self):
        members = (e for e in ["a@x.com"])
        invites = (e for e in ["b@x.com"])
        assert collect_team_member_emails(members, invites, "owner@x.com") == {"a@x.com", "b@x.com"}


class TestTeamMemberUsage:
    def test_invite_on_one_site_member_on_another_counts_once(self, fakes):
        ownership = fakes.Ownership(owned={"owner": {"s1", "s2"}})
        memberships = fakes.Memberships(
            members={"s1": ["owner@x.com"], "s2": ["a@x.com", "owner@x.com"]},
            invitations={"s1": ["a@x.com"]},
        )
        assert team_member_usage(OWNER, ownership, memberships) == 1

    def test_only_owned_sites_are_considered(self, fakes):
        ownership = fakes.Ownership(owned={"owner": {"s1"}})
        memberships = fakes.Memberships(
            members={"s1": ["a@x.com"], "other": ["b@x.com", "c@x.com"]},
        )
        assert team_member_usage(OWNER, ownership, memberships) == 1
        assert memberships.queried_sites == [{"s1"}]

    def test_no_owned_sites_skips_membership_queries(self, fakes):
        memberships = fakes.Memberships(members={"s1": ["a@x.com"]})
        assert team_member_usage(OWNER, fakes.Ownership(), memberships) == 0
        assert memberships.queried_sites == []


class TestComputeUsage:
    def _stores(self, fakes):
        ownership = fakes.Ownership(owned={"owner": {"s1", "s2"}})
        memberships = fakes.Memberships(members={"s1": ["a@x.com"]}, invitations={"s2": ["b@x.com"]})
        metrics = fakes.Metrics(breakdowns={"owner": (700, 300)})
        return ownership, memberships, metrics

    def test_sequential(self, fakes):
        usage = compute_usage(OWNER, *self._stores(fakes), NOW)
        assert usage == Usage(site_usage=2, pageview_usage=1_000, team_member_usage=2)

    def test_with_executor_matches_sequential(self, fakes):
        with ThreadPoolExecutor(max_workers=3) as executor:
            usage = compute_usage(OWNER, *self._stores(fakes), NOW, executor=executor)
        assert usage == Usage(site_usage=2, pageview_usage=1_000, team_member_usage=2)

    def test_with_executor_propagates_failure(self, fakes):
        ownership, memberships, _ = self._stores(fakes)
        failing = fakes.Failing(StoreUnavailableError("metrics down"))
        with ThreadPoolExecutor(max_workers=3) as executor:
            with pytest.raises(StoreUnavailableError):
                compute_usage(OWNER, ownership, memberships, failing, NOW, executor=executor)
