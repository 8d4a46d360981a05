"""
Tests for site, pageview and team-member limit calculation.
"""
from datetime import datetime, timezone

import pytest

from sitequota.core.errors import MalformedInputError
from sitequota.features.limits.service import (
    LIMIT_SITES_SINCE,
    MONTHLY_PAGEVIEW_LIMIT_FOR_FREE_10K,
    SITE_LIMIT_FOR_FREE_10K,
    SITE_LIMIT_FOR_TRIALS,
    TEAM_MEMBER_LIMIT_FOR_TRIALS,
    compute_limits,
    is_grandfathered,
    monthly_pageview_limit,
    site_limit,
    team_member_limit,
)
from sitequota.models.account import Account
from sitequota.models.limit import Numeric, UNLIMITED
from sitequota.models.plan import EnterprisePlan, Free10k, NoPlan, StandardPlan, UnknownPlan
from sitequota.models.usage import EvaluationContext


HOSTED = EvaluationContext(is_selfhost=False)
SELFHOST = EvaluationContext(is_selfhost=True)

STANDARD = StandardPlan(plan_id="growth", site_limit=10, monthly_pageview_limit=100_000, team_member_limit=3)

ALL_PLANS = [
    EnterprisePlan(plan_id="ent"),
    STANDARD,
    Free10k(plan_id="free_10k"),
    NoPlan(),
    UnknownPlan(plan_id="zzz"),
]


def make_account(inserted_at=datetime(2023, 6, 1, tzinfo=timezone.utc), account_id="acc-1") -> Account:
    return Account(account_id=account_id, email="owner@x.com", inserted_at=inserted_at)


def test_grandfathering_cutoff_is_strict():
    cutoff = datetime(LIMIT_SITES_SINCE.year, LIMIT_SITES_SINCE.month, LIMIT_SITES_SINCE.day, tzinfo=timezone.utc)
    assert is_grandfathered(make_account(datetime(2021, 5, 4, 23, 59, tzinfo=timezone.utc)))
    assert not is_grandfathered(make_account(cutoff))


class TestSiteLimit:
    @pytest.mark.parametrize("plan", ALL_PLANS)
    def test_selfhost_unlimited(self, plan):
        assert site_limit(make_account(), plan, SELFHOST) == UNLIMITED

    @pytest.mark.parametrize("plan", ALL_PLANS)
    def test_grandfathered_unlimited_regardless_of_plan(self, plan):
        account = make_account(datetime(2020, 1, 1, tzinfo=timezone.utc))
        assert site_limit(account, plan, HOSTED) == UNLIMITED

    def test_enterprise_unlimited(self):
        assert site_limit(make_account(), EnterprisePlan(plan_id="ent"), HOSTED) == UNLIMITED

    def test_enterprise_unlimited_whatever_the_pageview_contract(self):
        plan = EnterprisePlan(plan_id="ent", monthly_pageview_limit=Numeric(5_000_000))
        assert site_limit(make_account(), plan, HOSTED) == UNLIMITED

    def test_standard(self):
        assert site_limit(make_account(), STANDARD, HOSTED) == Numeric(10)

    def test_free_10k(self):
        assert site_limit(make_account(), Free10k(plan_id="free_10k"), HOSTED) == Numeric(SITE_LIMIT_FOR_FREE_10K)

    @pytest.mark.parametrize("plan", [NoPlan(), UnknownPlan(plan_id="zzz")])
    def test_trial_default(self, plan):
        assert site_limit(make_account(), plan, HOSTED) == Numeric(SITE_LIMIT_FOR_TRIALS)


class TestMonthlyPageviewLimit:
    def test_enterprise_stored_value_used_as_is(self):
        assert monthly_pageview_limit(EnterprisePlan(plan_id="ent")) == UNLIMITED
        stored = EnterprisePlan(plan_id="ent", monthly_pageview_limit=Numeric(50_000_000))
        assert monthly_pageview_limit(stored) == Numeric(50_000_000)

    def test_standard(self):
        assert monthly_pageview_limit(STANDARD) == Numeric(100_000)

    def test_free_10k(self):
        assert monthly_pageview_limit(Free10k(plan_id="free_10k")) == Numeric(MONTHLY_PAGEVIEW_LIMIT_FOR_FREE_10K)
        assert MONTHLY_PAGEVIEW_LIMIT_FOR_FREE_10K == 10_000

    @pytest.mark.parametrize("plan", [NoPlan(), UnknownPlan(plan_id="zzz")])
    def test_trial_unlimited(self, plan):
        assert monthly_pageview_limit(plan) == UNLIMITED


class TestTeamMemberLimit:
    def test_enterprise(self):
        assert team_member_limit(EnterprisePlan(plan_id="ent")) == UNLIMITED
        contract = EnterprisePlan(plan_id="ent", monthly_pageview_limit=Numeric(5_000_000))
        assert team_member_limit(contract) == UNLIMITED

    def test_standard(self):
        assert team_member_limit(STANDARD) == Numeric(3)

    def test_free_10k_unlimited(self):
        assert team_member_limit(Free10k(plan_id="free_10k")) == UNLIMITED

    @pytest.mark.parametrize("plan", [NoPlan(), UnknownPlan(plan_id="zzz")])
    def test_trial_default(self, plan):
        assert team_member_limit(plan) == Numeric(TEAM_MEMBER_LIMIT_FOR_TRIALS)


def test_enterprise_default_contract_is_fully_unlimited():
    limits = compute_limits(make_account(), EnterprisePlan(plan_id="ent"), HOSTED)
    assert limits.site_limit == UNLIMITED
    assert limits.pageview_limit == UNLIMITED
    assert limits.team_member_limit == UNLIMITED


def test_grandfathering_only_lifts_site_limit():
    account = make_account(datetime(2019, 3, 1, tzinfo=timezone.utc))
    limits = compute_limits(account, NoPlan(), HOSTED)
    assert limits.site_limit == UNLIMITED
    assert limits.pageview_limit == UNLIMITED
    assert limits.team_member_limit == Numeric(TEAM_MEMBER_LIMIT_FOR_TRIALS)

    limits = compute_limits(account, STANDARD, HOSTED)
    assert limits.site_limit == UNLIMITED
    assert limits.pageview_limit == Numeric(100_000)
    assert limits.team_member_limit == Numeric(3)


def test_selfhost_only_lifts_site_limit():
    limits = compute_limits(make_account(), Free10k(plan_id="free_10k"), SELFHOST)
    assert limits.site_limit == UNLIMITED
    assert limits.pageview_limit == Numeric(10_000)


@pytest.mark.parametrize("account_id", ["", "   "])
def test_account_without_identifier_rejected(account_id):
    with pytest.raises(MalformedInputError):
        compute_limits(make_account(account_id=account_id), NoPlan(), HOSTED)
