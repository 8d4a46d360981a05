"""
sitequota/features/limits/service.py

Limit calculation: (account, plan, context) -> site, pageview and
team-member limits.

Grandfathering only ever lifts the site limit: accounts created before
site limits were enforced keep unlimited sites on any plan.
"""

from datetime import date, timezone
from typing import assert_never

from sitequota.core.errors import MalformedInputError
from sitequota.models.account import Account
from sitequota.models.limit import Limit, Numeric, UNLIMITED
from sitequota.models.plan import EnterprisePlan, Free10k, NoPlan, Plan, StandardPlan, UnknownPlan
from sitequota.models.usage import EvaluationContext, Limits


LIMIT_SITES_SINCE = date(2021, 5, 5)

SITE_LIMIT_FOR_TRIALS = 50
SITE_LIMIT_FOR_FREE_10K = 50

MONTHLY_PAGEVIEW_LIMIT_FOR_FREE_10K = 10_000
MONTHLY_PAGEVIEW_LIMIT_FOR_TRIALS: Limit = UNLIMITED

TEAM_MEMBER_LIMIT_FOR_TRIALS = 5


def _validate_account(account: Account) -> None:
    if not account.account_id or not account.account_id.strip():
        raise MalformedInputError("Account has no identifier")


def is_grandfathered(account: Account) -> bool:
    """Signed up strictly before site limits were introduced."""
    return account.inserted_at.astimezone(timezone.utc).date() < LIMIT_SITES_SINCE


def site_limit(account: Account, plan: Plan, context: EvaluationContext) -> Limit:
    """Sites the account may own. Self-hosted and grandfathered accounts are unlimited."""
    if context.is_selfhost:
        return UNLIMITED
    if is_grandfathered(account):
        return UNLIMITED

    if isinstance(plan, EnterprisePlan):
        return UNLIMITED
    if isinstance(plan, StandardPlan):
        return Numeric(plan.site_limit)
    if isinstance(plan, Free10k):
        return Numeric(SITE_LIMIT_FOR_FREE_10K)
    if isinstance(plan, (NoPlan, UnknownPlan)):
        return Numeric(SITE_LIMIT_FOR_TRIALS)
    assert_never(plan)


def monthly_pageview_limit(plan: Plan) -> Limit:
    """Pageviews per 30 days. An enterprise plan's stored value is used as-is."""
    if isinstance(plan, EnterprisePlan):
        return plan.monthly_pageview_limit
    if isinstance(plan, StandardPlan):
        return Numeric(plan.monthly_pageview_limit)
    if isinstance(plan, Free10k):
        return Numeric(MONTHLY_PAGEVIEW_LIMIT_FOR_FREE_10K)
    if isinstance(plan, (NoPlan, UnknownPlan)):
        # UnknownPlan was already reported once by the resolver
        return MONTHLY_PAGEVIEW_LIMIT_FOR_TRIALS
    assert_never(plan)


def team_member_limit(plan: Plan) -> Limit:
    if isinstance(plan, EnterprisePlan):
        return UNLIMITED
    if isinstance(plan, StandardPlan):
        return Numeric(plan.team_member_limit)
    if isinstance(plan, Free10k):
        return UNLIMITED
    if isinstance(plan, (NoPlan, UnknownPlan)):
        return Numeric(TEAM_MEMBER_LIMIT_FOR_TRIALS)
    assert_never(plan)


def compute_limits(account: Account, plan: Plan, context: EvaluationContext) -> Limits:
    _validate_account(account)
    return Limits(
        site_limit=site_limit(account, plan, context),
        pageview_limit=monthly_pageview_limit(plan),
        team_member_limit=team_member_limit(plan),
    )
