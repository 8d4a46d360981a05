"""
sitequota/features/usage/service.py

Usage aggregation.

Handles:
- Site usage (owned site count)
- Monthly pageview usage (sum of the 30-day breakdown)
- Team member usage (distinct emails across memberships and pending
  invitations on owned sites, owner excluded)
"""

from concurrent.futures import Executor
from datetime import datetime
from typing import Iterable, Optional, Set

from sitequota.core.errors import MalformedInputError
from sitequota.features.usage.stores import MembershipStore, OwnershipStore, UsageMetrics
from sitequota.models.account import Account
from sitequota.models.usage import Usage


def _checked_count(value: object, source: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedInputError(f"{source} returned a non-integer count: {value!r}")
    if value < 0:
        raise MalformedInputError(f"{source} returned a negative count: {value}")
    return value


def site_usage(account: Account, ownership: OwnershipStore) -> int:
    """Number of sites the account owns."""
    return _checked_count(ownership.count_owned_sites(account.account_id), "Ownership store")


def monthly_pageview_usage(account: Account, metrics: UsageMetrics, now: datetime) -> int:
    """Billable events sent by the account's owned sites over the last 30 days."""
    breakdown = metrics.usage_breakdown(account.account_id, now)
    return sum(_checked_count(count, "Usage metrics") for count in breakdown)


def collect_team_member_emails(
    member_emails: Iterable[str],
    invitation_emails: Iterable[str],
    owner_email: str,
) -> Set[str]:
    """
    Union of member and invitee emails, minus the owner.

    Distinct by exact email: a person invited on one site and a member of
    another counts once.
    """
    emails = set(member_emails) | set(invitation_emails)
    emails.discard(owner_email)
    return emails


def team_member_usage(account: Account, ownership: OwnershipStore, memberships: MembershipStore) -> int:
    """Team members and pending invitations across the account's owned sites."""
    site_ids = set(ownership.owned_site_ids(account.account_id))
    if not site_ids:
        return 0

    emails = collect_team_member_emails(
        memberships.member_emails(site_ids),
        memberships.invitation_emails(site_ids),
        account.email,
    )
    return len(emails)


def compute_usage(
    account: Account,
    ownership: OwnershipStore,
    memberships: MembershipStore,
    metrics: UsageMetrics,
    now: datetime,
    executor: Optional[Executor] = None,
) -> Usage:
    """
    Compute all three usage values.

    The sub-queries are independent; with an executor they run in parallel
    and the first failure propagates.
    """
    if executor is None:
        return Usage(
            site_usage=site_usage(account, ownership),
            pageview_usage=monthly_pageview_usage(account, metrics, now),
            team_member_usage=team_member_usage(account, ownership, memberships),
        )

    sites = executor.submit(site_usage, account, ownership)
    pageviews = executor.submit(monthly_pageview_usage, account, metrics, now)
    team = executor.submit(team_member_usage, account, ownership, memberships)
    return Usage(
        site_usage=sites.result(),
        pageview_usage=pageviews.result(),
        team_member_usage=team.result(),
    )
