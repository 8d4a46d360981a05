"""
sitequota/features/usage/stores.py

Collaborator contracts consumed by the usage aggregator, plus their
SQL-backed implementations.

The SQL stores only read. Driver failures are raised as
StoreUnavailableError; callers decide whether to fail closed or retry.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Protocol, Set, Tuple

from sqlalchemy import desc, distinct, func, select
from sqlalchemy.exc import SQLAlchemyError

from sitequota.core.database import (
    accounts,
    get_db_session,
    invitations,
    site_memberships,
    site_usage_daily,
    subscriptions,
)
from sitequota.core.errors import NotFoundError, StoreUnavailableError
from sitequota.models.account import Account, Subscription
from sitequota.models.usage import UsageBreakdown


USAGE_WINDOW_DAYS = 30
OWNER_ROLE = "owner"


class OwnershipStore(Protocol):
    def count_owned_sites(self, account_id: str) -> int:
        ...

    def owned_site_ids(self, account_id: str) -> Set[str]:
        ...


class MembershipStore(Protocol):
    def member_emails(self, site_ids: Set[str]) -> Iterable[str]:
        ...

    def invitation_emails(self, site_ids: Set[str]) -> Iterable[str]:
        ...


class UsageMetrics(Protocol):
    def usage_breakdown(self, account_id: str, now: datetime) -> Tuple[int, ...]:
        ...


class _SqlStore:
    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def _execute(self, statement, what: str):
        try:
            with get_db_session(self._session_factory) as session:
                return session.execute(statement).all()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"{what} failed: {e}") from e


def _owned_sites_query(account_id: str):
    return (
        select(site_memberships.c.site_id)
        .where(site_memberships.c.account_id == account_id)
        .where(site_memberships.c.role == OWNER_ROLE)
    )


class SqlOwnershipStore(_SqlStore):
    def count_owned_sites(self, account_id: str) -> int:
        rows = self._execute(
            select(func.count(distinct(site_memberships.c.site_id)))
            .where(site_memberships.c.account_id == account_id)
            .where(site_memberships.c.role == OWNER_ROLE),
            "Owned site count",
        )
        return int(rows[0][0]) if rows else 0

    def owned_site_ids(self, account_id: str) -> Set[str]:
        rows = self._execute(_owned_sites_query(account_id), "Owned site lookup")
        return {row.site_id for row in rows}


class SqlMembershipStore(_SqlStore):
    def member_emails(self, site_ids: Set[str]) -> Iterable[str]:
        if not site_ids:
            return []
        rows = self._execute(
            select(accounts.c.email)
            .select_from(site_memberships.join(accounts, site_memberships.c.account_id == accounts.c.account_id))
            .where(site_memberships.c.site_id.in_(site_ids))
            .distinct(),
            "Member email lookup",
        )
        return [row.email for row in rows]

    def invitation_emails(self, site_ids: Set[str]) -> Iterable[str]:
        if not site_ids:
            return []
        rows = self._execute(
            select(invitations.c.email)
            .where(invitations.c.site_id.in_(site_ids))
            .distinct(),
            "Invitation email lookup",
        )
        return [row.email for row in rows]


class SqlUsageMetrics(_SqlStore):
    """Pageviews and custom events of owned sites over the trailing window."""

    def __init__(self, session_factory=None, window_days: int = USAGE_WINDOW_DAYS):
        super().__init__(session_factory)
        self.window_days = window_days

    def breakdown(self, account_id: str, now: datetime) -> UsageBreakdown:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        end_day = now.astimezone(timezone.utc).date()
        start_day = end_day - timedelta(days=self.window_days - 1)

        owned = _owned_sites_query(account_id).subquery()
        rows = self._execute(
            select(
                func.coalesce(func.sum(site_usage_daily.c.pageviews), 0).label("pageviews"),
                func.coalesce(func.sum(site_usage_daily.c.custom_events), 0).label("custom_events"),
            )
            .select_from(site_usage_daily.join(owned, site_usage_daily.c.site_id == owned.c.site_id))
            .where(site_usage_daily.c.day >= start_day)
            .where(site_usage_daily.c.day <= end_day),
            "Usage breakdown",
        )
        row = rows[0]
        return UsageBreakdown(pageviews=int(row.pageviews), custom_events=int(row.custom_events))

    def usage_breakdown(self, account_id: str, now: datetime) -> Tuple[int, ...]:
        return self.breakdown(account_id, now).as_tuple()


class SqlAccountStore(_SqlStore):
    def get_account(self, account_id: str) -> Account:
        """Load an account with its newest subscription attached."""
        rows = self._execute(
            select(accounts).where(accounts.c.account_id == account_id),
            "Account lookup",
        )
        if not rows:
            raise NotFoundError(f"Account {account_id} not found")
        row = rows[0]

        sub_rows = self._execute(
            select(subscriptions)
            .where(subscriptions.c.account_id == account_id)
            .order_by(desc(subscriptions.c.inserted_at), desc(subscriptions.c.id))
            .limit(1),
            "Subscription lookup",
        )
        subscription: Optional[Subscription] = None
        if sub_rows:
            sub = sub_rows[0]
            subscription = Subscription(
                subscription_id=sub.subscription_id,
                plan_id=sub.plan_id,
                status=sub.status,
            )

        return Account(
            account_id=row.account_id,
            email=row.email,
            inserted_at=row.inserted_at,
            subscription=subscription,
        )
