# sitequota/conftest.py
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

import pytest
from sqlalchemy import insert

os.environ.setdefault("SKIP_ENV_VALIDATION", "1")


@dataclass
class FakeOwnershipStore:
    """Ownership store backed by a {account_id: {site_id, ...}} map."""
    owned: Dict[str, Set[str]] = field(default_factory=dict)
    calls: List[str] = field(default_factory=list)

    def count_owned_sites(self, account_id: str) -> int:
        self.calls.append("count_owned_sites")
        return len(self.owned.get(account_id, set()))

    def owned_site_ids(self, account_id: str) -> Set[str]:
        self.calls.append("owned_site_ids")
        return set(self.owned.get(account_id, set()))


@dataclass
class FakeMembershipStore:
    members: Dict[str, List[str]] = field(default_factory=dict)
    invitations: Dict[str, List[str]] = field(default_factory=dict)
    queried_sites: List[Set[str]] = field(default_factory=list)

    def member_emails(self, site_ids: Set[str]) -> List[str]:
        self.queried_sites.append(set(site_ids))
        return [email for site in site_ids for email in self.members.get(site, [])]

    def invitation_emails(self, site_ids: Set[str]) -> List[str]:
        return [email for site in site_ids for email in self.invitations.get(site, [])]


@dataclass
class FakeUsageMetrics:
    breakdowns: Dict[str, Tuple[int, ...]] = field(default_factory=dict)

    def usage_breakdown(self, account_id: str, now: datetime) -> Tuple[int, ...]:
        return self.breakdowns.get(account_id, (0, 0))


class FailingStore:
    """Every collaborator method raises the given exception."""

    def __init__(self, exc: Exception):
        self.exc = exc

    def __getattr__(self, name):
        def _raise(*args, **kwargs):
            raise self.exc
        return _raise


@pytest.fixture
def fakes():
    """Namespace exposing the in-memory collaborator fakes."""
    return type(
        "Fakes",
        (),
        {
            "Ownership": FakeOwnershipStore,
            "Memberships": FakeMembershipStore,
            "Metrics": FakeUsageMetrics,
            "Failing": FailingStore,
        },
    )


@pytest.fixture(autouse=True)
def reset_metrics():
    from sitequota.core.metrics import METRICS

    METRICS.reset()
    yield


@pytest.fixture
def db():
    """
    Fresh in-memory sqlite database per test.

    Yields the session factory bound to it.
    """
    from sitequota.core.database import create_all_tables, drop_all_tables, get_session_factory, init_engine

    init_engine("sqlite://")
    create_all_tables()
    yield get_session_factory()
    drop_all_tables()


class Seeder:
    """Insert helpers for the quota tables."""

    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._counter = 0

    def _next(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._counter}"

    def _insert(self, table, **values):
        from sitequota.core.database import get_db_session

        with get_db_session(self.session_factory) as session:
            session.execute(insert(table).values(**values))

    def account(self, account_id: str, email: str, inserted_at: Optional[datetime] = None) -> str:
        from sitequota.core.database import accounts

        self._insert(
            accounts,
            account_id=account_id,
            email=email,
            inserted_at=inserted_at or datetime(2023, 1, 1, tzinfo=timezone.utc),
        )
        return account_id

    def site(self, owner_id: str, site_id: Optional[str] = None) -> str:
        from sitequota.core.database import site_memberships, sites

        site_id = site_id or self._next("site")
        self._insert(sites, site_id=site_id, domain=f"{site_id}.example.com")
        self._insert(site_memberships, site_id=site_id, account_id=owner_id, role="owner")
        return site_id

    def membership(self, site_id: str, account_id: str, role: str = "viewer") -> None:
        from sitequota.core.database import site_memberships

        self._insert(site_memberships, site_id=site_id, account_id=account_id, role=role)

    def invitation(self, site_id: str, inviter_id: str, email: str, role: str = "viewer") -> None:
        from sitequota.core.database import invitations

        self._insert(
            invitations,
            invitation_id=self._next("inv"),
            site_id=site_id,
            inviter_id=inviter_id,
            email=email,
            role=role,
        )

    def subscription(self, account_id: str, plan_id: str, inserted_at: Optional[datetime] = None) -> str:
        from sitequota.core.database import subscriptions

        subscription_id = self._next("sub")
        self._insert(
            subscriptions,
            subscription_id=subscription_id,
            account_id=account_id,
            plan_id=plan_id,
            status="active",
            inserted_at=inserted_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        return subscription_id

    def enterprise_plan(self, account_id: str, plan_id: str, monthly_pageview_limit: Optional[int] = None) -> None:
        from sitequota.core.database import enterprise_plans

        self._insert(enterprise_plans, account_id=account_id, plan_id=plan_id, monthly_pageview_limit=monthly_pageview_limit)

    def usage(self, site_id: str, day: date, pageviews: int, custom_events: int = 0) -> None:
        from sitequota.core.database import site_usage_daily

        self._insert(site_usage_daily, site_id=site_id, day=day, pageviews=pageviews, custom_events=custom_events)


@pytest.fixture
def seed(db):
    return Seeder(db)
