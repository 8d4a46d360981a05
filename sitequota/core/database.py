"""
Database access for the quota stores.

The engine is process-wide and created lazily from DATABASE_URL (or
TEST_DATABASE_URL when set). sqlite URLs share a single connection through
StaticPool so an in-memory database outlives individual sessions; every
other URL gets a bounded QueuePool.

Table definitions below mirror the account, subscription, site, membership
and daily usage data the quota engine reads. The engine never writes.
"""
import logging
import os
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    inspect,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.sql import func

from sitequota.core.config import settings


logger = logging.getLogger("sitequota")

metadata = MetaData()

# QueuePool sizing for server databases
POOL_SIZE = 5
MAX_OVERFLOW = 10
POOL_TIMEOUT = 10
POOL_RECYCLE = 1800

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _configured_url() -> Optional[str]:
    return os.getenv("TEST_DATABASE_URL") or settings.DATABASE_URL


def _build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=True,
    )


def init_engine(database_url: Optional[str] = None) -> Engine:
    """(Re)bind the process-wide engine, disposing any previous one."""
    global _engine, _session_factory

    url = database_url or _configured_url()
    if not url:
        raise RuntimeError("No database configured: set DATABASE_URL")

    if _engine is not None:
        _engine.dispose()

    _engine = _build_engine(url)
    _session_factory = sessionmaker(bind=_engine, autoflush=False)
    logger.info(f"[db] engine bound ({_engine.dialect.name})")
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory() -> sessionmaker:
    if _session_factory is None:
        init_engine()
    return _session_factory


@contextmanager
def get_db_session(session_factory=None) -> Iterator[Session]:
    """Session scope: commit on success, roll back on any error."""
    session = (session_factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables() -> None:
    metadata.create_all(bind=get_engine())


def drop_all_tables() -> None:
    """Tests and local development only."""
    metadata.drop_all(bind=get_engine())


def missing_tables() -> list:
    """Quota tables absent from the bound database."""
    with get_engine().connect() as conn:
        conn.execute(text("SELECT 1"))
        present = set(inspect(conn).get_table_names())
    return sorted(name for name in metadata.tables if name not in present)



# Accounts (read-only to the quota engine)
accounts = Table(
    'accounts',
    metadata,
    Column('account_id', String(100), primary_key=True),
    Column('email', String(255), nullable=False, unique=True),
    Column('inserted_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

# Billing subscriptions; the newest row per account is the active reference
subscriptions = Table(
    'subscriptions',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('subscription_id', String(100), nullable=False, unique=True),
    Column('account_id', String(100), ForeignKey('accounts.account_id'), nullable=False),
    Column('plan_id', String(100), nullable=False),
    Column('status', String(50), nullable=False, server_default='active'),
    Column('inserted_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_subscriptions_account_id', 'account_id'),
)

# Per-account enterprise contracts; a NULL pageview limit means unlimited
enterprise_plans = Table(
    'enterprise_plans',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('account_id', String(100), ForeignKey('accounts.account_id'), nullable=False, index=True),
    Column('plan_id', String(100), nullable=False),
    Column('monthly_pageview_limit', Integer, nullable=True),
    Column('inserted_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    UniqueConstraint('account_id', 'plan_id', name='uq_enterprise_plans_account_plan'),
)

sites = Table(
    'sites',
    metadata,
    Column('site_id', String(100), primary_key=True),
    Column('domain', String(255), nullable=False, unique=True),
    Column('inserted_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

site_memberships = Table(
    'site_memberships',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('site_id', String(100), ForeignKey('sites.site_id'), nullable=False),
    Column('account_id', String(100), ForeignKey('accounts.account_id'), nullable=False),
    Column('role', String(20), nullable=False),  # 'owner', 'admin', 'viewer'
    Column('inserted_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    UniqueConstraint('site_id', 'account_id', name='uq_site_memberships_site_account'),
    Index('idx_site_memberships_account_role', 'account_id', 'role'),
)

# Pending invitations; accepted invitations are deleted and become memberships
invitations = Table(
    'invitations',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('invitation_id', String(100), nullable=False, unique=True),
    Column('site_id', String(100), ForeignKey('sites.site_id'), nullable=False, index=True),
    Column('inviter_id', String(100), ForeignKey('accounts.account_id'), nullable=False),
    Column('email', String(255), nullable=False),
    Column('role', String(20), nullable=False),
    Column('inserted_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

# Daily per-site rollups written by the ingestion pipeline
site_usage_daily = Table(
    'site_usage_daily',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('site_id', String(100), ForeignKey('sites.site_id'), nullable=False),
    Column('day', Date, nullable=False),
    Column('pageviews', Integer, nullable=False, server_default='0'),
    Column('custom_events', Integer, nullable=False, server_default='0'),
    UniqueConstraint('site_id', 'day', name='uq_site_usage_daily_site_day'),
    Index('idx_site_usage_daily_day', 'day'),
)
