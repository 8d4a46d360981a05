"""
sitequota/features/plans/service.py

Plan resolution.

Handles:
- Subscription reference -> Plan descriptor (total: never raises)
- Enterprise plan lookup from the enterprise_plans table, scoped to the
  subscribing account
- Diagnostic event for unresolvable plan ids
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from sitequota.core.database import enterprise_plans, get_db_session
from sitequota.core.diagnostics import DiagnosticSink
from sitequota.core.errors import StoreUnavailableError
from sitequota.features.plans.catalog import PlanCatalog
from sitequota.models.account import Subscription
from sitequota.models.limit import limit_from_stored
from sitequota.models.plan import EnterprisePlan, NoPlan, Plan, UnknownPlan


logger = logging.getLogger("sitequota")

UNKNOWN_PLAN_MESSAGE = "Unknown monthly pageview limit for plan"


def resolve_plan(
    subscription: Optional[Subscription],
    catalog: PlanCatalog,
    sink: DiagnosticSink,
    *,
    account_id: Optional[str] = None,
) -> Plan:
    """
    Resolve a subscription reference to a Plan.

    No subscription resolves to NoPlan (trial). A miss, a blank plan id or a
    failing catalog lookup resolves to UnknownPlan and emits exactly one
    diagnostic event carrying the plan id.
    """
    if subscription is None:
        return NoPlan()

    plan_id = (subscription.plan_id or "").strip()
    record = None
    if plan_id:
        try:
            record = catalog.lookup(plan_id, account_id=account_id)
        except Exception as e:
            logger.warning(
                f"[plans] catalog lookup failed: {e}",
                extra={"account_id": account_id, "plan_id": plan_id},
            )

    if record is not None:
        return record

    sink.capture_message(
        UNKNOWN_PLAN_MESSAGE,
        extra={
            "plan_id": subscription.plan_id,
            "subscription_id": subscription.subscription_id,
            "account_id": account_id,
        },
    )
    return UnknownPlan(plan_id=subscription.plan_id)


class SqlEnterprisePlanLookup:
    """Enterprise plan lookup backed by the enterprise_plans table."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def __call__(self, plan_id: str, account_id: str) -> Optional[EnterprisePlan]:
        """The account's own enterprise contract for plan_id, if it has one."""
        try:
            with get_db_session(self._session_factory) as session:
                row = session.execute(
                    select(enterprise_plans)
                    .where(enterprise_plans.c.plan_id == plan_id)
                    .where(enterprise_plans.c.account_id == account_id)
                ).first()
        except SQLAlchemyError as e:
            raise StoreUnavailableError(f"Enterprise plan lookup failed: {e}") from e

        if not row:
            return None

        return EnterprisePlan(
            plan_id=row.plan_id,
            monthly_pageview_limit=limit_from_stored(row.monthly_pageview_limit),
        )
