"""
sitequota/features/quota/service.py

Quota evaluation: plan -> limits -> usage -> within-limit per resource.

Every call works from fresh reads; nothing is cached between evaluations.
Store failures propagate so callers can fail closed.
"""

import logging
from concurrent.futures import Executor
from datetime import datetime, timezone
from typing import Optional, assert_never

from sitequota.core.config import settings
from sitequota.core.diagnostics import DiagnosticSink, LoggingDiagnosticSink
from sitequota.core.errors import MalformedInputError
from sitequota.core.metrics import quota_evaluations_total
from sitequota.features.limits import service as limits_service
from sitequota.features.plans.catalog import PlanCatalog
from sitequota.features.plans.service import SqlEnterprisePlanLookup, resolve_plan
from sitequota.features.usage import service as usage_service
from sitequota.features.usage.stores import (
    MembershipStore,
    OwnershipStore,
    SqlMembershipStore,
    SqlOwnershipStore,
    SqlUsageMetrics,
    UsageMetrics,
)
from sitequota.models.account import Account, Subscription
from sitequota.models.limit import Limit, Numeric, Unlimited
from sitequota.models.plan import Plan
from sitequota.models.usage import EvaluationContext, Limits, QuotaReport, Resource, Usage


logger = logging.getLogger("sitequota")


def within_limit(usage: int, limit: Limit) -> bool:
    """Unlimited always passes; a numeric cap passes only while usage < cap."""
    if isinstance(usage, bool) or not isinstance(usage, int) or usage < 0:
        raise MalformedInputError(f"Usage must be a non-negative integer, got {usage!r}")
    if isinstance(limit, Unlimited):
        return True
    if isinstance(limit, Numeric):
        return usage < limit.value
    assert_never(limit)


def context_from_settings(now: Optional[datetime] = None, settings_obj=None) -> EvaluationContext:
    """Read the deployment mode once for an evaluation."""
    cfg = settings_obj or settings
    return EvaluationContext(
        is_selfhost=bool(getattr(cfg, "IS_SELFHOST", False)),
        now=now or datetime.now(timezone.utc),
    )


def _require_account_id(account: Account) -> None:
    if not account.account_id or not account.account_id.strip():
        raise MalformedInputError("Account has no identifier")


class QuotaEngine:
    def __init__(
        self,
        catalog: PlanCatalog,
        ownership: OwnershipStore,
        memberships: MembershipStore,
        metrics: UsageMetrics,
        sink: DiagnosticSink,
        executor: Optional[Executor] = None,
    ):
        self.catalog = catalog
        self.ownership = ownership
        self.memberships = memberships
        self.metrics = metrics
        self.sink = sink
        self.executor = executor

    def resolve_plan(self, subscription: Optional[Subscription], *, account_id: Optional[str] = None) -> Plan:
        return resolve_plan(subscription, self.catalog, self.sink, account_id=account_id)

    def compute_limits(self, account: Account, context: EvaluationContext, plan: Optional[Plan] = None) -> Limits:
        if plan is None:
            plan = self.resolve_plan(account.subscription, account_id=account.account_id)
        return limits_service.compute_limits(account, plan, context)

    def compute_usage(self, account: Account, context: EvaluationContext) -> Usage:
        _require_account_id(account)
        return usage_service.compute_usage(
            account,
            self.ownership,
            self.memberships,
            self.metrics,
            context.now,
            executor=self.executor,
        )

    def resource_usage(self, account: Account, resource: Resource, context: EvaluationContext) -> int:
        """Usage of one resource, querying only the store that resource needs."""
        _require_account_id(account)
        if resource is Resource.SITES:
            return usage_service.site_usage(account, self.ownership)
        if resource is Resource.PAGEVIEWS:
            return usage_service.monthly_pageview_usage(account, self.metrics, context.now)
        if resource is Resource.TEAM_MEMBERS:
            return usage_service.team_member_usage(account, self.ownership, self.memberships)
        assert_never(resource)

    def within_limit(self, usage: int, limit: Limit) -> bool:
        return within_limit(usage, limit)

    def evaluate(self, account: Account, context: EvaluationContext) -> QuotaReport:
        plan = self.resolve_plan(account.subscription, account_id=account.account_id)
        limits = self.compute_limits(account, context, plan=plan)
        usage = self.compute_usage(account, context)

        within = {
            resource: within_limit(usage.for_resource(resource), limits.for_resource(resource))
            for resource in Resource
        }
        for resource, ok in within.items():
            quota_evaluations_total.inc({"resource": resource.value, "outcome": "within" if ok else "exceeded"})

        logger.info(
            "quota.evaluated",
            extra={
                "account_id": account.account_id,
                "plan_kind": plan.kind,
                "event_type": "quota",
                "exceeded": sorted(r.value for r, ok in within.items() if not ok),
            },
        )

        return QuotaReport(
            account_id=account.account_id,
            plan_kind=plan.kind,
            limits=limits,
            usage=usage,
            within=within,
        )


def build_catalog(session_factory=None, settings_obj=None) -> PlanCatalog:
    cfg = settings_obj or settings
    enterprise_lookup = SqlEnterprisePlanLookup(session_factory)
    path = getattr(cfg, "PLAN_CATALOG_PATH", None)
    if path:
        return PlanCatalog.from_json(path, enterprise_lookup=enterprise_lookup)
    return PlanCatalog(enterprise_lookup=enterprise_lookup)


def build_engine(
    session_factory=None,
    *,
    sink: Optional[DiagnosticSink] = None,
    executor: Optional[Executor] = None,
    catalog: Optional[PlanCatalog] = None,
    settings_obj=None,
) -> QuotaEngine:
    """Wire the engine to the SQL-backed stores.

    Pass a prebuilt catalog to avoid re-reading PLAN_CATALOG_PATH.
    """
    return QuotaEngine(
        catalog=catalog if catalog is not None else build_catalog(session_factory, settings_obj),
        ownership=SqlOwnershipStore(session_factory),
        memberships=SqlMembershipStore(session_factory),
        metrics=SqlUsageMetrics(session_factory),
        sink=sink or LoggingDiagnosticSink(),
        executor=executor,
    )
