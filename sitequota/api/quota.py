"""Quota status endpoints for request-handling layers and the dashboard."""

from fastapi import APIRouter, Depends, Request

from sitequota.core.errors import NotFoundError
from sitequota.features.plans.catalog import PlanCatalog
from sitequota.features.quota.service import (
    QuotaEngine,
    build_catalog,
    build_engine,
    context_from_settings,
    within_limit,
)
from sitequota.features.usage.stores import SqlAccountStore
from sitequota.models.usage import Resource

router = APIRouter(prefix="/v1/quota", tags=["quota"])


def get_plan_catalog(request: Request) -> PlanCatalog:
    """The app-wide catalog; built on first use when the lifespan did not run."""
    catalog = getattr(request.app.state, "plan_catalog", None)
    if catalog is None:
        catalog = request.app.state.plan_catalog = build_catalog()
    return catalog


def get_quota_engine(request: Request, catalog: PlanCatalog = Depends(get_plan_catalog)) -> QuotaEngine:
    executor = getattr(request.app.state, "usage_executor", None)
    return build_engine(executor=executor, catalog=catalog)


def get_account_store() -> SqlAccountStore:
    return SqlAccountStore()


@router.get("/accounts/{account_id}")
def get_quota_report(
    account_id: str,
    engine: QuotaEngine = Depends(get_quota_engine),
    accounts: SqlAccountStore = Depends(get_account_store),
):
    account = accounts.get_account(account_id)
    report = engine.evaluate(account, context_from_settings())
    return report.to_json()


@router.get("/accounts/{account_id}/{resource}")
def check_resource(
    account_id: str,
    resource: str,
    engine: QuotaEngine = Depends(get_quota_engine),
    accounts: SqlAccountStore = Depends(get_account_store),
):
    try:
        target = Resource(resource)
    except ValueError:
        raise NotFoundError(f"Unknown resource {resource}") from None

    account = accounts.get_account(account_id)
    context = context_from_settings()
    limit = engine.compute_limits(account, context).for_resource(target)
    usage = engine.resource_usage(account, target, context)
    return {
        "account_id": account.account_id,
        "resource": target.value,
        "limit": limit.to_json(),
        "usage": usage,
        "within_limit": within_limit(usage, limit),
    }
