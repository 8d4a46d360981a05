"""
sitequota/models/plan.py

Catalog-level plan descriptors.

Exactly one variant applies to an account at evaluation time:
- EnterprisePlan: custom contract, per-account pageview cap, no site or team caps
- StandardPlan: catalog tier with explicit caps
- Free10k: legacy free tier (fixed caps)
- NoPlan: trial, no subscription at all
- UnknownPlan: subscription whose plan id the catalog cannot resolve
"""

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from sitequota.models.limit import Limit, UNLIMITED


class EnterprisePlan(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal["enterprise"] = "enterprise"
    plan_id: str
    monthly_pageview_limit: Limit = UNLIMITED


class StandardPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["standard"] = "standard"
    plan_id: str
    # Plan family shown to users, e.g. "growth" or "business"
    kind_label: str = "standard"
    site_limit: int = Field(ge=0)
    monthly_pageview_limit: int = Field(ge=0)
    team_member_limit: int = Field(ge=0)


class Free10k(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["free_10k"] = "free_10k"
    plan_id: str


class NoPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["trial"] = "trial"


class UnknownPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["unknown"] = "unknown"
    plan_id: Optional[str] = None


Plan = Union[EnterprisePlan, StandardPlan, Free10k, NoPlan, UnknownPlan]

# What a catalog lookup may return on a hit
PlanRecord = Union[EnterprisePlan, StandardPlan, Free10k]
