"""
sitequota/features/plans/catalog.py

Plan catalog: maps an opaque billing plan id to a plan record.

Lookup order:
1. Enterprise plans (custom contracts, stored per account)
2. Standard tiers (monthly and yearly product ids map to one tier)
3. Legacy free 10k plan ids
"""

import json
import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, Optional

from sitequota.models.plan import EnterprisePlan, Free10k, PlanRecord, StandardPlan


logger = logging.getLogger("sitequota")

EnterpriseLookup = Callable[[str, str], Optional[EnterprisePlan]]

# Monthly pageview volumes sold for every plan family
TIER_VOLUMES = {
    "10k": 10_000,
    "100k": 100_000,
    "200k": 200_000,
    "500k": 500_000,
    "1m": 1_000_000,
    "2m": 2_000_000,
    "5m": 5_000_000,
    "10m": 10_000_000,
}

PLAN_FAMILIES = {
    "growth": {"site_limit": 10, "team_member_limit": 3},
    "business": {"site_limit": 50, "team_member_limit": 10},
}

# Default standard tiers, e.g. "growth-10k" -> growth_10k_monthly / growth_10k_yearly
DEFAULT_PLANS = {
    f"{family}-{volume}": {
        "kind_label": family,
        "monthly_product_id": f"{family}_{volume}_monthly",
        "yearly_product_id": f"{family}_{volume}_yearly",
        "monthly_pageview_limit": pageviews,
        **caps,
    }
    for family, caps in PLAN_FAMILIES.items()
    for volume, pageviews in TIER_VOLUMES.items()
}

FREE_10K_PLAN_IDS = frozenset({"free_10k"})


def _index_standard_plans(tiers: Mapping[str, Mapping[str, object]]) -> Dict[str, StandardPlan]:
    index: Dict[str, StandardPlan] = {}
    for tier_name, config in tiers.items():
        for key in ("monthly_product_id", "yearly_product_id"):
            product_id = config.get(key)
            if not product_id:
                continue
            if product_id in index:
                raise ValueError(f"Duplicate product id {product_id} in tier {tier_name}")
            index[str(product_id)] = StandardPlan(
                plan_id=str(product_id),
                kind_label=str(config.get("kind_label", tier_name)),
                site_limit=config["site_limit"],
                monthly_pageview_limit=config["monthly_pageview_limit"],
                team_member_limit=config["team_member_limit"],
            )
    return index


class PlanCatalog:
    """In-process catalog of standard tiers plus an optional enterprise lookup."""

    def __init__(
        self,
        tiers: Optional[Mapping[str, Mapping[str, object]]] = None,
        *,
        free_10k_plan_ids: Iterable[str] = FREE_10K_PLAN_IDS,
        enterprise_lookup: Optional[EnterpriseLookup] = None,
    ):
        self._standard = _index_standard_plans(DEFAULT_PLANS if tiers is None else tiers)
        self._free_10k = frozenset(free_10k_plan_ids)
        self._enterprise_lookup = enterprise_lookup

    @classmethod
    def from_json(cls, path: str, *, enterprise_lookup: Optional[EnterpriseLookup] = None) -> "PlanCatalog":
        """Load tiers from a JSON file shaped like DEFAULT_PLANS.

        An optional top-level "free_10k_plan_ids" list replaces the default ids.
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        free_ids = data.pop("free_10k_plan_ids", FREE_10K_PLAN_IDS)
        logger.info(f"[plans] loaded {len(data)} tiers from {path}")
        return cls(data, free_10k_plan_ids=free_ids, enterprise_lookup=enterprise_lookup)

    def lookup(self, plan_id: str, account_id: Optional[str] = None) -> Optional[PlanRecord]:
        # Enterprise contracts belong to one account; without it only the
        # shared tiers can match
        if self._enterprise_lookup is not None and account_id:
            enterprise = self._enterprise_lookup(plan_id, account_id)
            if enterprise is not None:
                return enterprise

        standard = self._standard.get(plan_id)
        if standard is not None:
            return standard

        if plan_id in self._free_10k:
            return Free10k(plan_id=plan_id)

        return None
