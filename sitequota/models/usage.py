"""
sitequota/models/usage.py

Per-evaluation limits, usage and the resulting report.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Tuple

from sitequota.models.limit import Limit


class Resource(str, Enum):
    SITES = "sites"
    PAGEVIEWS = "pageviews"
    TEAM_MEMBERS = "team_members"


@dataclass(frozen=True)
class EvaluationContext:
    """Process-wide facts read once per evaluation."""
    is_selfhost: bool = False
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Limits:
    site_limit: Limit
    pageview_limit: Limit
    team_member_limit: Limit

    def for_resource(self, resource: Resource) -> Limit:
        return {
            Resource.SITES: self.site_limit,
            Resource.PAGEVIEWS: self.pageview_limit,
            Resource.TEAM_MEMBERS: self.team_member_limit,
        }[resource]


@dataclass(frozen=True)
class Usage:
    site_usage: int
    pageview_usage: int
    team_member_usage: int

    def for_resource(self, resource: Resource) -> int:
        return {
            Resource.SITES: self.site_usage,
            Resource.PAGEVIEWS: self.pageview_usage,
            Resource.TEAM_MEMBERS: self.team_member_usage,
        }[resource]


@dataclass(frozen=True)
class UsageBreakdown:
    """Trailing 30-day counts per billable category."""
    pageviews: int
    custom_events: int

    def as_tuple(self) -> Tuple[int, int]:
        return (self.pageviews, self.custom_events)

    def total(self) -> int:
        return self.pageviews + self.custom_events


@dataclass(frozen=True)
class QuotaReport:
    account_id: str
    plan_kind: str
    limits: Limits
    usage: Usage
    within: Dict[Resource, bool]

    def to_json(self) -> dict:
        return {
            "account_id": self.account_id,
            "plan": self.plan_kind,
            "resources": {
                resource.value: {
                    "limit": self.limits.for_resource(resource).to_json(),
                    "usage": self.usage.for_resource(resource),
                    "within_limit": self.within[resource],
                }
                for resource in Resource
            },
        }
