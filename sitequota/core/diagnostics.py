"""
Diagnostic sink for operator follow-up events.

Events are fire-and-forget: a sink must never raise into the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol

from sitequota.core.logging import log_event
from sitequota.core.metrics import quota_unknown_plan_total

logger = logging.getLogger("sitequota")


class DiagnosticSink(Protocol):
    def capture_message(self, message: str, extra: Optional[Mapping[str, Any]] = None) -> None:
        ...


class LoggingDiagnosticSink:
    """Reports events as structured warnings and counts them."""

    def capture_message(self, message: str, extra: Optional[Mapping[str, Any]] = None) -> None:
        context = dict(extra or {})
        try:
            quota_unknown_plan_total.inc()
            log_event(
                "warning",
                message,
                account_id=context.pop("account_id", None),
                event_type="diagnostic",
                extra=context,
            )
        except Exception:
            logger.exception("[diagnostics] failed to record event")


@dataclass
class CapturedEvent:
    message: str
    extra: Dict[str, Any] = field(default_factory=dict)


class RecordingDiagnosticSink:
    """Keeps events in memory (tests and dry runs)."""

    def __init__(self) -> None:
        self.events: List[CapturedEvent] = []

    def capture_message(self, message: str, extra: Optional[Mapping[str, Any]] = None) -> None:
        self.events.append(CapturedEvent(message=message, extra=dict(extra or {})))
