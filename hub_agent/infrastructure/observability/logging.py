"""
Structured logging and in-process metrics.

Every log line is a structlog event. Turn-scoped identifiers (thread, user,
calendar) are bound with ``structlog.contextvars`` by the orchestrator and
copied onto each event by ``add_turn_context``.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import os
import sys
import structlog

TURN_CONTEXT_KEYS = ("thread_id", "user_id", "calendar_id")


def add_turn_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp events with UTC time and whatever turn identifiers are bound"""

    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())

    bound = structlog.contextvars.get_contextvars()
    for key in TURN_CONTEXT_KEYS:
        if key in bound:
            event_dict.setdefault(key, bound[key])

    return event_dict


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "hub-agent"
) -> None:
    """Route structlog through stdlib logging on stdout"""

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer()
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_turn_context,
        renderer,
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
    )


class AgentLogger:
    """Named events for the turn loop"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_tool_execution(
        self,
        tool_name: str,
        thread_id: Optional[str],
        input_data: Dict[str, Any],
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        log = self.logger.info if success else self.logger.warning
        log(
            "tool_execution",
            tool_name=tool_name,
            thread_id=thread_id,
            arg_names=sorted(input_data),
            duration_ms=round(duration_ms, 2) if duration_ms is not None else None,
            success=success,
            error=error
        )

    def log_turn_transition(
        self,
        thread_id: Optional[str],
        from_node: str,
        to_node: str,
        condition: Optional[str] = None
    ):
        self.logger.debug(
            "turn_transition",
            thread_id=thread_id,
            from_node=from_node,
            to_node=to_node,
            condition=condition
        )

    def log_context_update(
        self,
        thread_id: Optional[str],
        context_type: str,
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """One context block was loaded, found empty or skipped"""

        self.logger.info(
            "context_update",
            thread_id=thread_id,
            context_type=context_type,
            action=action,
            **(details or {})
        )


agent_logger = AgentLogger("hub_agent")


@dataclass
class LatencyStats:
    """Running latency aggregate for one operation"""
    count: int = 0
    total_ms: float = 0.0
    min_ms: Optional[float] = None
    max_ms: float = 0.0

    def observe(self, duration_ms: float) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    def summary(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "avg": self.total_ms / self.count if self.count else 0.0,
            "min": self.min_ms or 0.0,
            "max": self.max_ms,
        }


class MetricsCollector:
    """Latencies and counters kept in process and echoed as log events"""

    def __init__(self):
        self.latencies: Dict[str, LatencyStats] = {}
        self.counters: Dict[str, int] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        self.latencies.setdefault(operation, LatencyStats()).observe(duration_ms)
        agent_logger.logger.debug(
            "metric",
            metric_type="latency",
            operation=operation,
            duration_ms=round(duration_ms, 2),
            **(tags or {})
        )

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        self.counters[name] = self.counters.get(name, 0) + value
        agent_logger.logger.debug("metric", metric_type="counter", name=name, value=value, **(tags or {}))

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Latency aggregates per operation and counter totals"""
        return {
            "latency": {operation: stats.summary() for operation, stats in self.latencies.items()},
            "counters": dict(self.counters),
        }


metrics = MetricsCollector()
