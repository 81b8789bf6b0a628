"""
Audit Logger

DESIGN DECISION: Every state change of the sync layer is logged.
This provides:
1. Traceability of what happened to the user's data
2. Debugging capability when the remote store misbehaves
3. A recent-history feed the UI can use for its connection banner

The audit logger:
- Is synchronous, because subscription callbacks are synchronous
- Never raises (a logging failure must not break the live update path)
- Keeps a bounded in-memory history of recent events
"""

from collections import deque
from typing import Optional

import structlog

from household.models.audit import AuditEvent, AuditSeverity


# JSON lines on stdlib logging, shared by every module logger
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Records sync and data events.

    Each event goes to structlog at its severity and into a bounded
    history that the UI reads for its "not connected" banner.
    """

    def __init__(self, history_size: int = 200):
        """
        Initialize audit logger.

        Args:
            history_size: How many recent events to keep in memory.
        """
        self._history: deque[AuditEvent] = deque(maxlen=history_size)
        self._logger = structlog.get_logger("household.audit")

    def log(self, event: AuditEvent) -> None:
        """
        Log an audit event.

        Always logs locally and records the event in the history.
        """
        self._history.append(event)
        fields = event.to_log_dict()

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **fields)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **fields)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **fields)
            else:
                self._logger.info("audit_event", **fields)
        except Exception as e:
            # Log output is best effort, the history already has the event
            print(f"WARNING: audit event {event.event_type} not logged: {e}")

    def recent_events(
        self,
        limit: int = 50,
        collection: Optional[str] = None,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        events = [
            event for event in reversed(self._history)
            if collection is None or event.collection == collection
        ]
        return events[:limit]

    def clear(self) -> None:
        self._history.clear()


def get_logger(name: str):
    """Module-level structlog logger, configured like the audit logger."""
    return structlog.get_logger(name)
