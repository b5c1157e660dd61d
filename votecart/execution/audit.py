"""Audit trail for cart execution.

Structured events for plans, step transitions and failures, kept for replay
and debugging. Timestamps are timezone-aware UTC.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Optional

EventType = Literal[
    "plan",
    "step_started",
    "step_completed",
    "step_failed",
    "execution_completed",
    "execution_cancelled",
    "error",
]

Severity = Literal["debug", "info", "warning", "error"]


@dataclass
class AuditEvent:
    event_type: EventType
    message: str
    subject_id: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    severity: Severity = "info"
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result = asdict(self)
        result["timestamp"] = self.timestamp.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEvent:
        data = dict(data)
        timestamp_value = data.get("timestamp")
        if isinstance(timestamp_value, str):
            ts = timestamp_value
            if ts.endswith("Z"):
                ts = ts[:-1] + "+00:00"
            try:
                data["timestamp"] = datetime.fromisoformat(ts)
            except ValueError:
                data.pop("timestamp", None)
        return cls(**data)


class ExecutionAuditLog:
    """In-memory audit log shared by the executor of one session."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def log(self, event: AuditEvent) -> None:
        self.events.append(event)

    def log_plan(self, subject_id: str, step_kinds: list[str], estimated_steps: int, required_total: int) -> None:
        self.log(
            AuditEvent(
                event_type="plan",
                message=f"Planned {len(step_kinds)} steps for {subject_id}",
                subject_id=subject_id,
                context={
                    "steps": step_kinds,
                    "estimated_steps": estimated_steps,
                    "required_total": str(required_total),
                },
            )
        )

    def log_step_started(self, subject_id: str, index: int, total: int, kind: str) -> None:
        self.log(
            AuditEvent(
                event_type="step_started",
                message=f"Step {index}/{total} ({kind}) started",
                subject_id=subject_id,
                severity="debug",
                context={"index": index, "total": total, "kind": kind},
            )
        )

    def log_step_completed(self, subject_id: str, index: int, total: int, kind: str, tx_hashes: list[str]) -> None:
        self.log(
            AuditEvent(
                event_type="step_completed",
                message=f"Step {index}/{total} ({kind}) confirmed",
                subject_id=subject_id,
                context={"index": index, "total": total, "kind": kind, "tx_hashes": list(tx_hashes)},
            )
        )

    def log_step_failed(self, subject_id: str, kind: Optional[str], error: str, message: str) -> None:
        self.log(
            AuditEvent(
                event_type="step_failed",
                message=f"Step {kind or 'planning'} failed: {message}",
                subject_id=subject_id,
                severity="error",
                context={"kind": kind, "error": error},
            )
        )

    def log_completed(self, subject_id: str, tx_count: int) -> None:
        self.log(
            AuditEvent(
                event_type="execution_completed",
                message=f"Cart for {subject_id} executed in {tx_count} transactions",
                subject_id=subject_id,
                context={"tx_count": tx_count},
            )
        )

    def log_cancelled(self, subject_id: str, completed_steps: int) -> None:
        self.log(
            AuditEvent(
                event_type="execution_cancelled",
                message=f"Execution for {subject_id} cancelled after {completed_steps} steps",
                subject_id=subject_id,
                severity="warning",
                context={"completed_steps": completed_steps},
            )
        )

    def get_events(
        self,
        event_type: Optional[EventType] = None,
        severity: Optional[Severity] = None,
        subject_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        return [
            e
            for e in self.events
            if (event_type is None or e.event_type == event_type)
            and (severity is None or e.severity == severity)
            and (subject_id is None or e.subject_id == subject_id)
        ]

    def clear(self) -> None:
        self.events.clear()

    def to_json_list(self) -> list[dict[str, Any]]:
        return [event.to_dict() for event in self.events]
