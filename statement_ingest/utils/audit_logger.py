"""
Audit logging for pipeline runs.
"""

import json
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional

import structlog

from ..models import AuditAction, AuditEntry, PipelineState

logger = structlog.get_logger()


class AuditLogger:
    """
    Observer of a pipeline run.
    Keeps entries in memory and mirrors each one to structlog with run context bound.
    """

    def __init__(self, run_id: str, filename: str = ""):
        self.run_id = run_id
        self.entries: List[AuditEntry] = []
        self._log = logger.bind(run_id=run_id, filename=filename)

    def log(self, entry: AuditEntry) -> None:
        """Add an audit entry."""
        self.entries.append(entry)

        if entry.success:
            self._log.info(entry.message, action=entry.action.value, **entry.details)
        else:
            self._log.warning(
                entry.message,
                action=entry.action.value,
                error=entry.error_message,
                **entry.details,
            )

    def record(self, action: AuditAction, message: str, **details: Any) -> None:
        self.log(AuditEntry(action=action, message=message, details=details))

    def state_changed(self, previous: PipelineState, current: PipelineState) -> None:
        self.log(AuditEntry(
            action=AuditAction.STATE_CHANGED,
            message="Pipeline state changed",
            details={"from_state": previous.value, "to_state": current.value},
        ))

    def failed(self, error: Exception, stage: Optional[str] = None) -> None:
        self.log(AuditEntry(
            action=AuditAction.RUN_FAILED,
            message="Pipeline run failed",
            details={"stage": stage, "error_type": type(error).__name__},
            success=False,
            error_message=str(error),
        ))

    def get_entries(
        self,
        action_filter: Optional[AuditAction] = None,
        success_only: bool = False,
    ) -> List[AuditEntry]:
        """Get filtered audit entries."""
        entries = self.entries

        if action_filter:
            entries = [e for e in entries if e.action == action_filter]

        if success_only:
            entries = [e for e in entries if e.success]

        return entries

    def export_to_file(self, output_path: Path) -> Path:
        """Export audit log to JSON file."""
        output_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "run_id": self.run_id,
            "exported_at": datetime.utcnow().isoformat(),
            "total_entries": len(self.entries),
            "entries": [
                {
                    "id": e.id,
                    "timestamp": e.timestamp.isoformat(),
                    "action": e.action.value,
                    "message": e.message,
                    "details": e.details,
                    "success": e.success,
                    "error_message": e.error_message,
                }
                for e in self.entries
            ],
        }

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=str)

        self._log.info("Audit log exported", path=str(output_path))
        return output_path

    def summary(self) -> dict:
        """Get summary statistics of audit log."""
        action_counts = Counter(e.action.value for e in self.entries)

        return {
            "total_entries": len(self.entries),
            "success_count": sum(1 for e in self.entries if e.success),
            "error_count": sum(1 for e in self.entries if not e.success),
            "action_counts": dict(action_counts),
        }
