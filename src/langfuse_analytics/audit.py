"""Append-only audit trail for mutating operations."""

from __future__ import annotations

import asyncio
import json
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from langfuse_analytics._logging import get_logger

logger = get_logger("LangfuseAnalytics.Audit")

# Outcomes recorded for a mutating invocation.
SUCCESS = "success"
FAILURE = "failure"
DENIED = "denied"
CONFIRMATION_REQUIRED = "confirmation_required"
INVALID_ARGUMENTS = "invalid_arguments"
CANCELLED = "cancelled"


@dataclass
class AuditRecord:
    """Single line in the audit log."""

    timestamp: str  # ISO 8601
    operation: str
    actor: str
    project_id: str
    outcome: str
    object: str
    detail: str = ""


class AuditLogger:
    """Writes one JSON line per mutating invocation.

    Records always go to the ``LangfuseAnalytics.Audit`` logger; when a path
    is configured they are also appended to that file.  Appends are
    serialized with a lock so concurrent calls never interleave partial
    lines.  ``record`` never raises; ``record_async`` runs it on a worker
    thread so the event loop never waits on file I/O.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        *,
        actor: str = "mcp-client",
        project_id: str = "default",
    ) -> None:
        self.path = path
        self.actor = actor
        self.project_id = project_id
        self._lock = threading.Lock()
        if self.path is not None:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
            except OSError:
                logger.warning("Cannot create audit log directory for %s", self.path)

    def record(
        self,
        operation: str,
        object_ref: str,
        outcome: str,
        detail: str = "",
    ) -> None:
        try:
            entry = AuditRecord(
                timestamp=datetime.now(timezone.utc).isoformat(),
                operation=operation,
                actor=self.actor,
                project_id=self.project_id,
                outcome=outcome,
                object=object_ref,
                detail=detail,
            )
            line = json.dumps(asdict(entry), sort_keys=True)
            logger.info("[AUDIT] %s", line)
            if self.path is not None:
                with self._lock:
                    with open(self.path, "a", encoding="utf-8") as f:
                        f.write(line + "\n")
        except Exception:
            # An audit failure never blocks or fails the operation.
            logger.debug("audit record for %s could not be written", operation, exc_info=True)

    async def record_async(
        self,
        operation: str,
        object_ref: str,
        outcome: str,
        detail: str = "",
    ) -> None:
        await asyncio.to_thread(self.record, operation, object_ref, outcome, detail)

    def read_records(self) -> list[AuditRecord]:
        """Return all records from the audit file (empty without a file)."""
        if self.path is None or not self.path.is_file():
            return []
        records: list[AuditRecord] = []
        with self._lock:
            with open(self.path, "r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if line:
                        records.append(AuditRecord(**json.loads(line)))
        return records
