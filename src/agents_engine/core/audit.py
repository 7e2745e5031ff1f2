"""
Append-only audit log for tool calls, decisions and retries.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .redaction import redact

logger = logging.getLogger(__name__)


class AuditEvent(BaseModel):
    """A single audit record."""
    sequence: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event_type: str
    run_id: Optional[str] = None
    session_id: Optional[str] = None
    agent: Optional[str] = None
    call_id: Optional[str] = None
    tool: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class AuditLog:
    """
    Concurrency-safe, append-only audit sink.

    Shared by every run in the process. Redaction is applied before the
    event is stored or written, so nothing downstream ever sees raw secrets.
    Optionally mirrors events to a JSON-lines file.
    """

    def __init__(self, path: Optional[str] = None):
        """
        Initialize audit log.

        Args:
            path: Optional JSON-lines file to append events to
        """
        self.path = Path(path) if path else None
        self._events: List[AuditEvent] = []
        self._lock = asyncio.Lock()

    async def record(
        self,
        event_type: str,
        run_id: Optional[str] = None,
        session_id: Optional[str] = None,
        agent: Optional[str] = None,
        call_id: Optional[str] = None,
        tool: Optional[str] = None,
        **data: Any,
    ) -> AuditEvent:
        """
        Append an event.

        Args:
            event_type: Event kind (e.g. "tool_call", "reasoning_retry")
            run_id: Owning workflow run
            session_id: Owning agent session
            agent: Agent key
            call_id: Tool call id, for tool events
            tool: Tool name, for tool events
            **data: Event payload (redacted before storage)

        Returns:
            The stored event
        """
        async with self._lock:
            event = AuditEvent(
                sequence=len(self._events) + 1,
                event_type=event_type,
                run_id=run_id,
                session_id=session_id,
                agent=agent,
                call_id=call_id,
                tool=tool,
                data=json.loads(json.dumps(redact(data), default=str)),
            )
            self._events.append(event)
            if self.path is not None:
                await asyncio.to_thread(self._write, event)
        return event

    def _write(self, event: AuditEvent) -> None:
        line = json.dumps(event.model_dump(mode="json"), default=str)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line + "\n")

    def events(
        self,
        run_id: Optional[str] = None,
        event_type: Optional[str] = None,
    ) -> List[AuditEvent]:
        """
        Snapshot of recorded events, optionally filtered.

        Args:
            run_id: Only events for this run
            event_type: Only events of this kind

        Returns:
            Events in append order
        """
        return [
            e for e in list(self._events)
            if (run_id is None or e.run_id == run_id)
            and (event_type is None or e.event_type == event_type)
        ]

    def __len__(self) -> int:
        return len(self._events)
