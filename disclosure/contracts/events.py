from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .enums import Direction, EventKind, EventType


_KIND_BY_TYPE = {
    EventType.LOG: EventKind.LOGGING,
    EventType.SESSION_FAILED: EventKind.ERROR,
}


class SessionEvent(BaseModel):
    """
    One progress, log or error report for a disclosure session.

    str(event) is the human-readable line; to_wire() is the structure handed
    to the IPC boundary.
    """
    event_type: EventType
    session_id: str = Field(min_length=1, max_length=128)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    message: str = Field(max_length=4096)
    direction: Optional[Direction] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    @property
    def kind(self) -> EventKind:
        return _KIND_BY_TYPE.get(self.event_type, EventKind.MESSAGE)

    def __str__(self) -> str:
        where = f" {self.direction.value}" if self.direction else ""
        return f"[{self.session_id}] {self.event_type.value}{where}: {self.message}"

    def to_wire(self) -> Dict[str, Any]:
        body = self.model_dump(mode="json")
        if self.kind == EventKind.ERROR:
            return {"type": self.kind.value, "message": self.message, "event": body}
        return {"type": self.kind.value, "message": body}


# ---- Typed payloads ----

class ParseCompletedPayload(BaseModel):
    transcript_bytes: int = Field(ge=0)
    header_count: int = Field(ge=0)
    json_body: bool


class ResolveCompletedPayload(BaseModel):
    ranges: List[Tuple[int, int]] = Field(default_factory=list)
    revealed_bytes: int = Field(ge=0)
    transcript_bytes: int = Field(ge=0)


class DisclosureCommittedPayload(BaseModel):
    sent_ranges: List[Tuple[int, int]] = Field(default_factory=list)
    recv_ranges: List[Tuple[int, int]] = Field(default_factory=list)


class SessionFailedPayload(BaseModel):
    code: str = Field(min_length=1)
    category: str = Field(min_length=1)
    details: Dict[str, Any] = Field(default_factory=dict)


PAYLOAD_MODELS = {
    EventType.PARSE_COMPLETED: ParseCompletedPayload,
    EventType.RESOLVE_COMPLETED: ResolveCompletedPayload,
    EventType.DISCLOSURE_COMMITTED: DisclosureCommittedPayload,
    EventType.SESSION_FAILED: SessionFailedPayload,
}
