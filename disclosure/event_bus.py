from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol

import jsonschema

from .contracts.events import SessionEvent
from .contracts.enums import EventKind
from .contracts.schemas import all_contract_schemas

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Anything that accepts session events: the IPC writer, a test collector, a logger."""
    def emit(self, event: SessionEvent) -> None:
        ...


class LoggingSink:
    """Writes every event to the module logger. Default sink when no IPC writer is attached."""

    def emit(self, event: SessionEvent) -> None:
        if event.kind == EventKind.ERROR:
            logger.error(str(event))
        else:
            logger.info(str(event))


class CollectingSink:
    """Keeps events in memory, in emission order."""

    def __init__(self) -> None:
        self.events: List[SessionEvent] = []

    def emit(self, event: SessionEvent) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [e.event_type.value for e in self.events]


class StrictEventSink:
    """
    Sink adapter that validates every event against its JSON Schema before
    forwarding it to the underlying sink.
    """
    def __init__(self, underlying: EventSink, strict_mode: bool = True) -> None:
        self._underlying = underlying
        self._strict_mode = strict_mode
        self._schemas = all_contract_schemas()
        self._envelope_schema = self._schemas.get("SessionEvent")

        if not self._envelope_schema:
            raise RuntimeError("SessionEvent schema missing in StrictEventSink")

    def emit(self, event: SessionEvent) -> None:
        dumped: Dict[str, Any] = event.model_dump(mode="json")

        try:
            # 1. Envelope structure
            jsonschema.validate(instance=dumped, schema=self._envelope_schema)

            # 2. Payload schema for this event type, where one is registered
            event_type = dumped["event_type"]
            if event_type in self._schemas:
                jsonschema.validate(instance=dumped.get("payload", {}), schema=self._schemas[event_type])

        except jsonschema.ValidationError as e:
            logger.error(f"[StrictEventSink] Validation failed for {event.event_type.value}: {e.message}")
            if self._strict_mode:
                raise ValueError(f"Strict event validation failure: {e.message}") from e

        self._underlying.emit(event)
