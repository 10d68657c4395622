from __future__ import annotations

from typing import Dict, Any

from pydantic import BaseModel

from .events import PAYLOAD_MODELS, SessionEvent
from .models import SessionRequest


def pydantic_schema(model: type[BaseModel]) -> Dict[str, Any]:
    """
    JSON Schema for one contract model, as pydantic v2 generates it.
    StrictEventSink validates emitted events against these.
    """
    return model.model_json_schema()


def all_contract_schemas() -> Dict[str, Dict[str, Any]]:
    """
    Schema name to JSON Schema. Envelope and request models are keyed by class
    name, payload models by the event type they belong to.
    """
    schemas = {
        "SessionEvent": pydantic_schema(SessionEvent),
        "SessionRequest": pydantic_schema(SessionRequest),
    }
    for event_type, model in PAYLOAD_MODELS.items():
        schemas[event_type.value] = pydantic_schema(model)
    return schemas
