"""
Append-only event log shared by all registry components.

This is the sole notification channel for external observers and
indexers: every successful state mutation appends exactly one event per
fact it changes, in the order the changes happened. Events emitted inside
a transaction that later rolls back are removed along with the rest of
the transaction's effects.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from .models import LedgerEvent
from .transaction import Transactional

logger = logging.getLogger(__name__)


def _plain(value: Any) -> Any:
    """Convert models and enums into JSON-friendly values."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value if not isinstance(value, int) else value.name
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


class EventLog(Transactional):
    """Immutably-ordered record of every state change."""

    _state_fields = ("_events",)

    def __init__(self) -> None:
        self._events: list[LedgerEvent] = []

    def emit(self, component: str, name: str, key: Any, **fields: Any) -> LedgerEvent:
        event = LedgerEvent(
            sequence=len(self._events) + 1,
            component=component,
            name=name,
            key=str(key),
            fields={k: _plain(v) for k, v in fields.items()},
            emitted_at=datetime.now(timezone.utc),
        )
        self._events.append(event)
        logger.info("[%s] %s %s", component, name, event.key)
        return event

    def events(
        self, component: Optional[str] = None, name: Optional[str] = None
    ) -> list[LedgerEvent]:
        """Events in emission order, optionally filtered."""
        return [
            e
            for e in self._events
            if (component is None or e.component == component)
            and (name is None or e.name == name)
        ]

    def last(self) -> Optional[LedgerEvent]:
        return self._events[-1] if self._events else None

    def __len__(self) -> int:
        return len(self._events)
