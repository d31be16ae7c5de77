# src/terra_converge/core/traceability/events.py
"""
Sink de eventos de observabilidade.

Eventos são registros discretos associados a um objeto do store, com
tipo (`Normal` ou `Warning`), reason e message. São emitidos pelas
transições de Condition e por deleções relevantes (ex.: expiração de
revision).

Implementações:
    - InMemoryEventRecorder → lista ordenada e thread-safe (testes e manager padrão)
    - LoggingEventRecorder  → encaminha eventos ao `logging`

Invariantes:
    - Eventos são append-only
    - Todo evento carrega a identidade completa do objeto (kind, namespace, name, uid)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Protocol

from terra_converge.core.clock import Clock, iso, utcnow

EVENT_NORMAL = "Normal"
EVENT_WARNING = "Warning"

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    kind: str
    namespace: str
    name: str
    uid: str
    type: str
    reason: str
    message: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class EventRecorder(Protocol):
    def event(self, obj: Any, type: str, reason: str, message: str) -> None:
        ...


def _make_event(obj: Any, type: str, reason: str, message: str, now: Clock) -> Event:
    meta = obj.metadata
    return Event(
        kind=obj.kind,
        namespace=meta.namespace,
        name=meta.name,
        uid=meta.uid,
        type=type,
        reason=reason,
        message=message,
        timestamp=iso(now()),
    )


class InMemoryEventRecorder:
    """Recorder em memória; mantém todos os eventos em ordem de emissão."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or utcnow
        self._lock = threading.Lock()
        self._events: List[Event] = []

    def event(self, obj: Any, type: str, reason: str, message: str) -> None:
        ev = _make_event(obj, type, reason, message, self._clock)
        with self._lock:
            self._events.append(ev)

    @property
    def events(self) -> List[Event]:
        with self._lock:
            return list(self._events)

    def find(self, *, reason: Optional[str] = None, name: Optional[str] = None) -> List[Event]:
        return [
            e for e in self.events
            if (reason is None or e.reason == reason) and (name is None or e.name == name)
        ]


class LoggingEventRecorder:
    """Encaminha eventos ao logger; Warning vira WARNING, Normal vira INFO."""

    def __init__(self, logger: Optional[logging.Logger] = None, clock: Optional[Clock] = None) -> None:
        self._log = logger or log
        self._clock = clock or utcnow

    def event(self, obj: Any, type: str, reason: str, message: str) -> None:
        ev = _make_event(obj, type, reason, message, self._clock)
        level = logging.WARNING if type == EVENT_WARNING else logging.INFO
        self._log.log(level, "%s/%s %s: %s", ev.namespace, ev.name, ev.reason, ev.message, extra={"event": ev.to_dict()})
