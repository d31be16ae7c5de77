# src/terra_converge/core/pipeline/context.py
"""
Contexto de execução de um ciclo de reconciliação.

Este módulo define o `ReconcileContext`, a estrutura passada a todos os
Steps de um ciclo, e o `CancelToken` que o torna cancelável.

O ReconcileContext consolida:
    - identidade do ciclo (run_id) e o recurso reconciliado
    - colaboradores injetados (store, recorder de eventos, métricas, settings, relógio)
    - token de cancelamento (shutdown do processo ou timeout por ciclo)
    - log estruturado de eventos do ciclo

Decisões arquiteturais:
    - Um contexto por ciclo; nunca compartilhado entre ciclos concorrentes
    - O scratch state NÃO vive aqui: é um objeto próprio do workflow,
      passado explicitamente a cada Step
    - Logs do ciclo são registrados em `events` e encaminhados ao `logging`

Invariantes:
    - Todo evento de log inclui `run_id`, `step_id` e a identidade do recurso
    - Após cancelamento, `raise_if_cancelled` sempre levanta `CancelledError`

Limites explícitos:
    - Não executa Steps
    - Não persiste status
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from terra_converge.core.clock import Clock, iso, utcnow
from terra_converge.core.config.settings import Settings
from terra_converge.core.exceptions import CancelledError
from terra_converge.core.traceability.events import EventRecorder
from terra_converge.core.traceability.metrics import MetricsSink, NoopMetrics

log = logging.getLogger("terra_converge")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class CancelToken:
    """
    Sinal de cancelamento cooperativo.

    Um token é cancelado explicitamente (`cancel`), quando o prazo
    opcional expira, ou quando o token pai é cancelado. Esperas longas
    devem usar `wait` para desbloquear prontamente.
    """

    def __init__(self, timeout: Optional[float] = None, parent: Optional["CancelToken"] = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._parent = parent

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return True
        return self._parent is not None and self._parent.cancelled

    def child(self, timeout: Optional[float] = None) -> "CancelToken":
        return CancelToken(timeout=timeout, parent=self)

    def wait(self, seconds: float, *, poll: float = 0.05) -> bool:
        """Bloqueia até `seconds` ou cancelamento; retorna True se cancelado."""
        end = time.monotonic() + seconds
        while not self.cancelled:
            remaining = end - time.monotonic()
            if remaining <= 0:
                return False
            self._event.wait(min(poll, remaining))
        return True


@dataclass
class ReconcileContext:
    """
    Contexto compartilhado de um ciclo de reconciliação.

    Campos canônicos:
    - run_id: identificador único do ciclo
    - resource: objeto reconciliado (mutado in-memory pelos Steps)
    - store, recorder, settings: colaboradores injetados
    - metrics: sink de métricas (no-op por padrão)
    - clock: relógio UTC
    - token: cancelamento cooperativo
    """

    run_id: str
    resource: Any
    store: Any
    recorder: EventRecorder
    settings: Settings
    metrics: MetricsSink = field(default_factory=NoopMetrics)
    clock: Clock = utcnow
    token: CancelToken = field(default_factory=CancelToken)

    events: List[Dict[str, Any]] = field(default_factory=list, init=False)

    def now(self) -> datetime:
        return self.clock()

    # -----------------------------
    # Cancelamento
    # -----------------------------
    def raise_if_cancelled(self, step_id: Optional[str] = None) -> None:
        if self.token.cancelled:
            raise CancelledError(
                message="Ciclo de reconciliação cancelado",
                details={"run_id": self.run_id, "step_id": step_id},
            )

    # -----------------------------
    # Logging
    # -----------------------------
    def log(self, *, step_id: str, level: str, message: str, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "step_id": step_id,
            "resource": self.resource.identity(),
            "level": level,
            "message": message,
            "timestamp": iso(self.clock()),
        }
        event.update(extra)
        self.events.append(event)
        log.log(_LEVELS.get(level, logging.INFO), "%s [%s] %s", event["resource"], step_id, message, extra={"cycle": event})
