# src/terra_converge/reconcile/conditions.py
"""
Máquina de estados de Conditions por (recurso, tipo).

O `ConditionTracker` é a única via de escrita de Conditions. Cada
transição:

    1. calcula status (True apenas para Success) e reason
    2. se (status, reason, message) não mudou, atualiza apenas
       `observed_generation`
    3. caso contrário, redefine `last_transition_time` e emite um evento
       (Normal para Success, Warning nos demais) com a mensagem

Mapeamento de transições:

    success         → True,  Ready
    failed          → False, Error   (detail recebe o texto do erro)
    in_progress     → False, InProgress
    warning         → False, Warning
    action_required → False, ActionRequired
    disabled        → False, Disabled
    deleting        → False, Deleting

As mutações afetam apenas o objeto em memória; a persistência ocorre uma
única vez, ao fim do ciclo, pelo Engine.
"""

from __future__ import annotations

import logging
from typing import Optional

from terra_converge.core.clock import Clock, utcnow
from terra_converge.core.traceability.events import EVENT_NORMAL, EVENT_WARNING, EventRecorder
from terra_converge.model.meta import Condition, ConditionReason, ConditionStatus, StoreObject

log = logging.getLogger(__name__)


def ensure_conditions_registered(obj: StoreObject, clock: Clock = utcnow) -> bool:
    """Registra as Conditions padrão do kind ausentes no status; retorna True se algo mudou."""
    status = getattr(obj, "status", None)
    if status is None:
        return False

    changed = False
    for spec in type(obj).default_conditions:
        if status.get_condition(spec.type) is None:
            status.conditions.append(
                Condition(
                    type=spec.type,
                    name=spec.name,
                    status=ConditionStatus.FALSE,
                    reason=ConditionReason.NOT_DETERMINED.value,
                    last_transition_time=clock(),
                )
            )
            changed = True
    return changed


class ConditionTracker:
    def __init__(
        self,
        obj: StoreObject,
        type: str,
        recorder: Optional[EventRecorder] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._obj = obj
        self._type = type
        self._recorder = recorder
        self._clock = clock

    @property
    def type(self) -> str:
        return self._type

    def get(self) -> Optional[Condition]:
        return self._obj.status.get_condition(self._type)  # type: ignore[attr-defined]

    def _condition(self) -> Condition:
        cond = self.get()
        if cond is None:
            cond = Condition(type=self._type, name=self._type)
            self._obj.status.conditions.append(cond)  # type: ignore[attr-defined]
        return cond

    def _transition(self, status: ConditionStatus, reason: ConditionReason, message: str, detail: str = "") -> None:
        cond = self._condition()
        generation = self._obj.metadata.generation

        if cond.status == status and cond.reason == reason.value and cond.message == message:
            cond.observed_generation = generation
            return

        previous = cond.reason
        cond.status = status
        cond.reason = reason.value
        cond.message = message
        cond.detail = detail
        cond.observed_generation = generation
        cond.last_transition_time = self._clock()

        log.debug(
            "condition %s transitioned %s -> %s",
            self._type,
            previous,
            reason.value,
            extra={"resource": self._obj.identity(), "message": message},
        )

        if self._recorder is not None:
            kind = EVENT_NORMAL if status == ConditionStatus.TRUE else EVENT_WARNING
            self._recorder.event(self._obj, kind, self._type, message)

    # ------------------------------------------------------------------
    # Transições
    # ------------------------------------------------------------------

    def success(self, message: str) -> None:
        self._transition(ConditionStatus.TRUE, ConditionReason.READY, message)

    def failed(self, err: Optional[BaseException], message: str) -> None:
        self._transition(ConditionStatus.FALSE, ConditionReason.ERROR, message, detail=str(err) if err else "")

    def in_progress(self, message: str) -> None:
        self._transition(ConditionStatus.FALSE, ConditionReason.IN_PROGRESS, message)

    def warning(self, message: str) -> None:
        self._transition(ConditionStatus.FALSE, ConditionReason.WARNING, message)

    def action_required(self, message: str) -> None:
        self._transition(ConditionStatus.FALSE, ConditionReason.ACTION_REQUIRED, message)

    def disabled(self, message: str) -> None:
        self._transition(ConditionStatus.FALSE, ConditionReason.DISABLED, message)

    def deleting(self, message: str) -> None:
        self._transition(ConditionStatus.FALSE, ConditionReason.DELETING, message)

    # ------------------------------------------------------------------
    # Consultas carimbadas por geração
    # ------------------------------------------------------------------

    def is_complete(self, generation: int) -> bool:
        cond = self.get()
        return cond is not None and cond.is_true() and cond.observed_generation == generation

    def is_failed(self, generation: int) -> bool:
        cond = self.get()
        return (
            cond is not None
            and cond.reason == ConditionReason.ERROR.value
            and cond.observed_generation == generation
        )


def tracker_for(ctx, type: str) -> ConditionTracker:
    """Tracker para o recurso do ciclo, ligado ao recorder e relógio do contexto."""
    return ConditionTracker(ctx.resource, type, recorder=ctx.recorder, clock=ctx.clock)
