# src/terra_converge/core/engine/engine.py
"""
Driver do pipeline de reconciliação (ensure pipeline).

O Engine executa uma lista ordenada de Steps contra o recurso do ciclo
e um scratch state compartilhado, aplicando o protocolo de parada:

    - CONTINUE → próximo Step
    - PAUSE    → encerra; o chamador recebe resultado vazio e nenhum erro
    - REQUEUE  → encerra; o chamador recebe a diretiva de requeue
    - STOP / exceção → encerra; o erro é registrado como ErrorPayload e
      propagado ao chamador (backoff exponencial do worker)

Conflitos de token levantados por Steps viram requeue imediato: o ciclo
recomeça com o objeto atualizado.

Ao concluir todos os Steps sem parada, a Condition Ready recebe Success
e `last_success` é atualizado. Pipelines auxiliares (ex.: expiração)
desligam esse efeito com `mark_ready=False`.

Em qualquer desfecho, o status acumulado é persistido uma única vez,
com o token otimista do recurso. NotFound na escrita é ignorado (o
recurso pode ter sido removido no próprio ciclo); conflito na escrita
é propagado como erro transitório.
"""

from __future__ import annotations

import logging
from copy import deepcopy
from typing import Any, Dict, List, Optional, Sequence

from terra_converge.core.errors import cycle_cancelled, invalid_step_order, step_execution_error
from terra_converge.core.exceptions import CancelledError, ConflictError, EngineConfigurationError, NotFoundError
from terra_converge.core.pipeline.context import ReconcileContext
from terra_converge.core.pipeline.step import Step, is_terminal
from terra_converge.core.pipeline.types import Directive, ReconcileResult, StepResult
from terra_converge.model.meta import ConditionType, ReconcileMark
from terra_converge.reconcile.conditions import ConditionTracker, ensure_conditions_registered

log = logging.getLogger(__name__)

READY_MESSAGE = "Resource ready"


def validate_steps(steps: Sequence[Step]) -> None:
    """Rejeita ids duplicados e Steps terminais fora da última posição."""
    seen = set()
    for i, step in enumerate(steps):
        if step.id in seen:
            raise EngineConfigurationError(
                message=f"Step duplicado no pipeline: {step.id}",
                details={"step_id": step.id},
            )
        seen.add(step.id)

        if is_terminal(step) and i != len(steps) - 1:
            payload = invalid_step_order(step_id=step.id, position=i, total=len(steps))
            raise EngineConfigurationError(
                message=payload.message,
                details=payload.details,
                hint=payload.hint,
            )


class Engine:
    """Driver canônico: executa Steps, aplica diretivas e persiste status uma vez."""

    def __init__(self, *, steps: Sequence[Step], ctx: ReconcileContext, mark_ready: bool = True):
        self.steps: List[Step] = list(steps)
        self.ctx: ReconcileContext = ctx
        self.mark_ready = mark_ready
        validate_steps(self.steps)

    def _run_step(self, step: Step, state: Any) -> StepResult:
        sid = step.id
        try:
            self.ctx.raise_if_cancelled(sid)
            result = step.run(self.ctx, state)
            if not isinstance(result, StepResult):
                raise EngineConfigurationError(
                    message="Step retornou tipo inválido",
                    details={"step_id": sid, "expected": "StepResult", "received": type(result).__name__},
                    hint="Ajuste o Step para retornar StepResult",
                )
            return result
        except ConflictError as e:
            self.ctx.log(step_id=sid, level="info", message="conflict on write, requeueing", error=str(e))
            return StepResult.requeue_now("conflict")
        except Exception as e:
            return StepResult.stop(e)

    def _mark_ready(self) -> None:
        resource = self.ctx.resource
        ConditionTracker(resource, ConditionType.READY, recorder=self.ctx.recorder, clock=self.ctx.clock).success(
            READY_MESSAGE
        )
        generation = resource.metadata.generation
        last = resource.status.last_success
        if last is None or last.generation != generation:
            resource.status.last_success = ReconcileMark(generation=generation, time=self.ctx.now())

    def _write_status(self, original: Any) -> None:
        resource = self.ctx.resource
        if resource.status == original:
            return

        resource.status.last_reconcile = ReconcileMark(
            generation=resource.metadata.generation,
            time=self.ctx.now(),
        )
        try:
            self.ctx.store.update_status(resource)
        except NotFoundError:
            log.debug("resource gone before status update", extra=resource.log_fields())

    def run(self, state: Any) -> ReconcileResult:
        resource = self.ctx.resource
        original = deepcopy(resource.status)
        ensure_conditions_registered(resource, self.ctx.clock)

        results: Dict[str, StepResult] = {}
        outcome = ReconcileResult(steps=results)
        error: Optional[BaseException] = None

        for step in self.steps:
            sid = step.id
            result = self._run_step(step, state)
            results[sid] = result

            if result.directive == Directive.CONTINUE:
                continue

            if result.directive == Directive.PAUSE:
                self.ctx.log(step_id=sid, level="debug", message=result.summary or "paused")
                outcome = ReconcileResult(paused=True, steps=results)
            elif result.directive == Directive.REQUEUE:
                outcome = ReconcileResult(
                    requeue=result.immediate,
                    requeue_after=result.requeue_after,
                    steps=results,
                )
            else:
                error = result.error or RuntimeError(result.summary or "step stopped")
                if isinstance(error, CancelledError):
                    payload = cycle_cancelled(resource=resource.identity(), step_id=sid)
                else:
                    payload = step_execution_error(step_id=sid, resource=resource.identity(), exc=error)
                self.ctx.log(step_id=sid, level="error", message=payload.message, error=payload.to_dict())
            break
        else:
            if self.mark_ready:
                self._mark_ready()

        try:
            self._write_status(original)
        except Exception as e:
            if error is None:
                raise
            log.error("failed to update status: %s", e, extra=resource.log_fields())

        if error is not None:
            raise error
        return outcome
