# src/terra_converge/steps/drift/ensure.py
"""
Steps do controller de drift.

Uma checagem de drift é disparada marcando a Configuration com a
annotation de drift (timestamp unix). O controller de Configuration
refaz o plan correlacionado a esse marcador e só aplica se o plan tiver
mudanças; ao concluir, registra o marcador em `status.drift_timestamp`.

Uma Configuration só recebe nova checagem quando:
    - plan e apply estão completos (e não falhos) para a geração corrente
    - não há plan/apply em andamento
    - nenhuma transição de plan/apply ocorreu dentro de `drift.interval_seconds`
    - a checagem anterior já foi consumida
    - a fração de Configurations com checagem em andamento está abaixo
      de `drift.threshold`
"""

from __future__ import annotations

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

from terra_converge.core.exceptions import ConflictError
from terra_converge.core.pipeline.context import ReconcileContext
from terra_converge.core.pipeline.types import StepResult
from terra_converge.core.traceability.events import EVENT_NORMAL, EVENT_WARNING
from terra_converge.model.labels import DRIFT_ANNOTATION
from terra_converge.model.meta import ConditionReason, ConditionType
from terra_converge.model.resources import Configuration
from terra_converge.reconcile.conditions import tracker_for

log = logging.getLogger(__name__)

DRIFT_EVENT_REASON = "DriftDetection"


def drift_in_flight(configuration: Configuration) -> bool:
    marker = configuration.metadata.annotations.get(DRIFT_ANNOTATION, "")
    return bool(marker) and marker != configuration.status.drift_timestamp


@dataclass
class DriftState:
    configurations: List[Configuration] = field(default_factory=list)


@dataclass
class EnsureReadyForDrift:
    id: str = "drift.ready"

    def run(self, ctx: ReconcileContext, state: DriftState) -> StepResult:
        resource = ctx.resource
        generation = resource.metadata.generation
        quiet = timedelta(seconds=ctx.settings.drift.interval_seconds)

        for type in (ConditionType.TERRAFORM_PLAN, ConditionType.TERRAFORM_APPLY):
            tracker = tracker_for(ctx, type)
            cond = tracker.get()
            if cond is None:
                return StepResult.pause(f"{type} condition not registered")
            if tracker.is_failed(generation):
                return StepResult.pause(f"{type} failed for generation")
            if cond.reason == ConditionReason.IN_PROGRESS.value:
                return StepResult.pause(f"{type} in progress")
            if not tracker.is_complete(generation):
                return StepResult.pause(f"{type} not complete for generation")
            if cond.last_transition_time is not None and cond.last_transition_time + quiet > ctx.now():
                return StepResult.pause(f"{type} had recent activity")

        if drift_in_flight(resource):
            return StepResult.pause("drift check already in progress")

        state.configurations = ctx.store.list(Configuration)
        running = sum(1 for c in state.configurations if drift_in_flight(c))
        total = len(state.configurations)
        if total > 1 and running / total >= ctx.settings.drift.threshold:
            return StepResult.pause(f"{running} of {total} configurations running drift checks")

        return StepResult.proceed()


@dataclass
class EnsureDriftTriggered:
    id: str = "drift.triggered"

    def run(self, ctx: ReconcileContext, state: DriftState) -> StepResult:
        resource = ctx.resource
        base = deepcopy(resource)
        resource.metadata.annotations[DRIFT_ANNOTATION] = str(int(ctx.now().timestamp()))

        try:
            ctx.store.patch(resource, base)
        except ConflictError:
            ctx.recorder.event(
                resource,
                EVENT_WARNING,
                DRIFT_EVENT_REASON,
                "Failed to patch configuration with drift detection annotation",
            )
            raise

        ctx.recorder.event(resource, EVENT_NORMAL, DRIFT_EVENT_REASON, "Triggered drift detection on configuration")
        log.info("triggered drift detection", extra=resource.log_fields())
        return StepResult.proceed()
