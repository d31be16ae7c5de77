# src/terra_converge/steps/configuration/controller.py
"""
Controller de Configuration: monta o pipeline do ciclo e o executa.

Um ciclo:
    1. carrega o recurso (NotFound → resultado vazio)
    2. escolhe a sequência de Steps (deleção ou provisionamento)
    3. executa via `Engine` com um `ConfigurationState` novo
    4. atualiza o gauge de falha do recurso

Units no namespace de controle não têm owner reference; o mapeamento
unit → Configuration é feito pelos labels de nome/namespace
(`unit_owner_keys`).
"""

from __future__ import annotations

import uuid
from typing import List, Optional, Sequence

from terra_converge.core.clock import Clock, utcnow
from terra_converge.core.config.settings import Settings
from terra_converge.core.engine.engine import Engine
from terra_converge.core.exceptions import NotFoundError
from terra_converge.core.pipeline.context import CancelToken, ReconcileContext
from terra_converge.core.pipeline.step import Step
from terra_converge.core.pipeline.types import ReconcileResult
from terra_converge.core.traceability.events import EventRecorder
from terra_converge.core.traceability.metrics import CONFIGURATION_FAILED, MetricsSink, NoopMetrics
from terra_converge.model.labels import OWNER_NAME_LABEL, OWNER_NAMESPACE_LABEL
from terra_converge.model.meta import ConditionReason, ObjectKey, StoreObject
from terra_converge.model.resources import Configuration
from terra_converge.reconcile.finalizers import FinalizerCoordinator
from terra_converge.render.units import DefaultUnitRenderer, UnitRenderer
from .delete import EnsureConfigArtifactsDeleted, EnsureTerraformDestroy, EnsureUnitsDeleted
from .ensure import (
    EnsureCapturedState,
    EnsureDriftDetection,
    EnsureJobConfiguration,
    EnsureNoPreviousGeneration,
    EnsurePolicyStatus,
    EnsureProviderReady,
    EnsureReconcileEnabled,
    EnsureTerraformApply,
    EnsureTerraformPlan,
)
from .state import ConfigurationState


def unit_owner_keys(obj: StoreObject) -> List[ObjectKey]:
    labels = obj.metadata.labels
    name = labels.get(OWNER_NAME_LABEL)
    namespace = labels.get(OWNER_NAMESPACE_LABEL)
    if not name or not namespace:
        return []
    return [ObjectKey(namespace=namespace, name=name)]


class ConfigurationController:
    kind = Configuration

    def __init__(
        self,
        store,
        settings: Settings,
        recorder: EventRecorder,
        metrics: Optional[MetricsSink] = None,
        renderer: Optional[UnitRenderer] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.settings = settings
        self.recorder = recorder
        self.metrics = metrics or NoopMetrics()
        self.renderer = renderer or DefaultUnitRenderer()
        self.clock = clock
        self.finalizers = FinalizerCoordinator(store)

    def reconcile_steps(self) -> Sequence[Step]:
        return [
            self.finalizers.ensure_present(),
            EnsureReconcileEnabled(),
            EnsureCapturedState(),
            EnsureNoPreviousGeneration(),
            EnsureProviderReady(),
            EnsureJobConfiguration(),
            EnsureTerraformPlan(renderer=self.renderer),
            EnsurePolicyStatus(),
            EnsureDriftDetection(),
            EnsureTerraformApply(renderer=self.renderer),
        ]

    def delete_steps(self) -> Sequence[Step]:
        return [
            EnsureCapturedState(),
            EnsureProviderReady(),
            EnsureJobConfiguration(),
            EnsureTerraformDestroy(renderer=self.renderer),
            EnsureConfigArtifactsDeleted(),
            EnsureUnitsDeleted(),
            self.finalizers.ensure_removed(),
        ]

    def reconcile(self, key: ObjectKey, token: Optional[CancelToken] = None) -> ReconcileResult:
        try:
            resource = self.store.get(Configuration, key.namespace, key.name)
        except NotFoundError:
            return ReconcileResult()

        ctx = ReconcileContext(
            run_id=uuid.uuid4().hex,
            resource=resource,
            store=self.store,
            recorder=self.recorder,
            settings=self.settings,
            metrics=self.metrics,
            clock=self.clock,
            token=token or CancelToken(),
        )

        if self.finalizers.is_deletion_candidate(resource):
            steps = self.delete_steps()
        elif resource.metadata.deletion_timestamp is not None:
            return ReconcileResult()
        else:
            steps = self.reconcile_steps()

        try:
            return Engine(steps=steps, ctx=ctx).run(ConfigurationState())
        finally:
            self._record_failure(resource)

    def _record_failure(self, resource: Configuration) -> None:
        failed = any(c.reason == ConditionReason.ERROR.value for c in resource.status.conditions)
        self.metrics.set_gauge(
            CONFIGURATION_FAILED,
            {"name": resource.metadata.name, "namespace": resource.metadata.namespace},
            1.0 if failed else 0.0,
        )
