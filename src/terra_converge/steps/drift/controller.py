# src/terra_converge/steps/drift/controller.py
"""
Controller de drift: dispara checagens periódicas em Configurations
com `spec.enable_drift_detection`.

Registrado com um único worker: o limite de checagens simultâneas
(`drift.threshold`) é decidido sobre o conjunto de Configurations e não
deve correr em paralelo consigo mesmo. Todo ciclo termina com resync
em `drift.check_interval_seconds`.
"""

from __future__ import annotations

import uuid
from typing import Optional

from terra_converge.core.clock import Clock, utcnow
from terra_converge.core.config.settings import Settings
from terra_converge.core.engine.engine import Engine
from terra_converge.core.exceptions import NotFoundError
from terra_converge.core.pipeline.context import CancelToken, ReconcileContext
from terra_converge.core.pipeline.types import ReconcileResult, requeue_unless
from terra_converge.core.traceability.events import EventRecorder
from terra_converge.model.meta import ObjectKey
from terra_converge.model.resources import Configuration
from .ensure import DriftState, EnsureDriftTriggered, EnsureReadyForDrift


class DriftController:
    kind = Configuration

    def __init__(self, store, settings: Settings, recorder: EventRecorder, clock: Clock = utcnow) -> None:
        self.store = store
        self.settings = settings
        self.recorder = recorder
        self.clock = clock

    def reconcile(self, key: ObjectKey, token: Optional[CancelToken] = None) -> ReconcileResult:
        try:
            configuration = self.store.get(Configuration, key.namespace, key.name)
        except NotFoundError:
            return ReconcileResult()

        interval = self.settings.drift.check_interval_seconds
        # sem Conditions o controller de Configuration ainda não rodou
        if (
            not configuration.spec.enable_drift_detection
            or configuration.metadata.deletion_timestamp is not None
            or not configuration.status.conditions
        ):
            return ReconcileResult(requeue_after=interval)

        ctx = ReconcileContext(
            run_id=uuid.uuid4().hex,
            resource=configuration,
            store=self.store,
            recorder=self.recorder,
            settings=self.settings,
            clock=self.clock,
            token=token or CancelToken(),
        )
        steps = [EnsureReadyForDrift(), EnsureDriftTriggered()]
        result = Engine(steps=steps, ctx=ctx, mark_ready=False).run(DriftState())
        return requeue_unless(result, interval)
