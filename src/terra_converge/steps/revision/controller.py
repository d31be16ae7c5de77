# src/terra_converge/steps/revision/controller.py
"""
Controller de Revision.

Mantém o catálogo (Plan) coerente com as revisions existentes e publica
quantos CloudResources consomem cada uma. Fora do caminho de deleção, o
resultado é forçado a um resync periódico (`requeue.revision_resync_seconds`)
para que a contagem de uso acompanhe consumidores que surgem ou somem.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from terra_converge.core.clock import Clock, utcnow
from terra_converge.core.config.settings import Settings
from terra_converge.core.engine.engine import Engine
from terra_converge.core.exceptions import NotFoundError
from terra_converge.core.pipeline.context import CancelToken, ReconcileContext
from terra_converge.core.pipeline.types import ReconcileResult, requeue_unless
from terra_converge.core.traceability.events import EventRecorder
from terra_converge.core.traceability.metrics import MetricsSink, NoopMetrics
from terra_converge.model.labels import CLOUD_RESOURCE_PLAN_LABEL, CLOUD_RESOURCE_REVISION_LABEL
from terra_converge.model.meta import ObjectKey, StoreObject
from terra_converge.model.resources import Revision
from terra_converge.reconcile.finalizers import FinalizerCoordinator
from .delete import EnsureRevisionRemovedFromPlan
from .ensure import EnsureInUseCount, EnsurePlanExists, EnsureRevisionLabels
from .state import RevisionState


class RevisionController:
    kind = Revision

    def __init__(
        self,
        store,
        settings: Settings,
        recorder: EventRecorder,
        metrics: Optional[MetricsSink] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.settings = settings
        self.recorder = recorder
        self.metrics = metrics or NoopMetrics()
        self.clock = clock
        self.finalizers = FinalizerCoordinator(store)

    def consumer_keys(self, obj: StoreObject) -> List[ObjectKey]:
        """Mapeia um CloudResource para as revisions de (plan, revision) que ele consome."""
        plan = obj.metadata.labels.get(CLOUD_RESOURCE_PLAN_LABEL)
        version = obj.metadata.labels.get(CLOUD_RESOURCE_REVISION_LABEL)
        if not plan or not version:
            return []
        return [
            r.key
            for r in self.store.list(Revision)
            if r.spec.plan.name == plan and r.spec.plan.revision == version
        ]

    def reconcile(self, key: ObjectKey, token: Optional[CancelToken] = None) -> ReconcileResult:
        try:
            revision = self.store.get(Revision, key.namespace, key.name)
        except NotFoundError:
            return ReconcileResult()

        ctx = ReconcileContext(
            run_id=uuid.uuid4().hex,
            resource=revision,
            store=self.store,
            recorder=self.recorder,
            settings=self.settings,
            metrics=self.metrics,
            clock=self.clock,
            token=token or CancelToken(),
        )

        if self.finalizers.is_deletion_candidate(revision):
            steps = [EnsureRevisionRemovedFromPlan(), self.finalizers.ensure_removed()]
            return Engine(steps=steps, ctx=ctx).run(RevisionState())

        if revision.metadata.deletion_timestamp is not None:
            return ReconcileResult()

        steps = [
            self.finalizers.ensure_present(),
            EnsureRevisionLabels(),
            EnsurePlanExists(),
            EnsureInUseCount(),
        ]
        result = Engine(steps=steps, ctx=ctx).run(RevisionState())
        return requeue_unless(result, self.settings.requeue.revision_resync_seconds)
