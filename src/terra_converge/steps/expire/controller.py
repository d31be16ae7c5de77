# src/terra_converge/steps/expire/controller.py
"""
Controller de expiração de revisions.

Registrado pelo manager apenas quando `revisions.expiration_seconds > 0`
e com um único worker: a decisão "não é a mais recente" depende do
conjunto de revisions do Plan e não deve correr em paralelo consigo mesma.
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
from terra_converge.model.resources import Revision
from .ensure import (
    EnsureDeletion,
    EnsureExpiration,
    EnsureMultipleRevisions,
    EnsureNotLatest,
    EnsureZeroConsumers,
    ExpireState,
)


class ExpireController:
    kind = Revision

    def __init__(self, store, settings: Settings, recorder: EventRecorder, clock: Clock = utcnow) -> None:
        self.store = store
        self.settings = settings
        self.recorder = recorder
        self.clock = clock

    def reconcile(self, key: ObjectKey, token: Optional[CancelToken] = None) -> ReconcileResult:
        try:
            revision = self.store.get(Revision, key.namespace, key.name)
        except NotFoundError:
            return ReconcileResult()

        requeue = self.settings.requeue
        if revision.metadata.deletion_timestamp is not None:
            return ReconcileResult(requeue_after=requeue.expire_pending_seconds)

        ctx = ReconcileContext(
            run_id=uuid.uuid4().hex,
            resource=revision,
            store=self.store,
            recorder=self.recorder,
            settings=self.settings,
            clock=self.clock,
            token=token or CancelToken(),
        )
        steps = [
            EnsureExpiration(),
            EnsureMultipleRevisions(),
            EnsureNotLatest(),
            EnsureZeroConsumers(),
            EnsureDeletion(),
        ]
        result = Engine(steps=steps, ctx=ctx, mark_ready=False).run(ExpireState())
        return requeue_unless(result, requeue.expire_resync_seconds)
