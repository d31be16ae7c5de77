# src/terra_converge/steps/expire/ensure.py
"""
Steps de expiração de revisions.

Uma revision só é removida quando TODAS as condições valem:

    1. é mais antiga que `revisions.expiration_seconds`
    2. o Plan tem mais de uma revision
    3. não é a maior versão semântica do Plan
    4. nenhum CloudResource a consome

Qualquer condição falsa encerra o ciclo com pausa (nada a fazer até o
próximo resync). A revision semver-mais-recente nunca é removida, mesmo
que expirada: um Plan jamais fica sem revisão disponível.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

from terra_converge.core.pipeline.context import ReconcileContext
from terra_converge.core.pipeline.types import StepResult
from terra_converge.core.traceability.events import EVENT_NORMAL
from terra_converge.model.labels import CLOUD_RESOURCE_PLAN_LABEL, CLOUD_RESOURCE_REVISION_LABEL, REVISION_PLAN_LABEL
from terra_converge.model.resources import CloudResource, Revision
from terra_converge.reconcile.semver import latest_semver


@dataclass
class ExpireState:
    revisions: List[Revision] = field(default_factory=list)


@dataclass
class EnsureExpiration:
    id: str = "expire.expiration"

    def run(self, ctx: ReconcileContext, state: ExpireState) -> StepResult:
        created = ctx.resource.metadata.creation_timestamp
        threshold = timedelta(seconds=ctx.settings.revisions.expiration_seconds)
        if created is not None and ctx.now() - created < threshold:
            return StepResult.pause("revision not older than the expiration")
        return StepResult.proceed()


@dataclass
class EnsureMultipleRevisions:
    id: str = "expire.multiple_revisions"

    def run(self, ctx: ReconcileContext, state: ExpireState) -> StepResult:
        state.revisions = ctx.store.list(
            Revision,
            labels={REVISION_PLAN_LABEL: ctx.resource.spec.plan.name},
        )
        if len(state.revisions) <= 1:
            return StepResult.pause("only one revision of the plan")
        return StepResult.proceed()


@dataclass
class EnsureNotLatest:
    id: str = "expire.not_latest"

    def run(self, ctx: ReconcileContext, state: ExpireState) -> StepResult:
        latest = latest_semver(r.spec.plan.revision for r in state.revisions)
        if latest == ctx.resource.spec.plan.revision:
            return StepResult.pause("revision is the latest")
        return StepResult.proceed()


@dataclass
class EnsureZeroConsumers:
    id: str = "expire.zero_consumers"

    def run(self, ctx: ReconcileContext, state: ExpireState) -> StepResult:
        ref = ctx.resource.spec.plan
        consumers = ctx.store.list(
            CloudResource,
            labels={
                CLOUD_RESOURCE_PLAN_LABEL: ref.name,
                CLOUD_RESOURCE_REVISION_LABEL: ref.revision,
            },
        )
        if consumers:
            return StepResult.pause(f"revision has {len(consumers)} consumers")
        return StepResult.proceed()


@dataclass
class EnsureDeletion:
    id: str = "expire.deletion"

    def run(self, ctx: ReconcileContext, state: ExpireState) -> StepResult:
        revision = ctx.resource
        ctx.recorder.event(
            revision,
            EVENT_NORMAL,
            "ExpiringRevision",
            f"Expiring the revision {revision.spec.plan.revision}",
        )
        ctx.store.delete(revision)
        ctx.log(step_id=self.id, level="info", message="revision expired", plan=revision.spec.plan.name)
        return StepResult.proceed()
