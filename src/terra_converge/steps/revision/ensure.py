# src/terra_converge/steps/revision/ensure.py
"""
Steps do caminho de provisionamento de uma Revision.

    finalizer.present → revision.labels → revision.plan_exists → revision.in_use_count

Uma Revision pertence ao Plan nomeado em `spec.plan.name`. O Plan é
criado sob demanda com esta revision como primeira entrada; se já
existe, a revision é anexada quando ausente.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass

from terra_converge.core.exceptions import NotFoundError
from terra_converge.core.pipeline.context import ReconcileContext
from terra_converge.core.pipeline.types import StepResult
from terra_converge.core.traceability.metrics import REVISION_IN_USE
from terra_converge.model.labels import (
    CLOUD_RESOURCE_PLAN_LABEL,
    CLOUD_RESOURCE_REVISION_LABEL,
    REVISION_PLAN_LABEL,
    REVISION_VERSION_LABEL,
)
from terra_converge.model.meta import ObjectMeta
from terra_converge.model.resources import CloudResource, Plan, PlanRevision, PlanSpec
from .state import RevisionState


@dataclass
class EnsureRevisionLabels:
    """Carimba plan-name/revision nos labels, usados para listar as revisions de um Plan."""

    id: str = "revision.labels"

    def run(self, ctx: ReconcileContext, state: RevisionState) -> StepResult:
        revision = ctx.resource
        wanted = {
            REVISION_PLAN_LABEL: revision.spec.plan.name,
            REVISION_VERSION_LABEL: revision.spec.plan.revision,
        }
        if all(revision.metadata.labels.get(k) == v for k, v in wanted.items()):
            return StepResult.proceed()

        base = deepcopy(revision)
        revision.metadata.labels.update(wanted)
        ctx.store.patch(revision, base)
        return StepResult.proceed("revision labels updated")


@dataclass
class EnsurePlanExists:
    id: str = "revision.plan_exists"

    def run(self, ctx: ReconcileContext, state: RevisionState) -> StepResult:
        revision = ctx.resource
        ref = revision.spec.plan
        entry = PlanRevision(name=revision.metadata.name, revision=ref.revision)

        try:
            plan = ctx.store.get(Plan, "", ref.name)
        except NotFoundError:
            ctx.store.create(
                Plan(
                    metadata=ObjectMeta(name=ref.name),
                    spec=PlanSpec(revisions=[entry]),
                )
            )
            ctx.log(step_id=self.id, level="info", message=f"created plan {ref.name}")
            return StepResult.requeue_now("plan created")

        state.plan = plan
        if plan.has_revision(ref.revision):
            return StepResult.proceed()

        base = deepcopy(plan)
        plan.spec.revisions.append(entry)
        ctx.store.patch(plan, base)
        return StepResult.proceed(f"revision {ref.revision} added to plan")


@dataclass
class EnsureInUseCount:
    """Conta os CloudResources que consomem (plan, revision) e publica o gauge."""

    id: str = "revision.in_use_count"

    def run(self, ctx: ReconcileContext, state: RevisionState) -> StepResult:
        ref = ctx.resource.spec.plan
        state.consumers = ctx.store.list(
            CloudResource,
            labels={
                CLOUD_RESOURCE_PLAN_LABEL: ref.name,
                CLOUD_RESOURCE_REVISION_LABEL: ref.revision,
            },
        )
        ctx.resource.status.in_use = len(state.consumers)
        ctx.metrics.set_gauge(
            REVISION_IN_USE,
            {"plan": ref.name, "revision": ref.revision},
            float(ctx.resource.status.in_use),
        )
        return StepResult.proceed()
