# src/terra_converge/steps/revision/delete.py
"""Caminho de deleção de uma Revision: retirar a entrada do Plan, depois o finalizer."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass

from terra_converge.core.exceptions import NotFoundError
from terra_converge.core.pipeline.context import ReconcileContext
from terra_converge.core.pipeline.types import StepResult
from terra_converge.core.traceability.events import EVENT_NORMAL, EVENT_WARNING
from terra_converge.model.resources import Plan
from .state import RevisionState


@dataclass
class EnsureRevisionRemovedFromPlan:
    id: str = "revision.removed_from_plan"

    def run(self, ctx: ReconcileContext, state: RevisionState) -> StepResult:
        revision = ctx.resource
        ref = revision.spec.plan

        try:
            plan = ctx.store.get(Plan, "", ref.name)
        except NotFoundError:
            ctx.recorder.event(
                revision,
                EVENT_WARNING,
                "PlanNotFound",
                f"Plan associated to revision: {ref.name} not found",
            )
            return StepResult.proceed("plan not found")

        if plan.has_revision(ref.revision):
            base = deepcopy(plan)
            plan.spec.revisions = [r for r in plan.spec.revisions if r.revision != ref.revision]
            ctx.store.patch(plan, base)

        ctx.recorder.event(
            revision,
            EVENT_NORMAL,
            "RevisionRemoved",
            f"Revision: {ref.revision} removed from plan: {plan.metadata.name}",
        )
        return StepResult.proceed()
