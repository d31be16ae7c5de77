# src/terra_converge/steps/configuration/delete.py
"""
Steps do caminho de deleção de uma Configuration.

    configuration.captured_state
    → configuration.provider_ready
    → configuration.job_configuration
    → configuration.destroy
    → configuration.artifacts_deleted
    → configuration.units_deleted
    → finalizer.removed   (terminal)

A remoção do finalizer é sempre a última: só depois dela o store pode
apagar o recurso de fato.
"""

from __future__ import annotations

from dataclasses import dataclass

from terra_converge.core.exceptions import NotFoundError
from terra_converge.core.pipeline.context import ReconcileContext
from terra_converge.core.pipeline.types import StepResult
from terra_converge.model.labels import (
    ORPHAN_ANNOTATION,
    Stage,
    config_artifact_name,
    costs_artifact_name,
    plan_artifact_name,
    policy_artifact_name,
    state_artifact_name,
)
from terra_converge.model.meta import ConditionType
from terra_converge.model.resources import RESOURCES_DESTROYING, Artifact, ExecutionUnit
from terra_converge.reconcile.conditions import ConditionTracker, tracker_for
from .ensure import StageStep, owner_labels
from .state import ConfigurationState


@dataclass
class EnsureTerraformDestroy(StageStep):
    """
    Executa o destroy quando existe state Terraform a destruir.

    Pulado quando o recurso está marcado como órfão ou quando o artefato
    `tfstate-default-<uid>` não existe (nada foi aplicado).
    """

    id: str = "configuration.destroy"
    stage: Stage = Stage.DESTROY
    condition: str = ConditionType.READY
    label: str = "destroy"

    def run(self, ctx: ReconcileContext, state: ConfigurationState) -> StepResult:
        resource = ctx.resource
        if resource.metadata.annotations.get(ORPHAN_ANNOTATION) == "true":
            return StepResult.proceed("orphaned, skipping destroy")

        resource.status.resource_status = RESOURCES_DESTROYING

        namespace = ctx.settings.controller.namespace
        try:
            ctx.store.get(Artifact, namespace, state_artifact_name(resource.metadata.uid))
        except NotFoundError:
            return StepResult.proceed("no terraform state, skipping destroy")

        return self.converge(ctx, state, tracker_for(ctx, self.condition))

    def mark_running(self, cond: ConditionTracker) -> None:
        cond.deleting("Terraform destroy is running")


@dataclass
class EnsureConfigArtifactsDeleted:
    id: str = "configuration.artifacts_deleted"

    def run(self, ctx: ReconcileContext, state: ConfigurationState) -> StepResult:
        uid = ctx.resource.metadata.uid
        namespace = ctx.settings.controller.namespace

        for name in (
            config_artifact_name(uid),
            costs_artifact_name(uid),
            plan_artifact_name(uid),
            policy_artifact_name(uid),
            state_artifact_name(uid),
        ):
            try:
                artifact = ctx.store.get(Artifact, namespace, name)
                ctx.store.delete(artifact)
            except NotFoundError:
                continue
        return StepResult.proceed()


@dataclass
class EnsureUnitsDeleted:
    """Remove todas as units do recurso, watchers incluídos, em qualquer namespace."""

    id: str = "configuration.units_deleted"

    def run(self, ctx: ReconcileContext, state: ConfigurationState) -> StepResult:
        units = ctx.store.list(ExecutionUnit, labels=owner_labels(ctx.resource))
        for unit in units:
            try:
                ctx.store.delete(unit)
            except NotFoundError:
                continue

        if units:
            ctx.log(step_id=self.id, level="debug", message=f"deleted {len(units)} units")
        return StepResult.proceed()
