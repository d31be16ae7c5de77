# src/terra_converge/steps/configuration/ensure.py
"""
Steps do caminho de provisionamento de uma Configuration.

Ordem canônica (ver `controller.py`):

    finalizer.present
    → configuration.reconcile_enabled
    → configuration.captured_state
    → configuration.no_previous_generation
    → configuration.provider_ready
    → configuration.job_configuration
    → configuration.plan
    → configuration.policy
    → configuration.drift_detection
    → configuration.apply

Cada stage (plan, apply) segue o mesmo protocolo:
    - procura uma unit existente para (stage, geração, retry, drift)
    - sem unit: gate opcional de aprovação; senão cria watcher + unit,
      marca InProgress e pede requeue curto
    - com unit: completa → Success e segue; falha → Failed e pausa;
      ativa → InProgress e requeue moderado

O plan é pulado quando já está completo para a geração, exceto sob
retry ou drift. O apply é correlacionado aos mesmos marcadores do plan:
um plan refeito por retry ou drift leva a um novo apply, desde que o
plan concluído tenha mudanças (`configuration.drift_detection`).

Dependências não prontas são Conditions (Warning/ActionRequired) com
requeue em intervalo fixo, nunca erros.
"""

from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import yaml

from terra_converge.core.config.hashing import compute_config_hash
from terra_converge.core.exceptions import AlreadyExistsError, InvalidAnnotationError, NotFoundError
from terra_converge.core.pipeline.context import ReconcileContext
from terra_converge.core.pipeline.types import StepResult
from terra_converge.model.labels import (
    APPLY_ANNOTATION,
    CONFIG_HASH_ANNOTATION,
    DRIFT_ANNOTATION,
    DRIFT_LABEL,
    OWNER_NAME_LABEL,
    OWNER_NAMESPACE_LABEL,
    OWNER_UID_LABEL,
    RECONCILE_ANNOTATION,
    RETRY_ANNOTATION,
    RETRY_LABEL,
    WATCHER_LABEL,
    Stage,
    config_artifact_name,
    plan_artifact_name,
    policy_artifact_name,
)
from terra_converge.model.meta import ConditionType, ObjectMeta
from terra_converge.model.resources import (
    RESOURCES_IN_SYNC,
    RESOURCES_OUT_OF_SYNC,
    Artifact,
    CheckovConstraint,
    Configuration,
    ExecutionUnit,
    Policy,
    Provider,
)
from terra_converge.reconcile.classify import is_active, is_complete, is_failed
from terra_converge.reconcile.conditions import ConditionTracker, tracker_for
from terra_converge.reconcile.filters import UnitFilter
from terra_converge.render.units import RenderOptions, UnitRenderer, correlation_labels
from .state import ConfigurationState

# Chave do artefato tfplan-json-<uid> com a saída `terraform show -json`
PLAN_JSON_KEY = "plan.json"


def owner_labels(resource: Configuration) -> Dict[str, str]:
    return {
        OWNER_NAME_LABEL: resource.metadata.name,
        OWNER_NAMESPACE_LABEL: resource.metadata.namespace,
    }


def retry_marker(resource: Configuration) -> Optional[datetime]:
    """Instante da annotation de retry (unix seconds) ou None se ausente."""
    value = resource.metadata.annotations.get(RETRY_ANNOTATION)
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        raise InvalidAnnotationError(
            message=f"Annotation de retry inválida: {value!r}",
            details={"annotation": RETRY_ANNOTATION, "value": value},
            hint="Use um timestamp unix em segundos",
        ) from None


def drift_marker(resource: Configuration) -> str:
    """Valor da annotation de drift; vazio quando a detecção está desligada."""
    if not resource.spec.enable_drift_detection:
        return ""
    return resource.metadata.annotations.get(DRIFT_ANNOTATION, "")


def plan_needs_apply(raw: str) -> bool:
    """
    Indica se a saída JSON de um plan Terraform contém mudanças.

    Considera `resource_changes[].change.actions`; ações `no-op` e `read`
    não exigem apply. Saída que não é um objeto JSON levanta ValueError.
    """
    document = json.loads(raw or "{}")
    if not isinstance(document, dict):
        raise ValueError("terraform plan output must be a JSON object")

    for change in document.get("resource_changes") or []:
        actions = (change.get("change") or {}).get("actions") or []
        if any(action not in ("no-op", "read") for action in actions):
            return True
    return False


def find_matching_policy(policies: List[Policy], resource: Configuration) -> Optional[CheckovConstraint]:
    for policy in sorted(policies, key=lambda p: p.metadata.name):
        constraint = policy.spec.checkov
        if constraint is None:
            continue
        if constraint.selector is None or constraint.selector.matches(
            resource.metadata.namespace, resource.metadata.labels
        ):
            return constraint
    return None


# ---------------------------------------------------------------------------
# Pré-condições
# ---------------------------------------------------------------------------

@dataclass
class EnsureReconcileEnabled:
    id: str = "configuration.reconcile_enabled"

    def run(self, ctx: ReconcileContext, state: ConfigurationState) -> StepResult:
        if ctx.resource.metadata.annotations.get(RECONCILE_ANNOTATION) != "false":
            return StepResult.proceed()

        tracker_for(ctx, ConditionType.READY).warning("Reconciliation has been disabled")
        return StepResult.pause("reconciliation disabled by annotation")


@dataclass
class EnsureCapturedState:
    """Captura units do recurso no namespace de controle e as policies existentes."""

    id: str = "configuration.captured_state"

    def run(self, ctx: ReconcileContext, state: ConfigurationState) -> StepResult:
        units = ctx.store.list(
            ExecutionUnit,
            namespace=ctx.settings.controller.namespace,
            labels=owner_labels(ctx.resource),
        )
        state.units = [u for u in units if u.metadata.labels.get(WATCHER_LABEL) != "true"]
        state.policies = ctx.store.list(Policy)
        return StepResult.proceed(f"captured {len(state.units)} units")


@dataclass
class EnsureNoPreviousGeneration:
    # Hook sem efeito: a comparação de units entre gerações nunca foi
    # habilitada. Units de gerações anteriores continuam rodando até o fim
    # e a correlação por geração garante que não sejam confundidas com as
    # da geração corrente.
    id: str = "configuration.no_previous_generation"

    def run(self, ctx: ReconcileContext, state: ConfigurationState) -> StepResult:
        return StepResult.proceed()


@dataclass
class EnsureProviderReady:
    id: str = "configuration.provider_ready"

    def run(self, ctx: ReconcileContext, state: ConfigurationState) -> StepResult:
        resource = ctx.resource
        cond = tracker_for(ctx, ConditionType.PROVIDER_READY)
        requeue = ctx.settings.requeue

        ref = resource.spec.provider_ref
        if ref is None or not ref.name:
            cond.action_required("Configuration does not reference a provider")
            return StepResult.pause("missing provider reference")

        try:
            provider = ctx.store.get(Provider, "", ref.name)
        except NotFoundError:
            cond.action_required(f"Provider referenced ({ref.name}) does not exist")
            return StepResult.requeue(requeue.provider_missing_seconds, "provider not found")

        if not provider.is_ready():
            cond.warning(f"Provider ({ref.name}) is not ready")
            return StepResult.requeue(requeue.provider_not_ready_seconds, "provider not ready")

        selector = provider.spec.selector
        if selector is not None and not selector.matches(resource.metadata.namespace, resource.metadata.labels):
            cond.action_required("Configuration has been denied by the provider policy")
            return StepResult.pause("provider selector does not match")

        cond.success("Provider ready")
        state.provider = provider
        return StepResult.proceed()


# ---------------------------------------------------------------------------
# Configuração de execução
# ---------------------------------------------------------------------------

def _backend(namespace: str, uid: str) -> str:
    return (
        "terraform {\n"
        '  backend "kubernetes" {\n'
        "    in_cluster_config = true\n"
        f'    namespace         = "{namespace}"\n'
        f'    secret_suffix     = "{uid}"\n'
        "  }\n"
        "}\n"
    )


def render_configuration(
    resource: Configuration,
    provider: Optional[Provider],
    constraint: Optional[CheckovConstraint],
    namespace: str,
) -> Dict[str, str]:
    data = {
        "backend.tf": _backend(namespace, resource.metadata.uid),
        "module": resource.spec.module,
        "variables.tfvars.json": json.dumps(resource.spec.variables, sort_keys=True),
    }
    if provider is not None:
        data["provider.tf.json"] = json.dumps(
            {"provider": {provider.spec.provider: provider.spec.configuration}},
            sort_keys=True,
        )
    if constraint is not None:
        data["checkov.yaml"] = yaml.safe_dump(
            {"check": list(constraint.checks), "skip-check": list(constraint.skip_checks)},
            sort_keys=True,
        )
    return data


@dataclass
class EnsureJobConfiguration:
    """Cria ou atualiza (se mudou) o artefato `config-<uid>` no namespace de controle."""

    id: str = "configuration.job_configuration"

    def run(self, ctx: ReconcileContext, state: ConfigurationState) -> StepResult:
        resource = ctx.resource
        namespace = ctx.settings.controller.namespace

        state.policy_constraint = find_matching_policy(state.policies, resource)
        data = render_configuration(resource, state.provider, state.policy_constraint, namespace)
        fingerprint = compute_config_hash(data)

        name = config_artifact_name(resource.metadata.uid)
        try:
            current = ctx.store.get(Artifact, namespace, name)
        except NotFoundError:
            labels = owner_labels(resource)
            labels[OWNER_UID_LABEL] = resource.metadata.uid
            ctx.store.create(
                Artifact(
                    metadata=ObjectMeta(
                        name=name,
                        namespace=namespace,
                        labels=labels,
                        annotations={CONFIG_HASH_ANNOTATION: fingerprint},
                    ),
                    data=data,
                )
            )
            return StepResult.proceed("configuration artifact created")

        if current.metadata.annotations.get(CONFIG_HASH_ANNOTATION) == fingerprint:
            return StepResult.proceed("configuration artifact unchanged")

        base = deepcopy(current)
        current.data = data
        current.metadata.annotations[CONFIG_HASH_ANNOTATION] = fingerprint
        ctx.store.patch(current, base)
        return StepResult.proceed("configuration artifact updated")


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------

@dataclass
class StageStep:
    """
    Protocolo comum de um stage baseado em execution unit.

    Subclasses definem `stage`, `condition`, as mensagens e, se necessário,
    `gate` (antes de criar a unit) e `completed` (ao observar sucesso).
    """

    renderer: UnitRenderer
    id: str = ""
    stage: Stage = Stage.PLAN
    condition: str = ""
    label: str = ""

    def lookup(self, ctx: ReconcileContext, state: ConfigurationState) -> Tuple[Optional[ExecutionUnit], bool]:
        meta = ctx.resource.metadata
        return (
            UnitFilter(state.units)
            .with_namespace(meta.namespace)
            .with_name(meta.name)
            .with_owner_uid(meta.uid)
            .with_stage(self.stage)
            .with_generation(meta.generation)
            .with_label(RETRY_LABEL, state.retry)
            .with_label(DRIFT_LABEL, state.drift)
            .latest()
        )

    def create_unit(self, ctx: ReconcileContext, state: ConfigurationState) -> ExecutionUnit:
        resource = ctx.resource
        extra: Dict[str, str] = {}
        if state.retry:
            extra[RETRY_LABEL] = state.retry
        if state.drift:
            extra[DRIFT_LABEL] = state.drift
        options = RenderOptions.from_settings(
            ctx.settings,
            enable_policy=state.policy_constraint is not None,
            extra_labels=extra,
        )

        if ctx.settings.controller.enable_watchers:
            watcher = self.renderer.render_watcher(resource, self.stage, options)
            try:
                ctx.store.create(watcher)
            except AlreadyExistsError:
                pass

        unit = self.renderer.render(resource, state.provider, self.stage, options)
        unit.metadata.labels.update(correlation_labels(resource, self.stage))
        unit.metadata.labels.update(extra)
        ctx.store.create(unit)
        state.units.append(unit)
        return unit

    def gate(self, ctx: ReconcileContext, state: ConfigurationState, cond: ConditionTracker) -> Optional[StepResult]:
        return None

    def completed(self, ctx: ReconcileContext, state: ConfigurationState, unit: ExecutionUnit) -> None:
        return None

    def mark_running(self, cond: ConditionTracker) -> None:
        cond.in_progress(f"Terraform {self.label} in progress")

    def converge(self, ctx: ReconcileContext, state: ConfigurationState, cond: ConditionTracker) -> StepResult:
        requeue = ctx.settings.requeue
        unit, found = self.lookup(ctx, state)

        if not found:
            gated = self.gate(ctx, state, cond)
            if gated is not None:
                return gated

            unit = self.create_unit(ctx, state)
            ctx.log(step_id=self.id, level="info", message=f"created {self.stage.value} unit", unit=unit.metadata.name)
            self.mark_running(cond)
            return StepResult.requeue(requeue.in_progress_seconds, f"{self.stage.value} unit created")

        if is_complete(unit):
            self.completed(ctx, state, unit)
            cond.success(f"Terraform {self.label} is complete")
            return StepResult.proceed(f"{self.stage.value} complete")

        if is_failed(unit):
            cond.failed(None, f"Terraform {self.label} has failed")
            return StepResult.pause(f"{self.stage.value} failed")

        if is_active(unit):
            self.mark_running(cond)
            return StepResult.requeue(requeue.unit_active_seconds, f"{self.stage.value} running")

        return StepResult.pause(f"{self.stage.value} unit in unknown state")


@dataclass
class EnsureTerraformPlan(StageStep):
    id: str = "configuration.plan"
    stage: Stage = Stage.PLAN
    condition: str = ConditionType.TERRAFORM_PLAN
    label: str = "plan"

    def run(self, ctx: ReconcileContext, state: ConfigurationState) -> StepResult:
        resource = ctx.resource
        cond = tracker_for(ctx, self.condition)
        generation = resource.metadata.generation

        try:
            marker = retry_marker(resource)
        except InvalidAnnotationError as e:
            cond.failed(e, "Retry annotation is invalid, expected a unix timestamp")
            return StepResult.pause("invalid retry annotation")

        if marker is not None:
            state.retry = resource.metadata.annotations[RETRY_ANNOTATION]
            last = resource.status.last_reconcile
            state.retrying = last is not None and marker > last.time
        state.drift = drift_marker(resource)

        if state.retrying:
            ctx.log(step_id=self.id, level="info", message="retrying the configuration", retry=state.retry)
        elif cond.is_failed(generation):
            return StepResult.pause("plan failed for generation")
        elif cond.is_complete(generation) and not state.drift:
            unit, found = self.lookup(ctx, state)
            state.plan_unit = unit if found else None
            return StepResult.proceed("plan already complete for generation")

        return self.converge(ctx, state, cond)

    def completed(self, ctx: ReconcileContext, state: ConfigurationState, unit: ExecutionUnit) -> None:
        state.plan_unit = unit


@dataclass
class EnsurePolicyStatus:
    """
    Avalia o relatório de segurança produzido pelo plan, quando há restrição.

    Reavaliado a cada ciclo: um plan refeito (retry, drift) sobrescreve o
    relatório e o apply seguinte depende do resultado novo.
    """

    id: str = "configuration.policy"

    def run(self, ctx: ReconcileContext, state: ConfigurationState) -> StepResult:
        resource = ctx.resource
        cond = tracker_for(ctx, ConditionType.SECURITY_POLICY)

        if state.policy_constraint is None:
            cond.success("Security policy is not configured")
            return StepResult.proceed()

        namespace = ctx.settings.controller.namespace
        try:
            report = ctx.store.get(Artifact, namespace, policy_artifact_name(resource.metadata.uid))
        except NotFoundError:
            cond.warning("Security report is not available")
            return StepResult.requeue(ctx.settings.requeue.policy_report_missing_seconds, "policy report missing")

        summary = json.loads(report.data.get("results_json") or "{}").get("summary", {})
        failed = int(summary.get("failed", 0))
        if failed > 0:
            cond.action_required(
                f"Configuration has failed security policy, refusing to continue ({failed} failed checks)"
            )
            return StepResult.pause("security policy failed")

        cond.success("Security policy passed")
        return StepResult.proceed()


@dataclass
class EnsureDriftDetection:
    """
    Decide se o plan concluído exige apply.

    Registra em `status.drift_timestamp` o marcador de drift consumido,
    o que sinaliza ao controller de drift que a checagem terminou. Sem
    o artefato `tfplan-json-<uid>` as mudanças são desconhecidas e o
    apply segue normalmente.
    """

    id: str = "configuration.drift_detection"

    def run(self, ctx: ReconcileContext, state: ConfigurationState) -> StepResult:
        resource = ctx.resource
        if state.drift and state.drift != resource.status.drift_timestamp:
            resource.status.drift_timestamp = state.drift

        namespace = ctx.settings.controller.namespace
        try:
            output = ctx.store.get(Artifact, namespace, plan_artifact_name(resource.metadata.uid))
        except NotFoundError:
            state.has_changes = True
            return StepResult.proceed("plan output not available")

        try:
            state.has_changes = plan_needs_apply(output.data.get(PLAN_JSON_KEY, ""))
        except ValueError as e:
            tracker_for(ctx, ConditionType.READY).failed(e, "Failed to decode the terraform plan")
            return StepResult.stop(e)

        if state.drift and state.has_changes:
            ctx.log(step_id=self.id, level="info", message="drift detected", drift=state.drift)
        return StepResult.proceed()


@dataclass
class EnsureTerraformApply(StageStep):
    id: str = "configuration.apply"
    stage: Stage = Stage.APPLY
    condition: str = ConditionType.TERRAFORM_APPLY
    label: str = "apply"

    def run(self, ctx: ReconcileContext, state: ConfigurationState) -> StepResult:
        resource = ctx.resource
        cond = tracker_for(ctx, self.condition)

        _, found = self.lookup(ctx, state)
        if not found:
            # units já coletadas: o estado das Conditions é a única referência
            if state.plan_unit is None and cond.is_complete(resource.metadata.generation):
                return StepResult.proceed("apply already complete for generation")

            if not state.has_changes:
                resource.status.resource_status = RESOURCES_IN_SYNC
                cond.success("Terraform plan has no changes to apply")
                return StepResult.proceed("nothing to apply")

            resource.status.resource_status = RESOURCES_OUT_OF_SYNC

        return self.converge(ctx, state, cond)

    def gate(self, ctx: ReconcileContext, state: ConfigurationState, cond: ConditionTracker) -> Optional[StepResult]:
        resource = ctx.resource
        if not resource.needs_approval():
            return None

        if APPLY_ANNOTATION not in resource.metadata.annotations:
            base = deepcopy(resource)
            resource.metadata.annotations[APPLY_ANNOTATION] = "false"
            ctx.store.patch(resource, base)

        cond.action_required("Waiting for terraform apply annotation to be set to true")
        tracker_for(ctx, ConditionType.READY).in_progress("Waiting for changes to be approved")
        return StepResult.pause("waiting for approval")

    def completed(self, ctx: ReconcileContext, state: ConfigurationState, unit: ExecutionUnit) -> None:
        ctx.resource.status.resource_status = RESOURCES_IN_SYNC
