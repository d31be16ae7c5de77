# tests/conftest.py
"""
Fixtures compartilhados para testes do terra-converge.

Este módulo fornece a infraestrutura mínima para exercitar o engine de
reconciliação sem cluster real:
- relógio fixo e avançável (idade de revisions, timestamps de Conditions)
- store em memória com semântica de tokens e finalizers
- recorder de eventos e sink de métricas em memória
- settings determinísticos
- factories de Configuration, Provider, ExecutionUnit e Revision

Decisões arquiteturais:
    - Factories persistem no store e devolvem a cópia lida de volta
      (uid, geração e token já atribuídos)
    - Units são criadas no namespace de controle com os labels de
      correlação canônicos, como o engine as criaria
    - Nenhuma fixture inicia threads; testes de manager controlam
      explicitamente start/stop

Invariantes:
    - Nenhuma fixture realiza I/O de filesystem
    - Dados retornados são determinísticos e isolados por teste

Limites explícitos:
    - Não substitui testes de integração com um store real
    - Não contém lógica de domínio
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from terra_converge.core.config.settings import Settings
from terra_converge.core.pipeline.context import ReconcileContext
from terra_converge.core.traceability.events import InMemoryEventRecorder
from terra_converge.core.traceability.metrics import InMemoryMetrics
from terra_converge.model.labels import Stage, UnitLabels
from terra_converge.model.meta import (
    CommonStatus,
    Condition,
    ConditionReason,
    ConditionStatus,
    ConditionType,
    ObjectMeta,
)
from terra_converge.model.resources import (
    CloudResource,
    CloudResourceSpec,
    Configuration,
    ConfigurationSpec,
    ExecutionUnit,
    PlanRef,
    Provider,
    ProviderRef,
    ProviderSpec,
    Revision,
    RevisionSpec,
    UnitStatus,
)
from terra_converge.model.labels import (
    CLOUD_RESOURCE_PLAN_LABEL,
    CLOUD_RESOURCE_REVISION_LABEL,
    REVISION_PLAN_LABEL,
    REVISION_VERSION_LABEL,
)
from terra_converge.store.memory import InMemoryStore

FIXED_NOW = datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Relógio injetável: retorna `now` e avança apenas quando pedido."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


# =====================================================
# Colaboradores
# =====================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryStore(clock=clock)


@pytest.fixture
def recorder(clock):
    return InMemoryEventRecorder(clock=clock)


@pytest.fixture
def metrics():
    return InMemoryMetrics()


@pytest.fixture
def settings():
    """Settings padrão com namespace de controle `terraform-system` e watchers ligados."""
    base = Settings()
    return replace(
        base,
        controller=replace(
            base.controller,
            executor_image="executor:test",
            terraform_image="terraform:test",
            policy_image="checkov:test",
        ),
    )


@pytest.fixture
def make_ctx(store, recorder, settings, metrics, clock):
    def _make(resource, **overrides):
        values = dict(
            run_id="run-test",
            resource=resource,
            store=store,
            recorder=recorder,
            settings=settings,
            metrics=metrics,
            clock=clock,
        )
        values.update(overrides)
        return ReconcileContext(**values)

    return _make


# =====================================================
# Factories de recursos
# =====================================================

@pytest.fixture
def make_provider(store, clock):
    def _make(name="aws", *, ready=True, selector=None):
        status = CommonStatus(
            conditions=[
                Condition(
                    type=ConditionType.READY,
                    status=ConditionStatus.TRUE if ready else ConditionStatus.FALSE,
                    reason=(ConditionReason.READY if ready else ConditionReason.IN_PROGRESS).value,
                    last_transition_time=clock(),
                )
            ]
        )
        provider = Provider(
            metadata=ObjectMeta(name=name),
            spec=ProviderSpec(provider="aws", selector=selector),
            status=status,
        )
        store.create(provider)
        return store.get(Provider, "", name)

    return _make


@pytest.fixture
def make_configuration(store):
    def _make(
        name="bucket",
        namespace="apps",
        *,
        provider="aws",
        auto_approve=True,
        annotations=None,
        labels=None,
        finalizers=None,
        variables=None,
        drift_detection=False,
    ):
        configuration = Configuration(
            metadata=ObjectMeta(
                name=name,
                namespace=namespace,
                labels=dict(labels or {}),
                annotations=dict(annotations or {}),
                finalizers=list(finalizers or []),
            ),
            spec=ConfigurationSpec(
                module="https://github.com/terraform-aws-modules/terraform-aws-s3-bucket.git?ref=v3.1.0",
                provider_ref=ProviderRef(name=provider) if provider else None,
                enable_auto_approval=auto_approve,
                enable_drift_detection=drift_detection,
                variables=dict(variables or {"bucket": name}),
            ),
        )
        store.create(configuration)
        return store.get(Configuration, namespace, name)

    return _make


@pytest.fixture
def make_unit(store, settings, clock):
    def _make(
        configuration,
        stage,
        *,
        generation=None,
        succeeded=0,
        failed=0,
        active=0,
        name=None,
        created=None,
        extra_labels=None,
    ):
        meta = configuration.metadata
        labels = UnitLabels(
            name=meta.name,
            namespace=meta.namespace,
            owner_uid=meta.uid,
            stage=Stage(stage),
            generation=meta.generation if generation is None else generation,
        ).to_dict()
        labels.update(extra_labels or {})
        unit = ExecutionUnit(
            metadata=ObjectMeta(
                name=name or f"{meta.name}-{stage}-{len(store.list(ExecutionUnit))}",
                namespace=settings.controller.namespace,
                labels=labels,
                creation_timestamp=created or clock(),
            ),
            status=UnitStatus(active=active, succeeded=succeeded, failed=failed),
        )
        store.create(unit)
        return store.get(ExecutionUnit, unit.metadata.namespace, unit.metadata.name)

    return _make


@pytest.fixture
def make_revision(store, clock):
    def _make(name, plan, version, *, age_seconds=0.0, finalizers=None):
        revision = Revision(
            metadata=ObjectMeta(
                name=name,
                labels={REVISION_PLAN_LABEL: plan, REVISION_VERSION_LABEL: version},
                creation_timestamp=clock() - timedelta(seconds=age_seconds),
                finalizers=list(finalizers or []),
            ),
            spec=RevisionSpec(plan=PlanRef(name=plan, revision=version)),
        )
        store.create(revision)
        return store.get(Revision, "", name)

    return _make


@pytest.fixture
def make_cloud_resource(store):
    def _make(name, plan, version, namespace="apps"):
        resource = CloudResource(
            metadata=ObjectMeta(
                name=name,
                namespace=namespace,
                labels={CLOUD_RESOURCE_PLAN_LABEL: plan, CLOUD_RESOURCE_REVISION_LABEL: version},
            ),
            spec=CloudResourceSpec(plan=PlanRef(name=plan, revision=version)),
        )
        store.create(resource)
        return store.get(CloudResource, namespace, name)

    return _make
