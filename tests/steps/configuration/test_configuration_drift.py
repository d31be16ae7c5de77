# tests/steps/configuration/test_configuration_drift.py
"""
Testes da checagem de drift no ciclo de Configuration.

Cobre:
- annotation de drift refaz o plan com o label de drift
- plan sem mudanças: nenhum apply novo, recurso sincronizado
- plan com mudanças: apply correlacionado ao marcador de drift
- detecção desligada ignora a annotation
- saída de plan inválida falha o ciclo

Decisões arquiteturais:
    - A saída `terraform show -json` é simulada criando o artefato
      `tfplan-json-<uid>` diretamente no store
"""

import json
from copy import deepcopy

import pytest

from terra_converge.model.labels import DRIFT_ANNOTATION, DRIFT_LABEL, FINALIZER, plan_artifact_name
from terra_converge.model.meta import ConditionReason, ConditionType, ObjectKey, ObjectMeta
from terra_converge.model.resources import RESOURCES_IN_SYNC, RESOURCES_OUT_OF_SYNC, Artifact
from terra_converge.steps.configuration.ensure import PLAN_JSON_KEY, plan_needs_apply

KEY = ObjectKey(namespace="apps", name="bucket")
MARKER = "1772456400"


def _condition(resource, type):
    return resource.status.get_condition(type)


def _mark_drift(store, obj, marker=MARKER):
    base = deepcopy(obj)
    obj.metadata.annotations[DRIFT_ANNOTATION] = marker
    store.patch(obj, base)


def _succeed(store, unit):
    unit.status.active = 0
    unit.status.succeeded = 1
    store.update_status(unit)


def _plan_output(store, settings, configuration, *actions):
    changes = [{"address": f"aws_s3_bucket.b{i}", "change": {"actions": a}} for i, a in enumerate(actions)]
    store.create(
        Artifact(
            metadata=ObjectMeta(
                name=plan_artifact_name(configuration.metadata.uid),
                namespace=settings.controller.namespace,
            ),
            data={PLAN_JSON_KEY: json.dumps({"resource_changes": changes})},
        )
    )


@pytest.fixture
def converged(controller, make_provider, make_configuration, make_unit, current):
    """Configuration com drift habilitado, plan e apply concluídos."""
    make_provider()
    configuration = make_configuration(finalizers=[FINALIZER], drift_detection=True)
    make_unit(configuration, "plan", succeeded=1)
    make_unit(configuration, "apply", succeeded=1)
    controller.reconcile(KEY)
    return current()


def _drift_units(units_of, stage, marker=MARKER):
    return [u for u in units_of(stage) if u.metadata.labels.get(DRIFT_LABEL) == marker]


def test_drift_annotation_replans_with_drift_label(controller, store, converged, units_of, current):
    _mark_drift(store, converged)

    result = controller.reconcile(KEY)

    assert result.requeue_after == 5.0
    assert len(_drift_units(units_of, "plan")) == 1
    assert _condition(current(), ConditionType.TERRAFORM_PLAN).reason == ConditionReason.IN_PROGRESS.value
    assert _drift_units(units_of, "apply") == []


def test_drift_without_changes_skips_apply(controller, store, settings, converged, units_of, current):
    """
    Verifica o caminho sem drift real.

    O plan refeito conclui com apenas ações no-op/read: nenhuma unit de
    apply nova é criada, o marcador é registrado em `status.drift_timestamp`
    e o recurso permanece sincronizado e Ready, inclusive nos ciclos
    seguintes.
    """
    _mark_drift(store, converged)
    controller.reconcile(KEY)
    _succeed(store, _drift_units(units_of, "plan")[0])
    _plan_output(store, settings, converged, ["no-op"], ["read"])

    result = controller.reconcile(KEY)

    assert result.is_empty and not result.paused
    stored = current()
    assert stored.status.drift_timestamp == MARKER
    assert stored.status.resource_status == RESOURCES_IN_SYNC
    assert _condition(stored, ConditionType.TERRAFORM_APPLY).message == "Terraform plan has no changes to apply"
    assert _condition(stored, ConditionType.READY).is_true()
    assert len(units_of("apply")) == 1

    assert controller.reconcile(KEY).is_empty
    assert len(units_of()) == 3


def test_drift_with_changes_creates_correlated_apply(controller, store, settings, converged, units_of, current):
    _mark_drift(store, converged)
    controller.reconcile(KEY)
    _succeed(store, _drift_units(units_of, "plan")[0])
    _plan_output(store, settings, converged, ["no-op"], ["update"])

    result = controller.reconcile(KEY)

    assert result.requeue_after == 5.0
    assert len(_drift_units(units_of, "apply")) == 1
    stored = current()
    assert stored.status.drift_timestamp == MARKER
    assert stored.status.resource_status == RESOURCES_OUT_OF_SYNC
    assert _condition(stored, ConditionType.TERRAFORM_APPLY).reason == ConditionReason.IN_PROGRESS.value


def test_drift_annotation_ignored_when_detection_disabled(
    controller, store, make_provider, make_configuration, make_unit, units_of, current
):
    make_provider()
    configuration = make_configuration(finalizers=[FINALIZER])
    make_unit(configuration, "plan", succeeded=1)
    make_unit(configuration, "apply", succeeded=1)
    controller.reconcile(KEY)

    _mark_drift(store, current())
    result = controller.reconcile(KEY)

    assert result.is_empty
    assert len(units_of()) == 2
    assert current().status.drift_timestamp == ""


def test_malformed_plan_output_fails_the_cycle(controller, store, settings, converged, units_of, current):
    _mark_drift(store, converged)
    controller.reconcile(KEY)
    _succeed(store, _drift_units(units_of, "plan")[0])
    store.create(
        Artifact(
            metadata=ObjectMeta(
                name=plan_artifact_name(converged.metadata.uid),
                namespace=settings.controller.namespace,
            ),
            data={PLAN_JSON_KEY: "not json"},
        )
    )

    with pytest.raises(ValueError):
        controller.reconcile(KEY)

    ready = _condition(current(), ConditionType.READY)
    assert ready.reason == ConditionReason.ERROR.value
    assert ready.message == "Failed to decode the terraform plan"
    assert _drift_units(units_of, "apply") == []


# =====================================================
# plan_needs_apply
# =====================================================

@pytest.mark.parametrize(
    "document, expected",
    [
        ({}, False),
        ({"resource_changes": []}, False),
        ({"resource_changes": [{"change": {"actions": ["no-op"]}}]}, False),
        ({"resource_changes": [{"change": {"actions": ["read"]}}]}, False),
        ({"resource_changes": [{"change": {"actions": ["create"]}}]}, True),
        ({"resource_changes": [{"change": {"actions": ["delete", "create"]}}]}, True),
    ],
)
def test_plan_needs_apply_inspects_resource_change_actions(document, expected):
    assert plan_needs_apply(json.dumps(document)) is expected


def test_plan_needs_apply_rejects_non_object_output():
    with pytest.raises(ValueError):
        plan_needs_apply("[1, 2]")
