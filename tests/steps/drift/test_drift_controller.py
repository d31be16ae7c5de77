# tests/steps/drift/test_drift_controller.py
"""
Testes do controller de drift.

Cenário principal: Configuration com drift habilitado, plan e apply
concluídos há mais de `drift.interval_seconds`. O controller marca a
annotation de drift com o instante corrente e registra o evento
DriftDetection.

Invariantes:
    - Nenhuma checagem é disparada com plan/apply falho, em andamento
      ou com atividade recente
    - Uma checagem não consumida bloqueia a próxima
    - Todo ciclo agenda resync em `drift.check_interval_seconds`
    - O pipeline de drift não altera a Condition Ready
"""

from copy import deepcopy

import pytest

from terra_converge.core.exceptions import ConflictError
from terra_converge.core.traceability.events import EVENT_NORMAL, EVENT_WARNING
from terra_converge.model.labels import DRIFT_ANNOTATION, FINALIZER
from terra_converge.model.meta import ConditionType, ObjectKey
from terra_converge.model.resources import Configuration
from terra_converge.steps.configuration.controller import ConfigurationController
from terra_converge.steps.drift.controller import DriftController

KEY = ObjectKey(namespace="apps", name="bucket")
QUIET = 3 * 3600 + 1


@pytest.fixture
def configurations(store, settings, recorder, metrics, clock):
    return ConfigurationController(store, settings, recorder, metrics=metrics, clock=clock)


@pytest.fixture
def controller(store, settings, recorder, clock):
    return DriftController(store, settings, recorder, clock=clock)


@pytest.fixture
def converge(store, configurations, make_provider, make_configuration, make_unit):
    make_provider()

    def _converge(name="bucket", *, drift_detection=True, failed=False):
        configuration = make_configuration(name, finalizers=[FINALIZER], drift_detection=drift_detection)
        make_unit(configuration, "plan", succeeded=0 if failed else 1, failed=1 if failed else 0)
        if not failed:
            make_unit(configuration, "apply", succeeded=1)
        configurations.reconcile(ObjectKey(namespace="apps", name=name))
        return store.get(Configuration, "apps", name)

    return _converge


def _annotation(store, name="bucket"):
    return store.get(Configuration, "apps", name).metadata.annotations.get(DRIFT_ANNOTATION)


def test_quiet_converged_configuration_triggers_drift_check(controller, store, recorder, clock, converge):
    """
    Verifica o disparo com plan e apply concluídos há mais de 3h.

    A annotation recebe o timestamp unix corrente, um evento Normal é
    registrado e o controller agenda o próximo resync em 5 minutos.
    """
    converge()
    clock.advance(QUIET)

    result = controller.reconcile(KEY)

    assert result.requeue_after == 300.0
    assert _annotation(store) == str(int(clock().timestamp()))
    events = recorder.find(reason="DriftDetection")
    assert [(e.type, e.message) for e in events] == [
        (EVENT_NORMAL, "Triggered drift detection on configuration")
    ]


def test_recent_activity_defers_drift_check(controller, store, clock, converge):
    converge()
    clock.advance(60)

    result = controller.reconcile(KEY)

    assert result.paused and result.requeue_after == 300.0
    assert _annotation(store) is None


def test_pending_drift_check_is_not_retriggered(controller, store, clock, converge):
    converge()
    clock.advance(QUIET)
    controller.reconcile(KEY)
    first = _annotation(store)

    clock.advance(QUIET)
    result = controller.reconcile(KEY)

    assert result.paused
    assert _annotation(store) == first


def test_consumed_drift_check_allows_next_one(controller, store, clock, converge):
    converge()
    clock.advance(QUIET)
    controller.reconcile(KEY)

    stored = store.get(Configuration, "apps", "bucket")
    stored.status.drift_timestamp = stored.metadata.annotations[DRIFT_ANNOTATION]
    store.update_status(stored)

    clock.advance(QUIET)
    controller.reconcile(KEY)

    assert _annotation(store) == str(int(clock().timestamp()))


def test_disabled_detection_only_schedules_resync(controller, store, recorder, clock, converge):
    converge(drift_detection=False)
    clock.advance(QUIET)

    result = controller.reconcile(KEY)

    assert result.requeue_after == 300.0
    assert _annotation(store) is None
    assert recorder.find(reason="DriftDetection") == []


def test_unreconciled_configuration_is_skipped(controller, store, clock, make_configuration):
    make_configuration(drift_detection=True)
    clock.advance(QUIET)

    result = controller.reconcile(KEY)

    assert result.requeue_after == 300.0
    assert _annotation(store) is None


def test_failed_plan_blocks_drift_check(controller, store, clock, converge):
    converge(failed=True)
    clock.advance(QUIET)

    result = controller.reconcile(KEY)

    assert result.paused
    assert _annotation(store) is None


def test_running_checks_over_threshold_defer_new_ones(controller, store, clock, converge):
    converge("bucket")
    logs = converge("logs")
    base = deepcopy(logs)
    logs.metadata.annotations[DRIFT_ANNOTATION] = "1772456400"
    store.patch(logs, base)
    clock.advance(QUIET)

    result = controller.reconcile(KEY)

    assert result.paused
    assert _annotation(store) is None


def test_annotation_conflict_records_warning_and_requeues(controller, store, recorder, clock, converge):
    converge()
    clock.advance(QUIET)
    store.fail_next("patch", ConflictError(message="stale"))

    result = controller.reconcile(KEY)

    assert result.requeue is True
    assert _annotation(store) is None
    events = recorder.find(reason="DriftDetection")
    assert [(e.type, e.message) for e in events] == [
        (EVENT_WARNING, "Failed to patch configuration with drift detection annotation")
    ]


def test_drift_trigger_does_not_touch_ready(controller, store, clock, converge):
    before = converge().status.get_condition(ConditionType.READY)
    clock.advance(QUIET)

    controller.reconcile(KEY)

    after = store.get(Configuration, "apps", "bucket").status.get_condition(ConditionType.READY)
    assert after == before


def test_missing_configuration_returns_empty_result(controller):
    assert controller.reconcile(ObjectKey(namespace="apps", name="ghost")).is_empty
