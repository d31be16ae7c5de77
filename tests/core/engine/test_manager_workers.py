# tests/core/engine/test_manager_workers.py
"""
Testes do Manager: gatilhos do store → fila → pool de workers.

Decisões arquiteturais:
    - O reconciler é um dublê que registra chamadas e sobreposições
    - Esperas usam polling com prazo curto; nenhum teste depende de sleep fixo

Invariantes:
    - Um mesmo recurso nunca é reconciliado por dois workers ao mesmo tempo
    - Recursos distintos são reconciliados em paralelo
    - Escritas apenas de status não disparam novo ciclo

Limites explícitos:
    - Não exercita controllers concretos (ver tests/test_operator.py)
"""

import threading
import time
from copy import deepcopy

import pytest

from terra_converge.core.engine.manager import Manager, trigger_signature
from terra_converge.core.pipeline.types import ReconcileResult
from terra_converge.model.meta import ObjectKey
from terra_converge.model.resources import Configuration, ExecutionUnit


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


class RecordingReconciler:
    kind = Configuration

    def __init__(self, delay=0.0, results=None, fail_times=0):
        self.delay = delay
        self.results = list(results or [])
        self.fail_times = fail_times
        self.lock = threading.Lock()
        self.calls = []
        self.active = {}
        self.overlaps = []
        self.max_parallel = 0

    def reconcile(self, key, token=None):
        with self.lock:
            self.calls.append(key)
            self.active[key] = self.active.get(key, 0) + 1
            if self.active[key] > 1:
                self.overlaps.append(key)
            self.max_parallel = max(self.max_parallel, sum(self.active.values()))
            fail = self.fail_times > 0
            if fail:
                self.fail_times -= 1
            result = self.results.pop(0) if self.results else ReconcileResult()
        try:
            if self.delay:
                time.sleep(self.delay)
            if fail:
                raise RuntimeError("transient")
            return result
        finally:
            with self.lock:
                self.active[key] -= 1

    def count(self, key):
        with self.lock:
            return sum(1 for k in self.calls if k == key)


@pytest.fixture
def manager(store, settings):
    m = Manager(store, settings)
    yield m
    m.stop()


def _touch(store, obj, value):
    base = deepcopy(obj)
    obj.metadata.labels["touch"] = str(value)
    store.patch(obj, base)


def test_register_validates_concurrency_and_names(manager):
    with pytest.raises(ValueError):
        manager.register(RecordingReconciler(), concurrency=0)

    manager.register(RecordingReconciler(), concurrency=1, name="configuration")
    with pytest.raises(ValueError):
        manager.register(RecordingReconciler(), concurrency=1, name="configuration")

    manager.start()
    with pytest.raises(RuntimeError):
        manager.register(RecordingReconciler(), concurrency=1, name="late")


def test_existing_objects_are_synced_on_start(manager, make_configuration):
    make_configuration(name="one")
    make_configuration(name="two")
    reconciler = RecordingReconciler()
    manager.register(reconciler, concurrency=2)

    manager.start()

    assert _wait_for(lambda: len(reconciler.calls) >= 2)
    assert set(reconciler.calls) == {ObjectKey("apps", "one"), ObjectKey("apps", "two")}


def test_same_identity_is_never_reconciled_concurrently(manager, store, make_configuration):
    """
    Verifica a serialização por identidade com 10 workers: gatilhos
    repetidos para o mesmo recurso nunca produzem ciclos sobrepostos,
    enquanto recursos distintos rodam em paralelo.
    """
    reconciler = RecordingReconciler(delay=0.02)
    manager.register(reconciler, concurrency=10)
    manager.start()

    objects = [make_configuration(name=f"cfg-{i}") for i in range(4)]
    for round_ in range(5):
        for obj in objects:
            _touch(store, obj, round_)
        time.sleep(0.005)

    assert _wait_for(lambda: all(reconciler.count(o.key) >= 2 for o in objects))
    manager.stop()

    assert reconciler.overlaps == []
    assert reconciler.max_parallel > 1


def test_status_only_write_does_not_trigger(manager, store, make_configuration):
    reconciler = RecordingReconciler()
    manager.register(reconciler, concurrency=1)
    configuration = make_configuration()
    manager.start()
    assert _wait_for(lambda: reconciler.count(configuration.key) == 1)

    signature = trigger_signature(configuration)
    configuration.status.resource_status = "InSync"
    store.update_status(configuration)
    time.sleep(0.05)

    assert trigger_signature(store.get(Configuration, "apps", "bucket")) == signature
    assert reconciler.count(configuration.key) == 1


def test_requeue_after_schedules_another_cycle(manager, make_configuration):
    reconciler = RecordingReconciler(results=[ReconcileResult(requeue_after=0.02)])
    manager.register(reconciler, concurrency=1)
    configuration = make_configuration()
    manager.start()

    assert _wait_for(lambda: reconciler.count(configuration.key) >= 2)


def test_failed_cycle_is_retried_with_backoff(manager, make_configuration):
    reconciler = RecordingReconciler(fail_times=2)
    reg = manager.register(reconciler, concurrency=1)
    configuration = make_configuration()
    manager.start()

    assert _wait_for(lambda: reconciler.count(configuration.key) >= 3)
    assert _wait_for(lambda: reg.queue.num_requeues(configuration.key) == 0)


def test_watched_kind_is_mapped_to_owner(manager, store, make_configuration, make_unit):
    configuration = make_configuration()
    reconciler = RecordingReconciler()
    manager.register(
        reconciler,
        concurrency=1,
        watches=[(ExecutionUnit, lambda unit: [ObjectKey("apps", "bucket")])],
    )
    manager.start()
    assert _wait_for(lambda: reconciler.count(configuration.key) == 1)

    make_unit(configuration, "plan")

    assert _wait_for(lambda: reconciler.count(configuration.key) == 2)


def test_deleted_object_is_enqueued(manager, store, make_configuration):
    configuration = make_configuration()
    reconciler = RecordingReconciler()
    manager.register(reconciler, concurrency=1)
    manager.start()
    assert _wait_for(lambda: reconciler.count(configuration.key) == 1)

    store.delete(configuration)

    assert _wait_for(lambda: reconciler.count(configuration.key) == 2)
