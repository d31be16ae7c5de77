# tests/reconcile/test_finalizers.py
"""
Testes do coordenador de finalizers.

Invariantes:
    - add/remove são idempotentes e não escrevem quando nada muda
    - a remoção do último finalizer de um recurso em deleção o apaga do store
    - o Step de remoção é terminal
"""

from terra_converge.core.pipeline.step import is_terminal
from terra_converge.core.pipeline.types import Directive
from terra_converge.model.labels import FINALIZER
from terra_converge.model.resources import Configuration
from terra_converge.reconcile.finalizers import FinalizerCoordinator


def test_add_is_idempotent(store, make_configuration):
    configuration = make_configuration()
    finalizers = FinalizerCoordinator(store)

    assert finalizers.need_to_add(configuration)
    assert finalizers.add(configuration) is True
    token = configuration.metadata.resource_version
    assert finalizers.add(configuration) is False

    stored = store.get(Configuration, "apps", "bucket")
    assert stored.metadata.finalizers == [FINALIZER]
    assert stored.metadata.resource_version == token


def test_deletion_candidate_requires_timestamp_and_finalizer(store, make_configuration):
    finalizers = FinalizerCoordinator(store)
    guarded = make_configuration(name="guarded", finalizers=[FINALIZER])
    plain = make_configuration(name="plain")

    assert not finalizers.is_deletion_candidate(guarded)

    store.delete(guarded)
    guarded = store.get(Configuration, "apps", "guarded")
    assert finalizers.is_deletion_candidate(guarded)
    assert not finalizers.need_to_add(guarded)

    store.delete(plain)
    assert not store.exists(Configuration, "apps", "plain")


def test_remove_releases_resource(store, make_configuration):
    finalizers = FinalizerCoordinator(store)
    configuration = make_configuration(finalizers=[FINALIZER, "other.io/keep"])
    store.delete(configuration)
    configuration = store.get(Configuration, "apps", "bucket")

    assert finalizers.remove(configuration) is True
    stored = store.get(Configuration, "apps", "bucket")
    assert stored.metadata.finalizers == ["other.io/keep"]
    assert finalizers.remove(stored) is False


def test_ensure_present_requeues_only_when_added(store, make_configuration, make_ctx):
    finalizers = FinalizerCoordinator(store)
    ctx = make_ctx(make_configuration())
    step = finalizers.ensure_present()

    first = step.run(ctx, None)
    second = step.run(ctx, None)

    assert first.immediate
    assert second.directive == Directive.CONTINUE


def test_ensure_removed_is_terminal_and_tolerates_missing_resource(store, make_configuration, make_ctx):
    finalizers = FinalizerCoordinator(store)
    configuration = make_configuration(finalizers=[FINALIZER])
    store.delete(configuration)
    ctx = make_ctx(store.get(Configuration, "apps", "bucket"))
    step = finalizers.ensure_removed()

    assert is_terminal(step)
    assert step.run(ctx, None).directive == Directive.CONTINUE
    assert not store.exists(Configuration, "apps", "bucket")

    ctx.resource.metadata.finalizers.append(FINALIZER)
    assert step.run(ctx, None).directive == Directive.CONTINUE
