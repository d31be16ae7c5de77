# tests/reconcile/test_unit_filter.py
"""
Testes do correlacionador de execution units (`UnitFilter`).

Invariantes:
    - Predicados combinam por AND
    - Labels ausentes ou malformados nunca casam
    - `latest` escolhe o maior creation_timestamp; empate mantém o primeiro
"""

from datetime import datetime, timedelta, timezone

from terra_converge.model.labels import GENERATION_LABEL, RETRY_LABEL, STAGE_LABEL, Stage, UnitLabels
from terra_converge.model.meta import ObjectMeta
from terra_converge.model.resources import ExecutionUnit
from terra_converge.reconcile.filters import UnitFilter

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _unit(name, *, stage="plan", generation=1, owner="bucket", namespace="apps", uid="uid-1", created=T0, **extra):
    labels = UnitLabels(
        name=owner,
        namespace=namespace,
        owner_uid=uid,
        stage=Stage(stage),
        generation=generation,
    ).to_dict()
    labels.update(extra.pop("labels", {}))
    return ExecutionUnit(
        metadata=ObjectMeta(name=name, namespace="terraform-system", labels=labels, creation_timestamp=created)
    )


def test_predicates_are_combined():
    units = [
        _unit("plan-1"),
        _unit("apply-1", stage="apply"),
        _unit("plan-2", generation=2),
        _unit("other", owner="queue"),
    ]

    matched, found = (
        UnitFilter(units)
        .with_namespace("apps")
        .with_name("bucket")
        .with_stage(Stage.PLAN)
        .with_generation(1)
        .list()
    )

    assert found
    assert [u.metadata.name for u in matched] == ["plan-1"]


def test_no_match_returns_not_found():
    unit, found = UnitFilter([_unit("plan-1")]).with_stage(Stage.DESTROY).latest()
    assert unit is None
    assert found is False


def test_latest_picks_newest_creation_timestamp():
    units = [
        _unit("old", created=T0),
        _unit("new", created=T0 + timedelta(minutes=5)),
        _unit("mid", created=T0 + timedelta(minutes=1)),
    ]

    unit, found = UnitFilter(units).with_stage(Stage.PLAN).latest()

    assert found
    assert unit.metadata.name == "new"


def test_latest_tie_keeps_first_found():
    units = [_unit("first"), _unit("second")]
    unit, _ = UnitFilter(units).latest()
    assert unit.metadata.name == "first"


def test_malformed_labels_never_match():
    bad_generation = _unit("bad-gen", labels={GENERATION_LABEL: "one"})
    bad_stage = _unit("bad-stage", labels={STAGE_LABEL: "deploy"})

    assert UnitFilter([bad_generation]).with_generation(1).list() == ([], False)
    assert UnitFilter([bad_stage]).with_stage(Stage.PLAN).list() == ([], False)


def test_generation_is_compared_as_integer():
    unit = _unit("padded", labels={GENERATION_LABEL: "007"})
    matched, found = UnitFilter([unit]).with_generation(7).list()
    assert found and matched[0].metadata.name == "padded"


def test_empty_label_value_does_not_restrict():
    units = [_unit("plain"), _unit("retried", labels={RETRY_LABEL: "1700000000"})]

    all_units, _ = UnitFilter(units).with_label(RETRY_LABEL, "").list()
    retried, _ = UnitFilter(units).with_label(RETRY_LABEL, "1700000000").list()

    assert len(all_units) == 2
    assert [u.metadata.name for u in retried] == ["retried"]
