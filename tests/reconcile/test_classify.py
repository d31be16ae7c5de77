# tests/reconcile/test_classify.py
"""
Testes da classificação de execution units.

Decisões arquiteturais:
    - `is_active` preserva a regra histórica permissiva; a leitura estrita
      existe em `is_active_strict` e a divergência é fixada aqui

Invariantes:
    - complete  ⇔ succeeded > 0
    - failed    ⇔ failed > 0 ou condition Failed=True
"""

import pytest

from terra_converge.model.meta import ObjectMeta
from terra_converge.model.resources import ExecutionUnit, UnitCondition, UnitStatus
from terra_converge.reconcile.classify import (
    is_active,
    is_active_strict,
    is_complete,
    is_failed,
)


def _unit(active=0, succeeded=0, failed=0, conditions=None):
    return ExecutionUnit(
        metadata=ObjectMeta(name="u", namespace="terraform-system"),
        status=UnitStatus(active=active, succeeded=succeeded, failed=failed, conditions=list(conditions or [])),
    )


def test_complete_requires_success():
    assert is_complete(_unit(succeeded=1))
    assert not is_complete(_unit(active=1))
    assert not is_complete(_unit(failed=1))


@pytest.mark.parametrize(
    "unit",
    [
        _unit(failed=1),
        _unit(conditions=[UnitCondition(type="Failed", status="True")]),
        _unit(conditions=[UnitCondition(type="Failed", status="true")]),
    ],
)
def test_failed_by_counter_or_condition(unit):
    assert is_failed(unit)


def test_failed_condition_false_is_not_failure():
    assert not is_failed(_unit(conditions=[UnitCondition(type="Failed", status="False")]))
    assert not is_failed(_unit(conditions=[UnitCondition(type="Complete", status="True")]))


def test_running_unit_is_active_in_both_readings():
    unit = _unit(active=1)
    assert is_active(unit)
    assert is_active_strict(unit)


def test_fresh_unit_is_active_in_both_readings():
    unit = _unit()
    assert is_active(unit)
    assert is_active_strict(unit)


def test_literal_is_active_diverges_from_strict_reading():
    """
    Verifica a divergência conhecida entre as duas leituras de "ativa".

    Uma unit já completa (succeeded=1, failed=0, sem conditions) é
    considerada ativa pela regra literal, pois `failed == 0` basta.
    A leitura estrita não a considera ativa. Os workflows testam
    complete/failed antes de active, então a divergência não altera
    o comportamento observável.
    """
    completed = _unit(succeeded=1)
    failed = _unit(failed=1)

    assert is_active(completed) is True
    assert is_active_strict(completed) is False

    assert is_active(failed) is True
    assert is_active_strict(failed) is False


def test_literal_is_active_false_only_with_both_outcomes_and_conditions():
    unit = _unit(succeeded=1, failed=1, conditions=[UnitCondition(type="Complete")])
    assert is_active(unit) is False
