# src/terra_converge/reconcile/classify.py
"""
Classificação de execution units a partir do snapshot de status.

Funções puras, sem acesso ao store.

`is_active` reproduz literalmente a regra histórica, que é permissiva:
qualquer unit sem sucesso OU sem falha é considerada ativa, inclusive
units já completas ou já falhas. Os workflows consultam `is_complete` e
`is_failed` antes de `is_active`, o que torna a sobreposição inofensiva
na prática. `is_active_strict` é a leitura estrita
(`active > 0` ou nenhum resultado terminal); a divergência entre as
duas está documentada em tests/reconcile/test_classify.py.
"""

from __future__ import annotations

from terra_converge.model.resources import ExecutionUnit

FAILED_CONDITION = "Failed"


def is_complete(unit: ExecutionUnit) -> bool:
    return unit.status.succeeded > 0


def is_failed(unit: ExecutionUnit) -> bool:
    if unit.status.failed > 0:
        return True
    return any(
        c.type == FAILED_CONDITION and str(c.status).lower() == "true"
        for c in unit.status.conditions
    )


def is_active(unit: ExecutionUnit) -> bool:
    status = unit.status
    return (
        status.active > 0
        or status.succeeded == 0
        or status.failed == 0
        or len(status.conditions) == 0
    )


def is_active_strict(unit: ExecutionUnit) -> bool:
    status = unit.status
    return status.active > 0 or (status.succeeded == 0 and status.failed == 0)
