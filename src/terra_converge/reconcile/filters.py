# src/terra_converge/reconcile/filters.py
"""
Correlação de execution units com o recurso que as originou.

`UnitFilter` acumula predicados (combinados por AND) sobre os labels de
correlação. Os valores são comparados já tipados: stage como `Stage` e
geração como inteiro. Units com label ausente ou malformado simplesmente
não casam com o predicado correspondente.

Uso típico:

    unit, found = (
        UnitFilter(state.units)
        .with_namespace(resource.metadata.namespace)
        .with_name(resource.metadata.name)
        .with_stage(Stage.PLAN)
        .with_generation(resource.metadata.generation)
        .latest()
    )
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Tuple

from terra_converge.core.exceptions import InvalidLabelError
from terra_converge.model.labels import (
    GENERATION_LABEL,
    OWNER_NAME_LABEL,
    OWNER_NAMESPACE_LABEL,
    OWNER_UID_LABEL,
    STAGE_LABEL,
    Stage,
    parse_generation,
    parse_stage,
)
from terra_converge.model.resources import ExecutionUnit

Predicate = Callable[[ExecutionUnit], bool]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class UnitFilter:
    def __init__(self, units: Iterable[ExecutionUnit]) -> None:
        self._units: List[ExecutionUnit] = list(units)
        self._predicates: List[Predicate] = []

    def _add(self, predicate: Predicate) -> "UnitFilter":
        self._predicates.append(predicate)
        return self

    def with_label(self, key: str, value: str) -> "UnitFilter":
        """Igualdade literal de label; valor vazio não restringe."""
        if not value:
            return self
        return self._add(lambda u: u.metadata.labels.get(key) == value)

    def with_stage(self, stage: Stage) -> "UnitFilter":
        def match(unit: ExecutionUnit) -> bool:
            try:
                return parse_stage(unit.metadata.labels.get(STAGE_LABEL, "")) == stage
            except InvalidLabelError:
                return False

        return self._add(match)

    def with_generation(self, generation: int) -> "UnitFilter":
        def match(unit: ExecutionUnit) -> bool:
            try:
                return parse_generation(unit.metadata.labels.get(GENERATION_LABEL, "")) == generation
            except InvalidLabelError:
                return False

        return self._add(match)

    def with_owner_uid(self, uid: str) -> "UnitFilter":
        return self.with_label(OWNER_UID_LABEL, uid)

    def with_namespace(self, namespace: str) -> "UnitFilter":
        return self.with_label(OWNER_NAMESPACE_LABEL, namespace)

    def with_name(self, name: str) -> "UnitFilter":
        return self.with_label(OWNER_NAME_LABEL, name)

    def list(self) -> Tuple[List[ExecutionUnit], bool]:
        matched = [u for u in self._units if all(p(u) for p in self._predicates)]
        return matched, len(matched) > 0

    def latest(self) -> Tuple[Optional[ExecutionUnit], bool]:
        """Unit com maior `creation_timestamp`; empate mantém a primeira encontrada."""
        matched, found = self.list()
        if not found:
            return None, False

        best = matched[0]
        for unit in matched[1:]:
            if (unit.metadata.creation_timestamp or _EPOCH) > (best.metadata.creation_timestamp or _EPOCH):
                best = unit
        return best, True
