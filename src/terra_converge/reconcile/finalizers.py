# src/terra_converge/reconcile/finalizers.py
"""
Coordenação de finalizers (guarda de deleção).

Um recurso com `deletion_timestamp` definido e o finalizer presente é
candidato a deleção: o store só o remove quando a lista de finalizers
fica vazia. Por isso `EnsureFinalizerRemoved` é marcado como terminal e
precisa ser o último Step de qualquer sequência de deleção; removê-lo
antes permitiria ao store apagar o recurso antes da limpeza.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any

from terra_converge.core.exceptions import NotFoundError
from terra_converge.core.pipeline.context import ReconcileContext
from terra_converge.core.pipeline.types import StepResult
from terra_converge.model.labels import FINALIZER
from terra_converge.model.meta import StoreObject


class FinalizerCoordinator:
    def __init__(self, store: Any, name: str = FINALIZER) -> None:
        self.store = store
        self.name = name

    def has(self, obj: StoreObject) -> bool:
        return self.name in obj.metadata.finalizers

    def is_deletion_candidate(self, obj: StoreObject) -> bool:
        return obj.metadata.deletion_timestamp is not None and self.has(obj)

    def need_to_add(self, obj: StoreObject) -> bool:
        return obj.metadata.deletion_timestamp is None and not self.has(obj)

    def add(self, obj: StoreObject) -> bool:
        """Adiciona o finalizer; retorna False (sem escrita) se já presente."""
        if self.has(obj):
            return False
        base = deepcopy(obj)
        obj.metadata.finalizers.append(self.name)
        self.store.patch(obj, base)
        return True

    def remove(self, obj: StoreObject) -> bool:
        """Remove o finalizer; retorna False (sem escrita) se ausente."""
        if not self.has(obj):
            return False
        base = deepcopy(obj)
        obj.metadata.finalizers = [f for f in obj.metadata.finalizers if f != self.name]
        self.store.patch(obj, base)
        return True

    def ensure_present(self) -> "EnsureFinalizerPresent":
        return EnsureFinalizerPresent(coordinator=self)

    def ensure_removed(self) -> "EnsureFinalizerRemoved":
        return EnsureFinalizerRemoved(coordinator=self)


@dataclass
class EnsureFinalizerPresent:
    coordinator: FinalizerCoordinator
    id: str = "finalizer.present"

    def run(self, ctx: ReconcileContext, state: Any) -> StepResult:
        if not self.coordinator.add(ctx.resource):
            return StepResult.proceed("finalizer already present")

        ctx.log(step_id=self.id, level="debug", message="added finalizer, restarting cycle")
        return StepResult.requeue_now("finalizer added")


@dataclass
class EnsureFinalizerRemoved:
    coordinator: FinalizerCoordinator
    id: str = "finalizer.removed"
    terminal: bool = field(default=True, init=False)

    def run(self, ctx: ReconcileContext, state: Any) -> StepResult:
        try:
            removed = self.coordinator.remove(ctx.resource)
        except NotFoundError:
            return StepResult.proceed("resource already removed")

        if removed:
            ctx.log(step_id=self.id, level="debug", message="removed finalizer")
            return StepResult.proceed("finalizer removed")
        return StepResult.proceed("finalizer already absent")
