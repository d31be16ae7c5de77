# src/terra_converge/core/pipeline/step.py
"""
Protocolo canônico de Step.

Um Step é qualquer objeto com `id` e `run(ctx, state) -> StepResult`:
não há herança obrigatória. `state` é o scratch state do ciclo, alocado
uma vez pelo controller e passado por referência a todos os Steps.

Steps marcados com `terminal = True` (ex.: remoção de finalizer) só
podem ocupar a última posição do pipeline; o Engine rejeita qualquer
outra ordem com `EngineConfigurationError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable

from .context import ReconcileContext
from .types import StepResult


@runtime_checkable
class Step(Protocol):
    id: str

    def run(self, ctx: ReconcileContext, state: Any) -> StepResult:
        ...


@dataclass
class FunctionStep:
    """Adapta uma função `(ctx, state) -> StepResult` ao protocolo de Step."""

    id: str
    fn: Callable[[ReconcileContext, Any], StepResult]
    terminal: bool = False

    def run(self, ctx: ReconcileContext, state: Any) -> StepResult:
        return self.fn(ctx, state)


def is_terminal(step: Any) -> bool:
    return bool(getattr(step, "terminal", False))
