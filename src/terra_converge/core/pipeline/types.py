# src/terra_converge/core/pipeline/types.py
"""
Tipos canônicos do pipeline de reconciliação.

Cada Step devolve um `StepResult` com uma diretiva exaustiva:

    - CONTINUE → segue para o próximo Step
    - REQUEUE  → encerra o ciclo e pede novo trigger (imediato ou após atraso)
    - PAUSE    → encerra o ciclo sem erro; o estado já foi registrado em
                 Conditions e só um evento externo deve acordar o recurso
    - STOP     → encerra o ciclo propagando `error` ao chamador (backoff)

Exceções levantadas por Steps são tratadas pelo Engine como STOP.

`ReconcileResult` é o que o chamador (worker) recebe: vazio significa
"nada a fazer até o próximo trigger".
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional


class Directive(str, Enum):
    CONTINUE = "continue"
    REQUEUE = "requeue"
    PAUSE = "pause"
    STOP = "stop"


@dataclass(frozen=True)
class StepResult:
    """
    Resultado imutável da execução de um Step.

    Campos:
    - directive: decisão de fluxo (ver `Directive`)
    - requeue_after: atraso em segundos; 0 com REQUEUE significa imediato
    - summary: descrição curta para o log de eventos do ciclo
    - error: exceção associada a STOP
    """

    directive: Directive
    requeue_after: float = 0.0
    summary: str = ""
    error: Optional[BaseException] = None

    @classmethod
    def proceed(cls, summary: str = "") -> "StepResult":
        return cls(directive=Directive.CONTINUE, summary=summary)

    @classmethod
    def requeue(cls, after: float, summary: str = "") -> "StepResult":
        if after <= 0:
            raise ValueError("requeue exige atraso positivo; use requeue_now()")
        return cls(directive=Directive.REQUEUE, requeue_after=float(after), summary=summary)

    @classmethod
    def requeue_now(cls, summary: str = "") -> "StepResult":
        return cls(directive=Directive.REQUEUE, requeue_after=0.0, summary=summary)

    @classmethod
    def pause(cls, summary: str = "") -> "StepResult":
        return cls(directive=Directive.PAUSE, summary=summary)

    @classmethod
    def stop(cls, error: BaseException, summary: str = "") -> "StepResult":
        return cls(directive=Directive.STOP, error=error, summary=summary or str(error))

    @property
    def immediate(self) -> bool:
        return self.directive == Directive.REQUEUE and self.requeue_after == 0


@dataclass(frozen=True)
class ReconcileResult:
    """Resultado agregado de um ciclo de reconciliação."""

    requeue: bool = False
    requeue_after: float = 0.0
    paused: bool = False
    steps: Dict[str, StepResult] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.requeue and self.requeue_after == 0


def requeue_unless(result: ReconcileResult, seconds: float) -> ReconcileResult:
    """Força um novo trigger após `seconds`, exceto se o ciclo já pediu requeue."""
    if result.requeue or result.requeue_after > 0:
        return result
    return replace(result, requeue_after=float(seconds))
