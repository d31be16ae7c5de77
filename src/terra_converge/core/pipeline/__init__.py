# src/terra_converge/core/pipeline/__init__.py
"""
# Pipeline Core — terra-converge

Contratos canônicos de um ciclo de reconciliação.

## Componentes

- **types**
  - `Directive`: CONTINUE | REQUEUE | PAUSE | STOP
  - `StepResult`: resultado imutável de um Step
  - `ReconcileResult`: resultado agregado entregue ao worker
  - `requeue_unless`: força resync periódico

- **step**
  - `Step` (Protocol): `id` + `run(ctx, state)`
  - `FunctionStep`: adapta funções ao protocolo

- **context**
  - `ReconcileContext`: colaboradores, recurso e log do ciclo
  - `CancelToken`: cancelamento cooperativo

## Princípios Fundamentais

- Steps não conhecem o Engine
- O fluxo é decidido exclusivamente pela diretiva retornada
- O scratch state é local ao ciclo
"""

from .context import CancelToken, ReconcileContext
from .step import FunctionStep, Step
from .types import Directive, ReconcileResult, StepResult, requeue_unless

__all__ = [
    "CancelToken",
    "Directive",
    "FunctionStep",
    "ReconcileContext",
    "ReconcileResult",
    "Step",
    "StepResult",
    "requeue_unless",
]
