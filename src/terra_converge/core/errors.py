"""
terra-converge — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros do terra-converge.
Erros que interrompem um ciclo de reconciliação são registrados no log
de eventos do ciclo como payloads, devendo ser:

- explícitos
- serializáveis
- rastreáveis
- acionáveis

Pausas (falhas de domínio já registradas em Conditions) não são erros
e nunca produzem payload.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from .exceptions import (
    ConflictError,
    ConvergeException,
    NotFoundError,
    StoreUnavailableError,
)


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ErrorPayload:
    """
    Payload canônico de erro do terra-converge.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador
    - decision_required: indica que o recurso aguarda intervenção humana
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None
    decision_required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Store
STORE_NOT_FOUND = "STORE_NOT_FOUND"
STORE_CONFLICT = "STORE_CONFLICT"
STORE_UNAVAILABLE = "STORE_UNAVAILABLE"

# Engine / Execução
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"
ENGINE_CONFIGURATION_ERROR = "ENGINE_CONFIGURATION_ERROR"
ENGINE_CANCELLED = "ENGINE_CANCELLED"

_STORE_CODES = (
    (NotFoundError, STORE_NOT_FOUND),
    (ConflictError, STORE_CONFLICT),
    (StoreUnavailableError, STORE_UNAVAILABLE),
)


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def step_execution_error(
    *,
    step_id: str,
    resource: str,
    exc: BaseException,
    hint: str = "Verifique o log técnico do operador e o estado do store",
) -> ErrorPayload:
    """Converte uma exceção levantada por um Step em payload canônico.

    Regras:
    - ConvergeException: preserva message/details/hint/decision_required.
    - Erros de store: código estável do catálogo.
    - Outras exceções: ENGINE_EXECUTION_ERROR, sem stack trace.
    """
    details: Dict[str, Any] = {"step_id": step_id, "resource": resource}

    if isinstance(exc, ConvergeException):
        code = exc.__class__.__name__
        for cls, store_code in _STORE_CODES:
            if isinstance(exc, cls):
                code = store_code
                break
        details.update(exc.details or {})
        return ErrorPayload(
            type=code,
            message=str(exc) or "Erro de execução",
            details=details,
            hint=exc.hint or hint,
            decision_required=exc.decision_required,
        )

    details["exception_class"] = exc.__class__.__name__
    return ErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message=str(exc) or "Erro inesperado durante a reconciliação",
        details=details,
        hint=hint,
    )


def invalid_step_order(*, step_id: str, position: int, total: int) -> ErrorPayload:
    return ErrorPayload(
        type=ENGINE_CONFIGURATION_ERROR,
        message="Step terminal precisa ser o último do pipeline",
        details={"step_id": step_id, "position": position, "total": total},
        hint="Mova a remoção do finalizer para o final da sequência de deleção",
    )


def cycle_cancelled(*, resource: str, step_id: Optional[str] = None) -> ErrorPayload:
    return ErrorPayload(
        type=ENGINE_CANCELLED,
        message="Ciclo de reconciliação cancelado",
        details={"resource": resource, "step_id": step_id},
        hint="O recurso será reprocessado no próximo trigger",
    )
