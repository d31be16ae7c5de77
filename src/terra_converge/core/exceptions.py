"""
terra-converge — Canonical Exceptions (v1)

Este módulo define as exceções tipadas internas do terra-converge.

Objetivo:
- Permitir que Steps, store e Engine levantem exceções semânticas tipadas
- Facilitar o mapeamento determinístico para ErrorPayload
- Distinguir falhas transitórias (conflito, indisponibilidade) de erros de configuração

Regras:
- Exceções carregam apenas dados estruturados (serializáveis) em `details`.
- Não existe exceção para "pausa": pausas são diretivas, não erros.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(eq=False)
class ConvergeException(Exception):
    """Base class para exceções internas do terra-converge.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Não embedar stack trace em payloads de erro
    - Mensagem deve ser curta e humana
    """

    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    hint: Optional[str] = None
    decision_required: bool = False

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class StoreError(ConvergeException):
    """Falha reportada pelo store de recursos."""


@dataclass(eq=False)
class NotFoundError(StoreError):
    """Objeto solicitado não existe no store."""


@dataclass(eq=False)
class AlreadyExistsError(StoreError):
    """Já existe um objeto com a mesma identidade (kind, namespace, name)."""


@dataclass(eq=False)
class ConflictError(StoreError):
    """Token de concorrência otimista desatualizado (escrita rejeitada)."""


@dataclass(eq=False)
class StoreUnavailableError(StoreError):
    """Store inacessível ou limitando requisições (falha transitória)."""


# ---------------------------------------------------------------------------
# Engine / Configuração
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class EngineConfigurationError(ConvergeException):
    """Lista de Steps inválida (ex.: remoção de finalizer fora da última posição)."""


@dataclass(eq=False)
class CancelledError(ConvergeException):
    """O contexto do ciclo foi cancelado (shutdown ou timeout)."""


# ---------------------------------------------------------------------------
# Contrato de labels / annotations
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class InvalidLabelError(ConvergeException):
    """Label de correlação ausente ou malformado."""


@dataclass(eq=False)
class InvalidAnnotationError(ConvergeException):
    """Annotation de controle com valor inválido."""


@dataclass(eq=False)
class InvalidVersionError(ConvergeException):
    """Revision que não é uma versão semântica válida."""


def is_not_found(exc: BaseException) -> bool:
    return isinstance(exc, NotFoundError)


def is_conflict(exc: BaseException) -> bool:
    return isinstance(exc, ConflictError)


def is_transient(exc: BaseException) -> bool:
    """Erros que o mecanismo de trigger deve repetir com backoff."""
    return isinstance(exc, (ConflictError, StoreUnavailableError))
