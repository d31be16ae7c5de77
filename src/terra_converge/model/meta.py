# src/terra_converge/model/meta.py
"""
Metadados e status comuns a todos os objetos do store.

Este módulo define as estruturas compartilhadas por todos os kinds:

    - ObjectMeta     → identidade, geração, token otimista, finalizers, labels
    - Condition      → estado nomeado (status/reason/message) carimbado por geração
    - CommonStatus   → lista ordenada de Conditions + marcos de reconciliação
    - StoreObject    → base de todos os kinds (kind + metadata + spec + status)

Invariantes:
    - `generation` é incrementada pelo store a cada mudança de spec
    - `resource_version` é o token opaco de concorrência otimista
    - Conditions nunca são escritas diretamente; apenas via ConditionTracker
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional


class ConditionStatus(str, Enum):
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class ConditionReason(str, Enum):
    READY = "Ready"
    IN_PROGRESS = "InProgress"
    WARNING = "Warning"
    ACTION_REQUIRED = "ActionRequired"
    ERROR = "Error"
    DISABLED = "Disabled"
    DELETING = "Deleting"
    NOT_DETERMINED = "NotDetermined"


class ConditionType:
    """Tipos de Condition conhecidos pelo engine."""

    READY = "Ready"
    PROVIDER_READY = "ProviderReady"
    TERRAFORM_PLAN = "TerraformPlan"
    SECURITY_POLICY = "TerraformPolicy"
    TERRAFORM_APPLY = "TerraformApply"
    DESTROY = "TerraformDestroy"


@dataclass(frozen=True)
class ConditionSpec:
    """Declaração de uma Condition padrão de um kind (tipo + nome legível)."""

    type: str
    name: str


@dataclass
class Condition:
    type: str
    status: ConditionStatus = ConditionStatus.FALSE
    reason: str = ConditionReason.NOT_DETERMINED.value
    message: str = ""
    detail: str = ""
    name: str = ""
    observed_generation: int = 0
    last_transition_time: Optional[datetime] = None

    def is_true(self) -> bool:
        return self.status == ConditionStatus.TRUE


@dataclass
class ReconcileMark:
    """Marco de reconciliação: geração observada e instante."""

    generation: int
    time: datetime


@dataclass
class CommonStatus:
    conditions: List[Condition] = field(default_factory=list)
    last_reconcile: Optional[ReconcileMark] = None
    last_success: Optional[ReconcileMark] = None

    def get_condition(self, type: str) -> Optional[Condition]:
        for cond in self.conditions:
            if cond.type == type:
                return cond
        return None


@dataclass
class ObjectMeta:
    name: str
    namespace: str = ""
    uid: str = ""
    generation: int = 0
    resource_version: str = ""
    creation_timestamp: Optional[datetime] = None
    deletion_timestamp: Optional[datetime] = None
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    finalizers: List[str] = field(default_factory=list)


@dataclass
class StoreObject:
    """
    Base de todos os kinds persistidos no store.

    Subclasses definem `kind` (ClassVar), `spec`, `status` e, opcionalmente,
    `default_conditions`: as Conditions registradas pelo driver antes
    da execução dos Steps.
    """

    kind: ClassVar[str] = ""
    namespaced: ClassVar[bool] = True
    default_conditions: ClassVar[List[ConditionSpec]] = []

    metadata: ObjectMeta

    @property
    def key(self) -> "ObjectKey":
        return ObjectKey(namespace=self.metadata.namespace, name=self.metadata.name)

    def identity(self) -> str:
        if self.metadata.namespace:
            return f"{self.kind}/{self.metadata.namespace}/{self.metadata.name}"
        return f"{self.kind}/{self.metadata.name}"

    def log_fields(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "name": self.metadata.name,
            "namespace": self.metadata.namespace,
            "generation": self.metadata.generation,
        }


@dataclass(frozen=True)
class ObjectKey:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name
