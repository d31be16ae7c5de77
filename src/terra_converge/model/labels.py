# src/terra_converge/model/labels.py
"""
Contrato estável de labels, annotations e nomes de artefatos.

Labels de correlação são carregados como strings no store, mas são
validados e tipados na fronteira (`UnitLabels.parse`): geração vira
inteiro e stage vira `Stage`. A lógica de negócio nunca compara
strings de label diretamente.

Annotations são flags fora de banda definidas pelo usuário:
    - APPLY_ANNOTATION     → marcador de aprovação ("true"/"false")
    - ORPHAN_ANNOTATION    → não executar destroy na deleção
    - RETRY_ANNOTATION     → timestamp unix que força novo plan
    - RECONCILE_ANNOTATION → "false" desabilita a reconciliação
    - DRIFT_ANNOTATION     → timestamp unix que dispara a checagem de drift
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping

from terra_converge.core.exceptions import InvalidLabelError

PREFIX = "terra-converge.io"

# Correlação de execution units
STAGE_LABEL = f"{PREFIX}/stage"
GENERATION_LABEL = f"{PREFIX}/generation"
OWNER_UID_LABEL = f"{PREFIX}/configuration-uid"
OWNER_NAME_LABEL = f"{PREFIX}/configuration"
OWNER_NAMESPACE_LABEL = f"{PREFIX}/namespace"
RETRY_LABEL = f"{PREFIX}/retry"
DRIFT_LABEL = f"{PREFIX}/drift"
WATCHER_LABEL = f"{PREFIX}/watcher"

# Plan / Revision / consumidores
REVISION_PLAN_LABEL = f"{PREFIX}/plan-name"
REVISION_VERSION_LABEL = f"{PREFIX}/revision"
CLOUD_RESOURCE_PLAN_LABEL = f"{PREFIX}/plan-name"
CLOUD_RESOURCE_REVISION_LABEL = f"{PREFIX}/revision"

# Annotations
APPLY_ANNOTATION = f"{PREFIX}/apply"
ORPHAN_ANNOTATION = f"{PREFIX}/orphan"
RETRY_ANNOTATION = f"{PREFIX}/retry"
RECONCILE_ANNOTATION = f"{PREFIX}/reconcile"
DRIFT_ANNOTATION = f"{PREFIX}/drift"
CONFIG_HASH_ANNOTATION = f"{PREFIX}/config-hash"

FINALIZER = f"{PREFIX}/finalizer"


class Stage(str, Enum):
    PLAN = "plan"
    APPLY = "apply"
    DESTROY = "destroy"
    VERIFY = "verify"


@dataclass(frozen=True)
class UnitLabels:
    """Labels de correlação de uma execution unit, já tipados."""

    name: str
    namespace: str
    owner_uid: str
    stage: Stage
    generation: int

    def to_dict(self) -> Dict[str, str]:
        return {
            OWNER_NAME_LABEL: self.name,
            OWNER_NAMESPACE_LABEL: self.namespace,
            OWNER_UID_LABEL: self.owner_uid,
            STAGE_LABEL: self.stage.value,
            GENERATION_LABEL: str(self.generation),
        }

    @classmethod
    def parse(cls, labels: Mapping[str, str]) -> "UnitLabels":
        missing = [
            k for k in (OWNER_NAME_LABEL, OWNER_NAMESPACE_LABEL, OWNER_UID_LABEL, STAGE_LABEL, GENERATION_LABEL)
            if not labels.get(k)
        ]
        if missing:
            raise InvalidLabelError(
                message="Labels de correlação ausentes",
                details={"missing": missing},
            )
        return cls(
            name=labels[OWNER_NAME_LABEL],
            namespace=labels[OWNER_NAMESPACE_LABEL],
            owner_uid=labels[OWNER_UID_LABEL],
            stage=parse_stage(labels[STAGE_LABEL]),
            generation=parse_generation(labels[GENERATION_LABEL]),
        )


def parse_stage(value: str) -> Stage:
    try:
        return Stage(value)
    except ValueError:
        raise InvalidLabelError(
            message=f"Stage inválido: {value!r}",
            details={"label": STAGE_LABEL, "value": value},
        ) from None


def parse_generation(value: str) -> int:
    try:
        generation = int(value, 10)
    except (TypeError, ValueError):
        raise InvalidLabelError(
            message=f"Geração inválida: {value!r}",
            details={"label": GENERATION_LABEL, "value": value},
        ) from None
    if generation < 0:
        raise InvalidLabelError(
            message=f"Geração negativa: {value!r}",
            details={"label": GENERATION_LABEL, "value": value},
        )
    return generation


# ---------------------------------------------------------------------------
# Nomes de artefatos gerados (namespace de controle)
# ---------------------------------------------------------------------------

def config_artifact_name(uid: str) -> str:
    return f"config-{uid}"


def state_artifact_name(uid: str) -> str:
    return f"tfstate-default-{uid}"


def policy_artifact_name(uid: str) -> str:
    return f"policy-{uid}"


def costs_artifact_name(uid: str) -> str:
    return f"costs-{uid}"


def plan_artifact_name(uid: str) -> str:
    return f"tfplan-json-{uid}"


def watcher_name(name: str, generation: int, stage: Stage) -> str:
    return f"{name}-{generation}-{stage.value}"
