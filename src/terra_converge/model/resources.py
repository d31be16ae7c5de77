# src/terra_converge/model/resources.py
"""
Kinds persistidos no store e reconciliados (ou consultados) pelo engine.

    - Configuration  → recurso Terraform gerenciado (plan → policy → apply / destroy)
    - Provider       → dependência de credenciais; precisa estar Ready
    - Policy         → restrições de segurança aplicadas ao plan
    - ExecutionUnit  → unidade externa de trabalho (um stage Terraform)
    - Artifact       → blob gerado (configuração, state, relatórios)
    - Plan/Revision  → catálogo versionado de configurações
    - CloudResource  → consumidor de uma (plan, revision)

O schema completo dos kinds é responsabilidade externa; aqui estão
apenas os campos que o engine lê ou escreve.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

from .labels import APPLY_ANNOTATION
from .meta import CommonStatus, ConditionSpec, ConditionType, StoreObject

RESOURCES_IN_SYNC = "InSync"
RESOURCES_OUT_OF_SYNC = "OutOfSync"
RESOURCES_DESTROYING = "DestroyingResources"


# ---------------------------------------------------------------------------
# Seletores
# ---------------------------------------------------------------------------

@dataclass
class Selector:
    """Igualdade de labels sobre o recurso e, opcionalmente, lista de namespaces."""

    match_labels: Dict[str, str] = field(default_factory=dict)
    namespaces: List[str] = field(default_factory=list)

    def matches(self, namespace: str, labels: Dict[str, str]) -> bool:
        if self.namespaces and namespace not in self.namespaces:
            return False
        return all(labels.get(k) == v for k, v in self.match_labels.items())


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class ProviderRef:
    name: str


@dataclass
class PlanRef:
    name: str
    revision: str


@dataclass
class ConfigurationSpec:
    module: str = ""
    provider_ref: Optional[ProviderRef] = None
    enable_auto_approval: bool = False
    terraform_version: str = ""
    variables: Dict[str, Any] = field(default_factory=dict)
    plan: Optional[PlanRef] = None
    enable_drift_detection: bool = False


@dataclass
class ConfigurationStatus(CommonStatus):
    resource_status: str = ""
    terraform_version: str = ""
    drift_timestamp: str = ""


@dataclass
class Configuration(StoreObject):
    kind: ClassVar[str] = "Configuration"
    default_conditions: ClassVar[List[ConditionSpec]] = [
        ConditionSpec(ConditionType.PROVIDER_READY, "Provider ready"),
        ConditionSpec(ConditionType.TERRAFORM_PLAN, "Terraform plan"),
        ConditionSpec(ConditionType.SECURITY_POLICY, "Security policy"),
        ConditionSpec(ConditionType.TERRAFORM_APPLY, "Terraform apply"),
        ConditionSpec(ConditionType.READY, "Ready"),
    ]

    spec: ConfigurationSpec = field(default_factory=ConfigurationSpec)
    status: ConfigurationStatus = field(default_factory=ConfigurationStatus)

    def needs_approval(self) -> bool:
        if self.spec.enable_auto_approval:
            return False
        return self.metadata.annotations.get(APPLY_ANNOTATION) != "true"


# ---------------------------------------------------------------------------
# Provider / Policy
# ---------------------------------------------------------------------------

@dataclass
class ProviderSpec:
    provider: str = ""
    source: str = "secret"
    configuration: Dict[str, Any] = field(default_factory=dict)
    selector: Optional[Selector] = None


@dataclass
class Provider(StoreObject):
    kind: ClassVar[str] = "Provider"
    namespaced: ClassVar[bool] = False
    default_conditions: ClassVar[List[ConditionSpec]] = [
        ConditionSpec(ConditionType.READY, "Provider ready"),
    ]

    spec: ProviderSpec = field(default_factory=ProviderSpec)
    status: CommonStatus = field(default_factory=CommonStatus)

    def is_ready(self) -> bool:
        cond = self.status.get_condition(ConditionType.READY)
        return cond is not None and cond.is_true()


@dataclass
class CheckovConstraint:
    checks: List[str] = field(default_factory=list)
    skip_checks: List[str] = field(default_factory=list)
    selector: Optional[Selector] = None


@dataclass
class PolicySpec:
    checkov: Optional[CheckovConstraint] = None


@dataclass
class Policy(StoreObject):
    kind: ClassVar[str] = "Policy"
    namespaced: ClassVar[bool] = False

    spec: PolicySpec = field(default_factory=PolicySpec)


# ---------------------------------------------------------------------------
# Execution units / artefatos
# ---------------------------------------------------------------------------

@dataclass
class UnitCondition:
    """Condition terminal reportada pela plataforma de execução (ex.: Failed/Complete)."""

    type: str
    status: str = "True"


@dataclass
class UnitStatus:
    active: int = 0
    succeeded: int = 0
    failed: int = 0
    conditions: List[UnitCondition] = field(default_factory=list)


@dataclass
class ExecutionUnit(StoreObject):
    kind: ClassVar[str] = "ExecutionUnit"

    spec: Dict[str, Any] = field(default_factory=dict)
    status: UnitStatus = field(default_factory=UnitStatus)


@dataclass
class Artifact(StoreObject):
    kind: ClassVar[str] = "Artifact"

    data: Dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Plan / Revision / CloudResource
# ---------------------------------------------------------------------------

@dataclass
class PlanRevision:
    name: str
    revision: str


@dataclass
class PlanSpec:
    revisions: List[PlanRevision] = field(default_factory=list)


@dataclass
class Plan(StoreObject):
    kind: ClassVar[str] = "Plan"
    namespaced: ClassVar[bool] = False

    spec: PlanSpec = field(default_factory=PlanSpec)
    status: CommonStatus = field(default_factory=CommonStatus)

    def has_revision(self, version: str) -> bool:
        return any(r.revision == version for r in self.spec.revisions)


@dataclass
class RevisionSpec:
    plan: PlanRef = field(default_factory=lambda: PlanRef(name="", revision=""))
    configuration: ConfigurationSpec = field(default_factory=ConfigurationSpec)


@dataclass
class RevisionStatus(CommonStatus):
    in_use: int = 0


@dataclass
class Revision(StoreObject):
    kind: ClassVar[str] = "Revision"
    namespaced: ClassVar[bool] = False
    default_conditions: ClassVar[List[ConditionSpec]] = [
        ConditionSpec(ConditionType.READY, "Ready"),
    ]

    spec: RevisionSpec = field(default_factory=RevisionSpec)
    status: RevisionStatus = field(default_factory=RevisionStatus)


@dataclass
class CloudResourceSpec:
    plan: PlanRef = field(default_factory=lambda: PlanRef(name="", revision=""))


@dataclass
class CloudResource(StoreObject):
    kind: ClassVar[str] = "CloudResource"

    spec: CloudResourceSpec = field(default_factory=CloudResourceSpec)
    status: CommonStatus = field(default_factory=CommonStatus)
