# src/terra_converge/model/__init__.py
"""
Modelo de dados do terra-converge.

    - meta      → ObjectMeta, Condition, CommonStatus e base StoreObject
    - resources → kinds reconciliados e consultados pelo engine
    - labels    → contrato estável de labels/annotations e nomes de artefatos
"""

from .meta import (
    CommonStatus,
    Condition,
    ConditionReason,
    ConditionSpec,
    ConditionStatus,
    ConditionType,
    ObjectKey,
    ObjectMeta,
    ReconcileMark,
    StoreObject,
)
from .resources import (
    Artifact,
    CloudResource,
    Configuration,
    ConfigurationSpec,
    ExecutionUnit,
    Plan,
    PlanRef,
    Policy,
    Provider,
    ProviderRef,
    Revision,
    UnitCondition,
    UnitStatus,
)

__all__ = [
    "Artifact",
    "CloudResource",
    "CommonStatus",
    "Condition",
    "ConditionReason",
    "ConditionSpec",
    "ConditionStatus",
    "ConditionType",
    "Configuration",
    "ConfigurationSpec",
    "ExecutionUnit",
    "ObjectKey",
    "ObjectMeta",
    "Plan",
    "PlanRef",
    "Policy",
    "Provider",
    "ProviderRef",
    "ReconcileMark",
    "Revision",
    "StoreObject",
    "UnitCondition",
    "UnitStatus",
]
