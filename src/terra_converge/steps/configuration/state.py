# src/terra_converge/steps/configuration/state.py
"""Scratch state de um ciclo de reconciliação de Configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from terra_converge.model.resources import CheckovConstraint, ExecutionUnit, Policy, Provider


@dataclass
class ConfigurationState:
    """
    Estado local ao ciclo, alocado pelo controller e descartado ao final.

    Campos:
    - units: execution units do recurso no namespace de controle (sem watchers)
    - policies: policies existentes no momento da captura
    - provider: provider resolvido e pronto
    - policy_constraint: restrição checkov que casou com o recurso
    - retry: valor da annotation de retry (correlaciona units)
    - retrying: a annotation é mais nova que a última reconciliação
    - drift: valor da annotation de drift, se a detecção está habilitada
    - plan_unit: unit de plan concluída para a correlação corrente
    - has_changes: o plan concluído tem mudanças a aplicar
    """

    units: List[ExecutionUnit] = field(default_factory=list)
    policies: List[Policy] = field(default_factory=list)
    provider: Optional[Provider] = None
    policy_constraint: Optional[CheckovConstraint] = None
    retry: str = ""
    retrying: bool = False
    drift: str = ""
    plan_unit: Optional[ExecutionUnit] = None
    has_changes: bool = True
