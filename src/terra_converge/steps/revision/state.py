# src/terra_converge/steps/revision/state.py
"""Scratch state de um ciclo de reconciliação de Revision."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from terra_converge.model.resources import CloudResource, Plan


@dataclass
class RevisionState:
    plan: Optional[Plan] = None
    consumers: List[CloudResource] = field(default_factory=list)
