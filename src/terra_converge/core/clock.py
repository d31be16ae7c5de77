# src/terra_converge/core/clock.py
"""
Utilitários de tempo do terra-converge.

UTC é o timezone canônico: timestamps de objetos, Conditions e eventos
são sempre timezone-aware em UTC. O relógio é injetável (`Clock`) para
que workflows dependentes de idade (ex.: expiração de revisions) sejam
testáveis de forma determinística.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_tzaware_utc(dt: datetime) -> datetime:
    """Timestamps timezone-naive são assumidos como UTC; os demais são convertidos."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def iso(dt: datetime) -> str:
    return ensure_tzaware_utc(dt).isoformat()
