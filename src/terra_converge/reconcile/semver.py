# src/terra_converge/reconcile/semver.py
"""
Ordenação de versões semânticas das revisions de um Plan.

Formato aceito: `[v]MAJOR.MINOR.PATCH[-PRERELEASE][+BUILD]`. Metadata de
build é ignorada na comparação; uma pre-release é menor que a release
correspondente e seus identificadores são comparados campo a campo
(numéricos antes de alfanuméricos).
"""

from __future__ import annotations

import re
from typing import Iterable, List, Tuple, Union

from terra_converge.core.exceptions import InvalidVersionError

SEMVER_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<pre>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

_Identifier = Tuple[int, Union[int, str]]
SortKey = Tuple[int, int, int, int, Tuple[_Identifier, ...]]


def parse_semver(value: str) -> SortKey:
    raw = str(value or "").strip()
    match = SEMVER_RE.match(raw)
    if not match:
        raise InvalidVersionError(
            message=f"Versão semântica inválida: {value!r}",
            details={"version": value},
            hint="Use o formato MAJOR.MINOR.PATCH (ex.: v1.2.0)",
        )

    pre = match.group("pre")
    identifiers: Tuple[_Identifier, ...] = ()
    if pre:
        identifiers = tuple(
            (0, int(part)) if part.isdigit() else (1, part)
            for part in pre.split(".")
        )

    # release (sem pre-release) ordena depois de qualquer pre-release
    return (
        int(match.group("major")),
        int(match.group("minor")),
        int(match.group("patch")),
        0 if pre else 1,
        identifiers,
    )


def sort_semver(versions: Iterable[str]) -> List[str]:
    """Ordena em ordem crescente, preservando a grafia original."""
    return sorted(versions, key=parse_semver)


def latest_semver(versions: Iterable[str]) -> str:
    ordered = sort_semver(versions)
    if not ordered:
        raise InvalidVersionError(message="Nenhuma versão para comparar")
    return ordered[-1]
