# src/terra_converge/core/config/settings.py
"""
Visão tipada da configuração resolvida do operador.

`Settings` é construído a partir do dicionário retornado por
`load_config` e valida tipos e faixas antes que qualquer controller
seja registrado. Todos os intervalos de requeue são expressos em
segundos (float).

Limites explícitos:
    - Não lê variáveis de ambiente
    - Não recarrega configuração em runtime
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import SettingsError
from .hashing import compute_config_hash
from .loader import DEFAULTS_PATH, load_config


@dataclass(frozen=True)
class ControllerSettings:
    namespace: str = "terraform-system"
    enable_watchers: bool = True
    enable_infracosts: bool = False
    executor_image: str = ""
    terraform_image: str = ""
    policy_image: str = ""
    infracost_image: str = ""
    executor_secrets: List[str] = field(default_factory=list)
    backoff_limit: int = 2


@dataclass(frozen=True)
class WorkerSettings:
    configuration: int = 10
    revision: int = 10
    expire: int = 1
    drift: int = 1


@dataclass(frozen=True)
class RequeueSettings:
    in_progress_seconds: float = 5.0
    unit_active_seconds: float = 10.0
    provider_missing_seconds: float = 300.0
    provider_not_ready_seconds: float = 30.0
    policy_report_missing_seconds: float = 600.0
    revision_resync_seconds: float = 600.0
    expire_resync_seconds: float = 3600.0
    expire_pending_seconds: float = 3600.0


@dataclass(frozen=True)
class RevisionSettings:
    expiration_seconds: float = 0.0

    @property
    def expiry_enabled(self) -> bool:
        return self.expiration_seconds > 0


@dataclass(frozen=True)
class DriftSettings:
    # 0 desliga o controller de drift
    check_interval_seconds: float = 300.0
    interval_seconds: float = 10800.0
    threshold: float = 0.10

    @property
    def enabled(self) -> bool:
        return self.check_interval_seconds > 0


@dataclass(frozen=True)
class BackoffSettings:
    base_seconds: float = 0.005
    max_seconds: float = 1000.0


@dataclass(frozen=True)
class Settings:
    """
    Configuração tipada do operador.

    Campos:
    - controller: namespace de controle, imagens e toggles (watchers, custos)
    - workers: concorrência por kind reconciliado
    - requeue: intervalos fixos de requeue usados pelos workflows
    - revisions: política de expiração de revisions
    - drift: intervalos e limite de checagens de drift simultâneas
    - backoff: parâmetros do backoff exponencial da fila
    - log_level: nível do logger `terra_converge`
    - config_hash: fingerprint da configuração efetiva
    """

    controller: ControllerSettings = field(default_factory=ControllerSettings)
    workers: WorkerSettings = field(default_factory=WorkerSettings)
    requeue: RequeueSettings = field(default_factory=RequeueSettings)
    revisions: RevisionSettings = field(default_factory=RevisionSettings)
    drift: DriftSettings = field(default_factory=DriftSettings)
    backoff: BackoffSettings = field(default_factory=BackoffSettings)
    log_level: str = "INFO"
    config_hash: str = ""

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "Settings":
        controller = ControllerSettings(**_section(config, "controller", ControllerSettings))
        workers = WorkerSettings(**_section(config, "workers", WorkerSettings))
        requeue = RequeueSettings(**_section(config, "requeue", RequeueSettings))
        revisions = RevisionSettings(**_section(config, "revisions", RevisionSettings))
        drift = DriftSettings(**_section(config, "drift", DriftSettings))
        backoff = BackoffSettings(**_section(config, "backoff", BackoffSettings))

        for kind, value in vars(workers).items():
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise SettingsError(f"workers.{kind} deve ser inteiro >= 1, recebido: {value!r}")

        for section_name, section in (
            ("requeue", requeue),
            ("revisions", revisions),
            ("drift", drift),
            ("backoff", backoff),
        ):
            for key, value in vars(section).items():
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                    raise SettingsError(
                        f"{section_name}.{key} deve ser número >= 0, recebido: {value!r}"
                    )

        if drift.threshold > 1:
            raise SettingsError("drift.threshold deve estar entre 0 e 1")

        if backoff.max_seconds < backoff.base_seconds:
            raise SettingsError("backoff.max_seconds deve ser >= backoff.base_seconds")

        if not controller.namespace:
            raise SettingsError("controller.namespace é obrigatório")

        level = str((config.get("logging") or {}).get("level", "INFO")).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise SettingsError(f"logging.level inválido: {level}")

        return cls(
            controller=controller,
            workers=workers,
            requeue=requeue,
            revisions=revisions,
            drift=drift,
            backoff=backoff,
            log_level=level,
            config_hash=compute_config_hash(config),
        )


def _section(config: Dict[str, Any], name: str, kind: type) -> Dict[str, Any]:
    raw = config.get(name) or {}
    if not isinstance(raw, dict):
        raise SettingsError(f"Seção '{name}' deve ser um mapeamento")

    allowed = set(kind.__dataclass_fields__)
    unknown = sorted(set(raw) - allowed)
    if unknown:
        raise SettingsError(f"Chaves desconhecidas em '{name}': {', '.join(unknown)}")
    return dict(raw)


def load_settings(local_path: Optional[str] = None, *, defaults_path: Optional[str] = None) -> Settings:
    """Resolve defaults empacotados + override local e retorna `Settings`."""
    config = load_config(
        defaults_path=str(defaults_path or DEFAULTS_PATH),
        local_path=local_path,
    )
    return Settings.from_dict(config)
