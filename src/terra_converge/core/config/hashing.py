# src/terra_converge/core/config/hashing.py
"""
Fingerprint canônico de estruturas de configuração.

Gera um hash SHA-256 a partir de uma serialização JSON canônica
(chaves ordenadas, separadores compactos, UTF-8). É usado para:
    - identificar a configuração efetiva carregada pelo operador
    - decidir se um artefato de configuração renderizado mudou
      (patch-if-changed), evitando escritas redundantes no store

Invariantes:
    - Estruturas equivalentes produzem o mesmo hash, independente da ordem das chaves
    - O valor gerado é sempre uma string hexadecimal de 64 caracteres
"""

import hashlib
import json
from typing import Any, Dict


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico de um dicionário de configuração.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """
    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )

    canonical_json = json.dumps(
        config,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()
