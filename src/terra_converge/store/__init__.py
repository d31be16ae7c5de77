# src/terra_converge/store/__init__.py
"""
Store de recursos.

    - client → protocolo `ResourceStore` consumido pelos Steps
    - memory → `InMemoryStore`, implementação thread-safe com tokens otimistas

Todas as operações distinguem `NotFoundError` e `ConflictError`
(token desatualizado), definidos em `core.exceptions`.
"""

from .client import ResourceStore, WatchEvent
from .memory import InMemoryStore

__all__ = ["InMemoryStore", "ResourceStore", "WatchEvent"]
