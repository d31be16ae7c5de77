# src/terra_converge/store/client.py
"""
Contrato do cliente de store consumido pelo engine.

Semântica esperada de qualquer implementação:
    - get/list retornam cópias independentes (mutá-las não afeta o store)
    - escritas bem-sucedidas atualizam in-place o `resource_version` do objeto
      passado, para que o ciclo continue com o token corrente
    - `patch(obj, base)` rejeita com ConflictError quando `base` está desatualizado
    - `update_status` nunca altera spec nem geração
    - `delete` de objeto com finalizers apenas marca `deletion_timestamp`;
      o objeto é removido quando a lista de finalizers fica vazia
"""

from __future__ import annotations

from typing import Callable, List, Mapping, Optional, Protocol, Type, TypeVar

from terra_converge.model.meta import StoreObject

T = TypeVar("T", bound=StoreObject)

ADDED = "ADDED"
MODIFIED = "MODIFIED"
DELETED = "DELETED"

WatchEvent = Callable[[str, StoreObject], None]


class ResourceStore(Protocol):
    def get(self, cls: Type[T], namespace: str, name: str) -> T:
        ...

    def list(
        self,
        cls: Type[T],
        namespace: Optional[str] = None,
        labels: Optional[Mapping[str, str]] = None,
    ) -> List[T]:
        ...

    def create(self, obj: StoreObject) -> None:
        ...

    def patch(self, obj: StoreObject, base: Optional[StoreObject] = None) -> None:
        ...

    def update_status(self, obj: StoreObject) -> None:
        ...

    def delete(self, obj: StoreObject) -> None:
        ...

    def subscribe(self, callback: WatchEvent) -> None:
        ...
