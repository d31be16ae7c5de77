# src/terra_converge/store/memory.py
"""
Store de recursos em memória.

Implementa o contrato de `ResourceStore` para uso em testes e em
execuções locais do operador. O comportamento relevante para a
corretude do engine é reproduzido fielmente:

    - tokens de concorrência otimista (`resource_version`) por objeto
    - incremento de `generation` apenas quando o spec muda
    - deleção em duas fases guiada por finalizers
    - notificação de assinantes (watch) após cada escrita

Decisões arquiteturais:
    - Todo acesso ao estado interno ocorre sob um único RLock
    - Objetos armazenados nunca são expostos; get/list devolvem deepcopy
    - Assinantes são notificados fora do lock, com uma cópia do objeto

Limites explícitos:
    - Não implementa garbage collection de execution units terminais
    - Não valida schema (admission é responsabilidade externa)
"""

from __future__ import annotations

import logging
import threading
import uuid
from copy import deepcopy
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

from terra_converge.core.clock import Clock, utcnow
from terra_converge.core.exceptions import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
)
from terra_converge.model.meta import StoreObject
from .client import ADDED, DELETED, MODIFIED, T, WatchEvent

log = logging.getLogger(__name__)

_Key = Tuple[str, str, str]


def _spec_of(obj: StoreObject) -> Any:
    if hasattr(obj, "spec"):
        return getattr(obj, "spec")
    return getattr(obj, "data", None)


class InMemoryStore:
    """Store thread-safe com semântica de tokens otimistas e finalizers."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or utcnow
        self._lock = threading.RLock()
        self._objects: Dict[_Key, StoreObject] = {}
        self._version = 0
        self._subscribers: List[WatchEvent] = []
        self._faults: List[Tuple[str, Optional[str], Exception]] = []

    # ------------------------------------------------------------------
    # Helpers internos
    # ------------------------------------------------------------------

    @staticmethod
    def _key(kind: str, namespace: str, name: str) -> _Key:
        return (kind, namespace or "", name)

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _check_fault(self, op: str, kind: str) -> None:
        for i, (f_op, f_kind, exc) in enumerate(self._faults):
            if f_op == op and (f_kind is None or f_kind == kind):
                del self._faults[i]
                raise exc

    def _lookup(self, obj: StoreObject) -> StoreObject:
        key = self._key(obj.kind, obj.metadata.namespace, obj.metadata.name)
        stored = self._objects.get(key)
        if stored is None:
            raise NotFoundError(
                message=f"{obj.identity()} não encontrado",
                details={"kind": obj.kind, "namespace": obj.metadata.namespace, "name": obj.metadata.name},
            )
        return stored

    @staticmethod
    def _refresh(target: StoreObject, stored: StoreObject) -> None:
        target.metadata.uid = stored.metadata.uid
        target.metadata.generation = stored.metadata.generation
        target.metadata.resource_version = stored.metadata.resource_version
        target.metadata.creation_timestamp = stored.metadata.creation_timestamp
        target.metadata.deletion_timestamp = stored.metadata.deletion_timestamp

    def _notify(self, event: str, obj: StoreObject) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event, deepcopy(obj))
            except Exception:
                log.exception("store subscriber failed", extra={"event": event, "object": obj.identity()})

    def _reap_if_released(self, key: _Key, stored: StoreObject) -> bool:
        if stored.metadata.deletion_timestamp is not None and not stored.metadata.finalizers:
            del self._objects[key]
            return True
        return False

    # ------------------------------------------------------------------
    # Injeção de falhas (testes)
    # ------------------------------------------------------------------

    def fail_next(self, op: str, exc: Optional[Exception] = None, *, kind: Optional[str] = None) -> None:
        """Faz a próxima operação `op` (get/list/create/patch/update_status/delete) falhar."""
        with self._lock:
            self._faults.append(
                (op, kind, exc or StoreUnavailableError(message="store indisponível"))
            )

    # ------------------------------------------------------------------
    # Leitura
    # ------------------------------------------------------------------

    def get(self, cls: Type[T], namespace: str, name: str) -> T:
        with self._lock:
            self._check_fault("get", cls.kind)
            stored = self._objects.get(self._key(cls.kind, namespace, name))
            if stored is None:
                raise NotFoundError(
                    message=f"{cls.kind} {namespace}/{name} não encontrado",
                    details={"kind": cls.kind, "namespace": namespace, "name": name},
                )
            return deepcopy(stored)  # type: ignore[return-value]

    def list(
        self,
        cls: Type[T],
        namespace: Optional[str] = None,
        labels: Optional[Mapping[str, str]] = None,
    ) -> List[T]:
        with self._lock:
            self._check_fault("list", cls.kind)
            out: List[T] = []
            for (kind, ns, _), stored in self._objects.items():
                if kind != cls.kind:
                    continue
                if namespace is not None and ns != namespace:
                    continue
                if labels and any(stored.metadata.labels.get(k) != v for k, v in labels.items()):
                    continue
                out.append(deepcopy(stored))  # type: ignore[arg-type]
            return out

    # ------------------------------------------------------------------
    # Escrita
    # ------------------------------------------------------------------

    def create(self, obj: StoreObject) -> None:
        with self._lock:
            self._check_fault("create", obj.kind)
            key = self._key(obj.kind, obj.metadata.namespace, obj.metadata.name)
            if key in self._objects:
                raise AlreadyExistsError(
                    message=f"{obj.identity()} já existe",
                    details={"kind": obj.kind, "name": obj.metadata.name},
                )

            stored = deepcopy(obj)
            stored.metadata.uid = stored.metadata.uid or str(uuid.uuid4())
            stored.metadata.generation = 1
            stored.metadata.resource_version = self._next_version()
            stored.metadata.creation_timestamp = stored.metadata.creation_timestamp or self._clock()
            stored.metadata.deletion_timestamp = None
            self._objects[key] = stored
            self._refresh(obj, stored)
            snapshot = deepcopy(stored)

        self._notify(ADDED, snapshot)

    def patch(self, obj: StoreObject, base: Optional[StoreObject] = None) -> None:
        """Merge de metadata mutável (labels, annotations, finalizers) e spec.

        Com `base`, o token de `base` precisa coincidir com o armazenado.
        """
        with self._lock:
            self._check_fault("patch", obj.kind)
            key = self._key(obj.kind, obj.metadata.namespace, obj.metadata.name)
            stored = self._lookup(obj)

            if base is not None and base.metadata.resource_version != stored.metadata.resource_version:
                raise ConflictError(
                    message=f"{obj.identity()} foi modificado concorrentemente",
                    details={
                        "expected": base.metadata.resource_version,
                        "current": stored.metadata.resource_version,
                    },
                )

            stored.metadata.labels = dict(obj.metadata.labels)
            stored.metadata.annotations = dict(obj.metadata.annotations)
            stored.metadata.finalizers = list(obj.metadata.finalizers)

            new_spec = _spec_of(obj)
            if new_spec != _spec_of(stored):
                if hasattr(stored, "spec"):
                    stored.spec = deepcopy(new_spec)  # type: ignore[attr-defined]
                    stored.metadata.generation += 1
                else:
                    stored.data = deepcopy(new_spec)  # type: ignore[attr-defined]

            stored.metadata.resource_version = self._next_version()
            self._refresh(obj, stored)
            reaped = self._reap_if_released(key, stored)
            snapshot = deepcopy(stored)

        self._notify(DELETED if reaped else MODIFIED, snapshot)

    def update_status(self, obj: StoreObject) -> None:
        with self._lock:
            self._check_fault("update_status", obj.kind)
            stored = self._lookup(obj)

            token = obj.metadata.resource_version
            if token and token != stored.metadata.resource_version:
                raise ConflictError(
                    message=f"status de {obj.identity()} com token desatualizado",
                    details={"expected": token, "current": stored.metadata.resource_version},
                )

            stored.status = deepcopy(obj.status)  # type: ignore[attr-defined]
            stored.metadata.resource_version = self._next_version()
            self._refresh(obj, stored)
            snapshot = deepcopy(stored)

        self._notify(MODIFIED, snapshot)

    def delete(self, obj: StoreObject) -> None:
        with self._lock:
            self._check_fault("delete", obj.kind)
            key = self._key(obj.kind, obj.metadata.namespace, obj.metadata.name)
            stored = self._lookup(obj)

            if stored.metadata.finalizers:
                if stored.metadata.deletion_timestamp is None:
                    stored.metadata.deletion_timestamp = self._clock()
                    stored.metadata.resource_version = self._next_version()
                self._refresh(obj, stored)
                event = MODIFIED
            else:
                del self._objects[key]
                event = DELETED
            snapshot = deepcopy(stored)

        self._notify(event, snapshot)

    def subscribe(self, callback: WatchEvent) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def exists(self, cls: Type[StoreObject], namespace: str, name: str) -> bool:
        with self._lock:
            return self._key(cls.kind, namespace, name) in self._objects
