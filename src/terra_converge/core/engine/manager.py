# src/terra_converge/core/engine/manager.py
"""
Manager: liga notificações do store às filas e executa os workers.

Cada controller registrado recebe:
    - uma `WorkQueue` própria (chaves `ObjectKey`)
    - um pool de N threads (`concurrency`) consumindo a fila

Gatilhos:
    - objetos do kind primário entram na fila quando geração,
      `deletion_timestamp`, labels ou annotations mudam (escritas de
      status sozinhas não disparam novo ciclo)
    - kinds observados secundários (ex.: ExecutionUnit) passam por um
      mapper que devolve as chaves dos donos

Desfecho de um ciclo:
    - exceção            → log de erro + `add_rate_limited` (backoff)
    - requeue imediato   → `add_rate_limited`
    - requeue com atraso → `forget` + `add_after`
    - vazio / pausa      → `forget`

Limites explícitos:
    - Sem leader election
    - Sem resync global periódico (cada controller decide via requeue_unless)
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Protocol, Sequence, Tuple, Type

from terra_converge.core.config.settings import Settings
from terra_converge.core.pipeline.context import CancelToken
from terra_converge.core.pipeline.types import ReconcileResult
from terra_converge.model.meta import ObjectKey, StoreObject
from terra_converge.store.client import DELETED
from .queue import WorkQueue

log = logging.getLogger(__name__)

Mapper = Callable[[StoreObject], List[ObjectKey]]


class Reconciler(Protocol):
    kind: Type[StoreObject]

    def reconcile(self, key: ObjectKey, token: Optional[CancelToken] = None) -> ReconcileResult:
        ...


def trigger_signature(obj: StoreObject) -> Tuple[Hashable, ...]:
    meta = obj.metadata
    return (
        meta.generation,
        meta.deletion_timestamp,
        tuple(sorted(meta.labels.items())),
        tuple(sorted(meta.annotations.items())),
    )


@dataclass
class Registration:
    name: str
    reconciler: Reconciler
    concurrency: int
    queue: WorkQueue
    watches: Sequence[Tuple[Type[StoreObject], Mapper]] = ()
    signatures: Dict[ObjectKey, Tuple[Hashable, ...]] = field(default_factory=dict)
    executor: Optional[ThreadPoolExecutor] = None
    futures: List[Future] = field(default_factory=list)


class Manager:
    def __init__(self, store: Any, settings: Settings, cycle_timeout: Optional[float] = None) -> None:
        self.store = store
        self.settings = settings
        self.cycle_timeout = cycle_timeout
        self._root = CancelToken()
        self._lock = threading.Lock()
        self._registrations: Dict[str, Registration] = {}
        self._started = False
        store.subscribe(self._on_event)

    # ------------------------------------------------------------------
    # Registro
    # ------------------------------------------------------------------

    def register(
        self,
        reconciler: Reconciler,
        *,
        concurrency: int,
        watches: Sequence[Tuple[Type[StoreObject], Mapper]] = (),
        name: Optional[str] = None,
    ) -> Registration:
        if concurrency < 1:
            raise ValueError("concurrency deve ser >= 1")

        reg_name = name or type(reconciler).__name__
        backoff = self.settings.backoff
        with self._lock:
            if self._started:
                raise RuntimeError("manager já iniciado; registre controllers antes de start()")
            if reg_name in self._registrations:
                raise ValueError(f"controller já registrado: {reg_name}")
            reg = Registration(
                name=reg_name,
                reconciler=reconciler,
                concurrency=concurrency,
                queue=WorkQueue(base_delay=backoff.base_seconds, max_delay=backoff.max_seconds),
                watches=list(watches),
            )
            self._registrations[reg_name] = reg

        log.info("registered controller %s (workers=%d)", reg_name, concurrency)
        return reg

    def registration(self, name: str) -> Registration:
        return self._registrations[name]

    @property
    def names(self) -> List[str]:
        return list(self._registrations)

    def enqueue(self, name: str, key: ObjectKey) -> None:
        self._registrations[name].queue.add(key)

    # ------------------------------------------------------------------
    # Gatilhos
    # ------------------------------------------------------------------

    def _on_event(self, event: str, obj: StoreObject) -> None:
        for reg in list(self._registrations.values()):
            if obj.kind == reg.reconciler.kind.kind:
                self._on_primary(reg, event, obj)
            for cls, mapper in reg.watches:
                if obj.kind == cls.kind:
                    for key in mapper(obj):
                        reg.queue.add(key)

    def _on_primary(self, reg: Registration, event: str, obj: StoreObject) -> None:
        key = obj.key
        with self._lock:
            if event == DELETED:
                reg.signatures.pop(key, None)
                changed = True
            else:
                signature = trigger_signature(obj)
                changed = reg.signatures.get(key) != signature
                reg.signatures[key] = signature
        if changed:
            reg.queue.add(key)

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def _process(self, reg: Registration, key: ObjectKey) -> None:
        token = self._root.child(self.cycle_timeout)
        try:
            result = reg.reconciler.reconcile(key, token)
        except Exception as e:
            delay = reg.queue.add_rate_limited(key)
            log.error(
                "reconcile of %s failed: %s (retry in %.3fs)",
                key,
                e,
                delay,
                extra={"controller": reg.name, "key": str(key)},
            )
            return

        if result.requeue:
            reg.queue.add_rate_limited(key)
        elif result.requeue_after > 0:
            reg.queue.forget(key)
            reg.queue.add_after(key, result.requeue_after)
        else:
            reg.queue.forget(key)

    def _worker(self, reg: Registration) -> None:
        while True:
            key = reg.queue.get()
            if key is None:
                return
            try:
                self._process(reg, key)
            finally:
                reg.queue.done(key)

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._started = True

        for reg in self._registrations.values():
            reg.executor = ThreadPoolExecutor(
                max_workers=reg.concurrency,
                thread_name_prefix=f"terra-converge-{reg.name}",
            )
            reg.futures = [reg.executor.submit(self._worker, reg) for _ in range(reg.concurrency)]

            kind = reg.reconciler.kind
            for obj in self.store.list(kind):
                self._on_primary(reg, "SYNC", obj)

        log.info("manager started with %d controllers", len(self._registrations))

    def stop(self, wait: bool = True) -> None:
        """Cancela ciclos em andamento, encerra as filas e aguarda os workers."""
        self._root.cancel()
        for reg in self._registrations.values():
            reg.queue.shutdown()
        for reg in self._registrations.values():
            if reg.executor is not None:
                reg.executor.shutdown(wait=wait)
        log.info("manager stopped")
