# src/terra_converge/core/engine/queue.py
"""
Fila de trabalho com deduplicação, serialização por chave e backoff.

Semântica:
    - Uma chave presente na fila (`dirty`) não é duplicada por novos `add`
    - Uma chave em processamento (`processing`) nunca é entregue a um
      segundo worker; novos `add` durante o processamento ficam marcados
      e a chave volta à fila quando `done` é chamado
    - `add_after` agenda a chave para o futuro (heap ordenado por prazo)
    - `add_rate_limited` aplica backoff exponencial por chave:
      min(base * 2 ** (n - 1), max), onde n é o número de falhas
      consecutivas; `forget` zera o contador

Invariantes:
    - No máximo um worker processa uma dada chave por vez
    - `get` devolve None somente após `shutdown` com a fila vazia
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import deque
from typing import Deque, Dict, Generic, Hashable, List, Optional, Set, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)


class WorkQueue(Generic[K]):
    def __init__(self, base_delay: float = 0.005, max_delay: float = 1000.0) -> None:
        self._base = base_delay
        self._max = max_delay
        self._cond = threading.Condition()
        self._queue: Deque[K] = deque()
        self._dirty: Set[K] = set()
        self._processing: Set[K] = set()
        self._waiting: List[Tuple[float, int, K]] = []
        self._seq = itertools.count()
        self._failures: Dict[K, int] = {}
        self._shutdown = False

    # ------------------------------------------------------------------
    # Inserção
    # ------------------------------------------------------------------

    def add(self, key: K) -> None:
        with self._cond:
            self._add_locked(key)

    def _add_locked(self, key: K) -> None:
        if self._shutdown or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def add_after(self, key: K, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutdown:
                return
            heapq.heappush(self._waiting, (time.monotonic() + delay, next(self._seq), key))
            self._cond.notify()

    def add_rate_limited(self, key: K) -> float:
        """Reagenda com backoff exponencial; retorna o atraso aplicado."""
        with self._cond:
            failures = self._failures.get(key, 0) + 1
            self._failures[key] = failures
        delay = min(self._base * (2 ** (failures - 1)), self._max)
        self.add_after(key, delay)
        return delay

    def forget(self, key: K) -> None:
        with self._cond:
            self._failures.pop(key, None)

    def num_requeues(self, key: K) -> int:
        with self._cond:
            return self._failures.get(key, 0)

    # ------------------------------------------------------------------
    # Consumo
    # ------------------------------------------------------------------

    def _promote_due(self) -> Optional[float]:
        """Move itens vencidos para a fila; retorna segundos até o próximo prazo."""
        now = time.monotonic()
        while self._waiting and self._waiting[0][0] <= now:
            _, _, key = heapq.heappop(self._waiting)
            self._add_locked(key)
        if self._waiting:
            return max(self._waiting[0][0] - now, 0.0)
        return None

    def get(self, timeout: Optional[float] = None) -> Optional[K]:
        """Bloqueia até haver uma chave disponível; None em shutdown ou timeout."""
        deadline = time.monotonic() + timeout if timeout is not None else None
        with self._cond:
            while True:
                next_due = self._promote_due()
                if self._queue:
                    key = self._queue.popleft()
                    self._dirty.discard(key)
                    self._processing.add(key)
                    return key
                if self._shutdown:
                    return None

                wait = next_due
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def done(self, key: K) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty and not self._shutdown:
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self) -> None:
        with self._cond:
            self._shutdown = True
            self._waiting.clear()
            self._cond.notify_all()

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutdown

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)
