# tests/core/engine/test_work_queue.py
"""
Testes da fila de trabalho dos controllers.

Invariantes verificados:
    - deduplicação de chaves pendentes
    - uma chave em processamento não é entregue a outro consumidor
    - backoff exponencial por chave, zerado por `forget`
    - shutdown desbloqueia consumidores
"""

import threading
import time

import pytest

from terra_converge.core.engine.queue import WorkQueue


def test_pending_keys_are_deduplicated():
    q = WorkQueue()
    q.add("a")
    q.add("a")
    q.add("b")

    assert len(q) == 2
    assert q.get(timeout=0.1) == "a"
    assert q.get(timeout=0.1) == "b"
    assert q.get(timeout=0.01) is None


def test_key_in_processing_is_not_handed_out_again():
    """
    Verifica a serialização por identidade: um `add` durante o
    processamento só devolve a chave à fila após `done`.
    """
    q = WorkQueue()
    q.add("a")
    key = q.get(timeout=0.1)

    q.add("a")
    assert q.get(timeout=0.02) is None

    q.done(key)
    assert q.get(timeout=0.1) == "a"


def test_done_without_new_add_does_not_requeue():
    q = WorkQueue()
    q.add("a")
    q.done(q.get(timeout=0.1))

    assert len(q) == 0


def test_rate_limited_delay_grows_exponentially_and_is_capped():
    q = WorkQueue(base_delay=0.001, max_delay=0.004)

    delays = [q.add_rate_limited("a") for _ in range(5)]

    assert delays == [0.001, 0.002, 0.004, 0.004, 0.004]
    assert q.num_requeues("a") == 5

    q.forget("a")
    assert q.num_requeues("a") == 0
    assert q.add_rate_limited("a") == 0.001


def test_add_after_delivers_only_when_due():
    q = WorkQueue()
    q.add_after("a", 0.05)

    assert q.get(timeout=0.005) is None

    start = time.monotonic()
    assert q.get(timeout=1.0) == "a"
    assert time.monotonic() - start <= 1.0


def test_add_after_non_positive_delay_is_immediate():
    q = WorkQueue()
    q.add_after("a", 0)
    assert q.get(timeout=0.01) == "a"


def test_shutdown_unblocks_waiting_consumer():
    q = WorkQueue()
    got = []

    t = threading.Thread(target=lambda: got.append(q.get()))
    t.start()
    time.sleep(0.02)
    q.shutdown()
    t.join(timeout=1.0)

    assert not t.is_alive()
    assert got == [None]
    assert q.shutting_down is True


def test_add_after_shutdown_is_ignored():
    q = WorkQueue()
    q.shutdown()
    q.add("a")
    q.add_after("b", 0.01)

    assert len(q) == 0
    assert q.get(timeout=0.01) is None


@pytest.mark.parametrize("workers", [4])
def test_concurrent_consumers_never_share_a_key(workers):
    q = WorkQueue()
    lock = threading.Lock()
    in_flight = set()
    overlaps = []
    processed = []

    def consume():
        while True:
            key = q.get(timeout=0.2)
            if key is None:
                return
            with lock:
                if key in in_flight:
                    overlaps.append(key)
                in_flight.add(key)
            time.sleep(0.002)
            with lock:
                in_flight.discard(key)
                processed.append(key)
            q.done(key)

    threads = [threading.Thread(target=consume) for _ in range(workers)]
    for t in threads:
        t.start()
    for i in range(40):
        q.add(f"k{i % 5}")
        time.sleep(0.0005)
    for t in threads:
        t.join(timeout=5.0)

    assert overlaps == []
    assert set(processed) == {f"k{i}" for i in range(5)}
