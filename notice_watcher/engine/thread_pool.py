"""Worker pools for notification fan-out."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from threading import Lock

# Telegram allows roughly 30 messages per second per bot
MAX_DELIVERY_WORKERS = 32


class ThreadPoolManager:
    """Keep one delivery executor per pool name alive across passes.

    The dispatcher asks for its pool on every fan-out; the first request fixes
    the pool size, later requests reuse the same executor. Sizes are clamped
    to ``1..MAX_DELIVERY_WORKERS``.
    """

    def __init__(self, default_workers: int = 8) -> None:
        self.default_workers = default_workers
        self._pools: dict[str, ThreadPoolExecutor] = {}
        self._lock = Lock()

    @staticmethod
    def clamp(workers: int) -> int:
        return max(1, min(workers, MAX_DELIVERY_WORKERS))

    def get(self, name: str = "dispatch", max_workers: int | None = None) -> ThreadPoolExecutor:
        with self._lock:
            pool = self._pools.get(name)
            if pool is None:
                size = self.clamp(max_workers or self.default_workers)
                pool = ThreadPoolExecutor(max_workers=size, thread_name_prefix=f"notify-{name}")
                self._pools[name] = pool
            return pool

    def pool_names(self) -> list[str]:
        with self._lock:
            return sorted(self._pools)

    def shutdown(self, wait: bool = False) -> None:
        """Stop every pool; a later ``get`` starts fresh executors."""

        with self._lock:
            pools, self._pools = list(self._pools.values()), {}
        for pool in pools:
            pool.shutdown(wait=wait)


__all__ = ["MAX_DELIVERY_WORKERS", "ThreadPoolManager"]
