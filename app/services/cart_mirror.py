# app/services/cart_mirror.py
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from functools import lru_cache
from typing import Callable

from app.core.config import get_settings

logger = logging.getLogger(__name__)

MirrorWrite = Callable[[], None]


class CartMirror:
    """
    Single-flight write queue for remote cart mirroring.

    For each key (the cart owner's user id):
      - at most one write runs at a time
      - while a write runs, newer submissions replace the queued one,
        so only the latest snapshot is written next
      - a failed write is retried up to `max_attempts` times,
        unless a newer write has been queued meanwhile
      - a write that still fails is logged and dropped

    Callers never wait on, or see errors from, the writes.
    """

    def __init__(self, executor: Executor | None = None, max_attempts: int = 3):
        self._executor = executor or ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="cart-mirror"
        )
        self._max_attempts = max(1, max_attempts)
        self._lock = threading.Lock()
        self._pending: dict[str, MirrorWrite] = {}
        self._running: set[str] = set()

    def submit(self, key: str, write: MirrorWrite) -> Future | None:
        """
        Queue `write` as the latest state for `key`.

        Returns the Future of a newly started drain, or None when a drain
        for this key is already running and will pick the write up.
        """
        with self._lock:
            self._pending[key] = write
            if key in self._running:
                return None
            self._running.add(key)

        try:
            return self._executor.submit(self._drain, key)
        except RuntimeError:
            # executor already shut down
            with self._lock:
                self._running.discard(key)
                self._pending.pop(key, None)
            logger.warning("Cart mirror is shut down, dropping write for %s", key)
            return None

    def is_idle(self, key: str) -> bool:
        with self._lock:
            return key not in self._running and key not in self._pending

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # ---- internal helpers ----

    def _drain(self, key: str) -> None:
        while True:
            with self._lock:
                write = self._pending.pop(key, None)
                if write is None:
                    self._running.discard(key)
                    return
            self._write_with_retry(key, write)

    def _write_with_retry(self, key: str, write: MirrorWrite) -> None:
        for attempt in range(1, self._max_attempts + 1):
            try:
                write()
                return
            except Exception as e:
                with self._lock:
                    superseded = key in self._pending
                if superseded:
                    logger.warning(
                        "Cart mirror write for %s failed (%s), superseded by a newer write",
                        key,
                        e,
                    )
                    return
                if attempt < self._max_attempts:
                    logger.warning(
                        "Cart mirror write for %s failed (attempt %d/%d): %s",
                        key,
                        attempt,
                        self._max_attempts,
                        e,
                    )
        logger.error(
            "Cart mirror write for %s dropped after %d attempts; remote cart is stale",
            key,
            self._max_attempts,
        )


@lru_cache
def get_cart_mirror() -> CartMirror:
    """
    Process-wide mirror queue.
    Shut down by the application lifespan handler.
    """
    settings = get_settings()
    executor = ThreadPoolExecutor(
        max_workers=settings.CART_MIRROR_WORKERS,
        thread_name_prefix="cart-mirror",
    )
    return CartMirror(executor, max_attempts=settings.CART_MIRROR_MAX_ATTEMPTS)
