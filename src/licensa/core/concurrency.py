# concurrency.py
# SPDX-License-Identifier: MIT
"""Bounded thread-pool executor used by the apply engine.

Files are independent units of work, so the engine fans them out over a
thread pool while keeping at most ``window`` tasks in flight. Results are
delivered in completion order; the report sorts them afterwards.
"""
from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import TypeVar

from .log import get_logger

log = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class ExecutorConfig:
    """Immutable executor settings.

    Attributes:
        max_workers (int): Maximum number of worker threads.
        window (int): Maximum number of in-flight tasks allowed
            before backpressure is applied.
    """
    max_workers: int
    window: int

    @classmethod
    def from_settings(cls, max_workers: int | None, window: int | None = None) -> ExecutorConfig:
        """Resolve worker and window settings, defaulting to CPU count and 4x workers."""
        workers = max(1, max_workers or (os.cpu_count() or 1))
        win = window or workers * 4
        return cls(max_workers=workers, window=max(win, workers))


class Executor:
    """Run tasks in a thread pool with bounded submission.

    This wrapper keeps at most ``cfg.window`` tasks in flight and
    delivers results to callbacks in completion order, not submission
    order.
    """

    def __init__(self, cfg: ExecutorConfig) -> None:
        self.cfg = cfg

    def _make_executor(self) -> ThreadPoolExecutor:
        if self.cfg.max_workers < 1:
            raise ValueError("Executor requires max_workers >= 1")
        return ThreadPoolExecutor(
            max_workers=self.cfg.max_workers, thread_name_prefix="licensa"
        )

    def map_unordered(
        self,
        items: Iterable[T],
        fn: Callable[[T], R],
        on_result: Callable[[R], None],
        *,
        on_error: Callable[[T, BaseException], None] | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> bool:
        """Submit items to workers and consume results as they complete.

        Args:
            items (Iterable[T]): Items to process.
            fn (Callable[[T], R]): Worker function invoked for each item.
            on_result (Callable[[R], None]): Callback invoked for each
                successful result.
            on_error (Callable[[T, BaseException], None] | None): Callback
                invoked with the item when its worker raises. Without one
                the first worker error is re-raised.
            should_stop (Callable[[], bool] | None): Polled before every
                submission; once it returns True no further items are
                scheduled and in-flight tasks are allowed to finish.

        Returns:
            bool: True when scheduling stopped early.
        """
        window = max(self.cfg.window, self.cfg.max_workers)
        stopped = False
        with self._make_executor() as pool:
            pending: dict[Future[R], T] = {}

            def _drain() -> None:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for fut in done:
                    item = pending.pop(fut)
                    try:
                        result = fut.result()
                    except Exception as exc:  # noqa: BLE001
                        if on_error is None:
                            raise
                        on_error(item, exc)
                        continue
                    on_result(result)

            for item in items:
                if should_stop is not None and should_stop():
                    stopped = True
                    log.debug("Stopped scheduling with %d tasks in flight", len(pending))
                    break
                pending[pool.submit(fn, item)] = item
                if len(pending) >= window:
                    _drain()

            while pending:
                _drain()
        return stopped


__all__ = ["Executor", "ExecutorConfig"]
