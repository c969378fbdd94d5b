"""Fire-and-forget side effects of a redirect.

Background tasks must not share the request's fate: they are plain asyncio
tasks, never awaited by the handler, and a client disconnect does not
cancel them. Each task is bounded by ``BACKGROUND_TASK_TIMEOUT_SECONDS``
and its failure is logged and counted, never re-raised.

::
    resolve() ──dispatch()──▶ asyncio.Task ──▶ done-callback
        │                         │                 ├─ completed
        ▼                         ▼                 ├─ failed    (logged)
    302 response           increment / refresh      └─ timed_out (logged)
                           / publish

Usage::

    dispatcher = BackgroundDispatcher(settings)
    dispatcher.dispatch("increment_click_count", store.increment_click_count(code))
    ...
    await dispatcher.drain()   # shutdown / tests
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from shortlink.config import Settings
from shortlink.enums import TaskStatus
from shortlink.metrics import BACKGROUND_TASKS_TOTAL

__all__ = ["BackgroundDispatcher"]

logger = logging.getLogger(__name__)


class BackgroundDispatcher:
    def __init__(self, settings: Settings):
        self._timeout = settings.BACKGROUND_TASK_TIMEOUT_SECONDS
        self._max_pending = settings.MAX_PENDING_BACKGROUND_TASKS
        # Strong references; the event loop only keeps weak ones.
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task | None:
        """Schedule ``coro`` and return immediately.

        Returns None (and closes the coroutine) when too many tasks are
        already pending; the side effect is dropped.
        """
        if len(self._pending) >= self._max_pending:
            coro.close()
            BACKGROUND_TASKS_TOTAL.labels(name=name, status=TaskStatus.REJECTED).inc()
            logger.warning(f"Background queue full ({self._max_pending}), dropped {name}")
            return None

        task = asyncio.create_task(self._run(name, coro), name=f"shortlink:{name}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run(self, name: str, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            await asyncio.wait_for(coro, timeout=self._timeout)
        except asyncio.TimeoutError:
            BACKGROUND_TASKS_TOTAL.labels(name=name, status=TaskStatus.TIMED_OUT).inc()
            logger.error(f"Background task {name} timed out after {self._timeout}s")
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            BACKGROUND_TASKS_TOTAL.labels(name=name, status=TaskStatus.FAILED).inc()
            logger.error(f"Background task {name} failed: {exc!r}")
        else:
            BACKGROUND_TASKS_TOTAL.labels(name=name, status=TaskStatus.COMPLETED).inc()

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for every task dispatched so far, including ones they spawn."""
        while self._pending:
            tasks = list(self._pending)
            done, not_done = await asyncio.wait(tasks, timeout=timeout)
            self._pending.difference_update(done)
            if not_done:
                logger.warning(f"{len(not_done)} background tasks still running after drain timeout")
                return
