"""Inference guard: exclusive, bounded access to a direction's model handles.

Each handle is checked out of an idle pool for exactly one native call, so
no handle ever runs two calls at once. The number of handles caps the
in-flight calls of the direction, and a bounded number of callers may wait
for a free handle; anyone beyond that is rejected with ``Overloaded``.
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from concurrent.futures import Executor

from romance_mt.config.languages import LanguageDirection
from romance_mt.errors import InferenceTimeout, Overloaded
from romance_mt.services.model_handle import ModelHandle

logger = logging.getLogger(__name__)


class InferenceGuard:
    """Serializes native calls per handle for one direction.

    Attributes:
        direction: Direction guarded
        max_queue_depth: Callers allowed to wait for a free handle
        timeout_s: Wall-clock budget for waiting plus running
    """

    def __init__(
        self,
        direction: LanguageDirection,
        handles: Sequence[ModelHandle],
        executor: Executor,
        *,
        max_queue_depth: int = 32,
        timeout_s: float = 30.0,
    ):
        if not handles:
            raise ValueError("InferenceGuard needs at least one handle")
        self.direction = direction
        self.max_queue_depth = max_queue_depth
        self.timeout_s = timeout_s
        self._executor = executor
        self._capacity = len(handles)
        self._idle: asyncio.Queue[ModelHandle] = asyncio.Queue()
        for handle in handles:
            self._idle.put_nowait(handle)
        self._waiting = 0
        self._in_flight = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def stats(self) -> dict[str, int]:
        return {
            "capacity": self._capacity,
            "idle": self._idle.qsize(),
            "in_flight": self._in_flight,
            "waiting": self._waiting,
        }

    async def run(self, batch: Sequence[str], target_lang: str | None = None) -> list[str]:
        """Translate ``batch`` on a free handle of this direction.

        Raises:
            Overloaded: If the wait queue is full
            InferenceTimeout: If waiting plus running exceeds ``timeout_s``
            InferenceError: If the native call fails
        """
        deadline = time.monotonic() + self.timeout_s
        handle = await self._acquire(deadline)

        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._executor, handle.translate, list(batch), target_lang)
        self._in_flight += 1
        future.add_done_callback(lambda _: self._release(handle))

        try:
            return await asyncio.wait_for(
                asyncio.shield(future), max(deadline - time.monotonic(), 0)
            )
        except asyncio.TimeoutError:
            # The native step cannot be preempted; the handle comes back
            # to the pool only when it finishes
            future.add_done_callback(_consume_result)
            logger.warning(
                f"{self.direction.value} inference exceeded {self.timeout_s}s "
                f"(batch of {len(batch)})"
            )
            raise InferenceTimeout(
                f"Translation exceeded {self.timeout_s}s; consider smaller batches"
            ) from None
        except asyncio.CancelledError:
            future.add_done_callback(_consume_result)
            raise

    async def _acquire(self, deadline: float) -> ModelHandle:
        if self._idle.empty() and self._waiting >= self.max_queue_depth:
            raise Overloaded(
                f"Too many pending requests for {self.direction.value} "
                f"(queue depth {self.max_queue_depth})"
            )

        self._waiting += 1
        try:
            return await asyncio.wait_for(
                self._idle.get(), max(deadline - time.monotonic(), 0)
            )
        except asyncio.TimeoutError:
            raise InferenceTimeout(
                f"Timed out after {self.timeout_s}s waiting for the {self.direction.value} model"
            ) from None
        finally:
            self._waiting -= 1

    def _release(self, handle: ModelHandle) -> None:
        self._in_flight -= 1
        self._idle.put_nowait(handle)


def _consume_result(future: asyncio.Future) -> None:
    # Retrieve the outcome of an abandoned call so it is not reported as
    # an unretrieved exception
    if not future.cancelled() and future.exception() is not None:
        logger.warning(f"Abandoned inference failed: {future.exception()}")
