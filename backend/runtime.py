import asyncio
import logging
import threading
from typing import Any, Coroutine, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LoopRunner:
    """Owns an asyncio event loop on a daemon thread.

    Flask handlers run on their own threads; they hand coroutines to this loop
    and block until the coroutine returns. Background tasks the coroutines
    spawn keep running on the loop afterwards.
    """

    def __init__(self, name: str = "moodtunes-loop") -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._started = threading.Event()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def start(self) -> "LoopRunner":
        if not self._thread.is_alive():
            self._thread.start()
            self._started.wait()
        return self

    def call(self, coro: Coroutine[Any, Any, T], timeout: Optional[float] = 30.0) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)

    def stop(self) -> None:
        if not self._thread.is_alive():
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        self._loop.close()
        logger.info("Event loop stopped")

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._started.set)
        self._loop.run_forever()
