"""
Background thread that owns the network event loop.

The GUI runs its coroutines on the QtAsyncio loop, which cannot open
sockets. Every gateway call is therefore handed to GatewayWorker, whose
thread runs a regular selector-based asyncio loop; the caller awaits the
result without blocking the UI.
"""

import asyncio
import concurrent.futures
import threading
from typing import Any, Coroutine

from PySide6.QtCore import QThread

from logger import get_logger

logger = get_logger(__name__)


class GatewayWorker(QThread):
    """
    Background worker thread running an asyncio loop for HTTP traffic.
    """

    def __init__(self):
        super().__init__()
        self.setObjectName("GatewayWorker")
        # Built explicitly: while QtAsyncio is active the global policy
        # would hand out another QtAsyncio loop.
        self.loop = asyncio.SelectorEventLoop()
        self._ready = threading.Event()

    def run(self):
        """Run the network loop until stop() is called."""
        self.loop.call_soon(self._ready.set)
        logger.info("Gateway worker loop started")
        try:
            self.loop.run_forever()
        except Exception as e:
            logger.error(f"Gateway worker loop failed: {e}", exc_info=True)
            raise
        finally:
            self.loop.run_until_complete(self.loop.shutdown_asyncgens())
            self.loop.close()
            logger.info("Gateway worker loop stopped")

    def start_loop(self, timeout: float = 5.0) -> bool:
        """Start the thread and wait until its loop accepts work."""
        self.start()
        return self._ready.wait(timeout)

    def in_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self.loop
        except RuntimeError:
            return False

    def submit(self, coro: Coroutine) -> concurrent.futures.Future:
        """Schedule a coroutine on the network loop from any thread."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    async def call(self, coro: Coroutine) -> Any:
        """Await a coroutine on the network loop from the caller's loop."""
        if self.in_loop_thread():
            return await coro
        return await asyncio.wrap_future(self.submit(coro), loop=asyncio.get_running_loop())

    def run_sync(self, coro: Coroutine, timeout: float = 10.0) -> Any:
        """Block until a coroutine finishes on the network loop (shutdown only)."""
        return self.submit(coro).result(timeout)

    def stop(self, timeout_ms: int = 5000):
        """Stop the loop and join the thread."""
        if not self.isRunning():
            if not self.loop.is_closed():
                self.loop.close()
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.wait(timeout_ms)
