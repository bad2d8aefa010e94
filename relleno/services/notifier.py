"""Best-effort outbound notifications for workflow transitions.

A notification is scheduled on the running event loop and the caller moves
on without waiting for it. Failures are logged, never raised to the caller:
the transition that triggered the notification is committed regardless.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from relleno.core.errors import SideEffectError

logger = logging.getLogger(__name__)

TASK_HEADER = "X-Relleno-Task"

DEFAULT_TIMEOUT = 15.0


class Notifier:
    """Send transition notifications over HTTP with aiohttp."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None
        self._pending: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(
        self,
        url: str,
        method: str,
        task_id: str,
        document: Any = None,
        send_document: bool = False,
    ) -> asyncio.Task[None]:
        """Schedule a notification and return without waiting for it.

        Raises:
            SideEffectError: If the notification cannot be scheduled at all
        """
        if self._closed:
            raise SideEffectError(url, method, "notifier is closed")
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise SideEffectError(url, method, "no running event loop") from exc

        task = loop.create_task(self._deliver(url, method, task_id, document, send_document))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.info("Dispatched %s %s for task %s", method, url, task_id)
        return task

    async def send(
        self,
        url: str,
        method: str,
        task_id: str,
        document: Any = None,
        send_document: bool = False,
    ) -> int:
        """Send one notification and return the response status.

        Raises:
            SideEffectError: On connection failure, timeout or an error status
        """
        headers = {TASK_HEADER: task_id}
        kwargs: dict[str, Any] = {"headers": headers}
        if send_document:
            kwargs["json"] = document

        session = self._get_session()
        try:
            async with session.request(method, url, **kwargs) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise SideEffectError(url, method, f"HTTP {response.status}: {body[:200]}")
                return response.status
        except asyncio.TimeoutError as exc:
            raise SideEffectError(url, method, f"timed out after {self._timeout.total}s") from exc
        except aiohttp.ClientError as exc:
            raise SideEffectError(url, method, str(exc) or exc.__class__.__name__) from exc

    async def aclose(self, grace: float = 5.0) -> None:
        """Wait up to ``grace`` seconds for in-flight notifications, then close."""
        self._closed = True
        if self._pending:
            pending = list(self._pending)
            logger.info("Waiting for %d in-flight notifications", len(pending))
            _, not_done = await asyncio.wait(pending, timeout=grace)
            for task in not_done:
                task.cancel()
            if not_done:
                logger.warning("Cancelled %d notifications still running at shutdown", len(not_done))
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def _deliver(
        self,
        url: str,
        method: str,
        task_id: str,
        document: Any,
        send_document: bool,
    ) -> None:
        try:
            status = await self.send(url, method, task_id, document, send_document)
        except SideEffectError as exc:
            logger.error("Notification for task %s failed: %s", task_id, exc)
            return
        logger.info("Notification %s %s for task %s answered %d", method, url, task_id, status)


__all__ = ["Notifier", "TASK_HEADER"]
