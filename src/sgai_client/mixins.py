"""Mixins for fire-and-forget delivery of events and tracking pixels."""

import asyncio
import time
from typing import Any, Coroutine

import httpx

from .events import SgaiEvents
from .exceptions import TrackingDeliveryError
from .http_client_manager import get_tracking_http_client
from .metrics import MetricLabels, MetricsCollector, SgaiMetrics


class BackgroundSenderMixin:
    """
    Detached HTTP delivery with request/response paired logging.

    Sends are spawned as tasks that are retained until done; the caller never
    awaits them. Failures are logged and counted, never raised or retried.

    Expects ``self.logger``, ``self.metrics`` and ``self.client`` on the host
    class.
    """

    logger: Any
    metrics: MetricsCollector
    client: httpx.AsyncClient | None

    @property
    def _background_tasks(self) -> set[asyncio.Task]:
        tasks = self.__dict__.get("_sender_tasks")
        if tasks is None:
            tasks = self.__dict__["_sender_tasks"] = set()
        return tasks

    @property
    def pending_count(self) -> int:
        """Number of sends still in flight."""
        return len(self._background_tasks)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_send_done)
        return task

    def _on_send_done(self, task: asyncio.Task) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error(
                "Background send crashed",
                error=str(error),
                error_type=type(error).__name__,
            )

    def _get_client(self) -> httpx.AsyncClient:
        return self.client if self.client is not None else get_tracking_http_client()

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Perform one request, raising TrackingDeliveryError on any failure."""
        try:
            response = await self._get_client().request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TrackingDeliveryError(
                f"Delivery failed: {e}",
                url=url,
                context={"error_type": type(e).__name__},
            ) from e

        if not 200 <= response.status_code < 300:
            raise TrackingDeliveryError(
                "Delivery rejected",
                url=url,
                http_status=response.status_code,
            )
        return response

    async def _deliver(
        self,
        method: str,
        url: str,
        sink: str,
        event_type: str,
        **kwargs: Any,
    ) -> None:
        request_context = {
            "sink": sink,
            "event_type": event_type,
            "method": method,
            "url_preview": url[:100] + "..." if len(url) > 100 else url,
        }
        self.logger.debug(SgaiEvents.TRACKING_REQUEST, tracking_request=request_context)

        labels = {MetricLabels.SINK: sink, MetricLabels.EVENT_TYPE: event_type}
        start_time = time.time()
        try:
            response = await self._request(method, url, **kwargs)
        except TrackingDeliveryError as e:
            self.logger.warning(
                SgaiEvents.TRACKING_FAILED,
                tracking_response={
                    **request_context,
                    "ok": False,
                    "error": e.message,
                    **e.context,
                },
            )
            self.metrics.increment(SgaiMetrics.TRACKING_FAILED, labels=labels)
            return
        finally:
            self.metrics.timing(
                SgaiMetrics.TRACKING_REQUEST_DURATION_MS,
                (time.time() - start_time) * 1000,
                labels={MetricLabels.SINK: sink},
            )

        self.logger.debug(
            SgaiEvents.TRACKING_EVENT_SENT,
            tracking_response={
                **request_context,
                "ok": True,
                "status_code": response.status_code,
                "response_time": round(time.time() - start_time, 3),
            },
        )
        self.metrics.increment(SgaiMetrics.TRACKING_SENT, labels=labels)

    async def drain(self, timeout: float) -> int:
        """Wait up to ``timeout`` seconds for in-flight sends, then cancel the rest.

        Returns:
            Number of sends that had to be cancelled
        """
        tasks = list(self._background_tasks)
        if not tasks:
            return 0

        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            self.logger.warning("Cancelled in-flight sends", count=len(pending))
        return len(pending)


__all__ = ["BackgroundSenderMixin"]
