"""
Manifest Poller

Root loop of the engine: fetch the live manifest, extract ad cues, resolve
their asset lists and hand each break to the splicer. Runs until cancelled.
"""

import asyncio
from collections import deque
from typing import TYPE_CHECKING, Mapping

from .asset_list import AssetListResolver
from .cues import extract_ad_breaks, extract_rendition_url, is_multivariant
from .events import SgaiEvents
from .exceptions import AssetListError, ManifestFetchError
from .fetcher import ManifestFetcher
from .log_config import get_context_logger
from .metrics import MetricLabels, MetricsCollector, NoOpMetrics, SgaiMetrics
from .models import AdBreak
from .splicer import AdSplicer
from .time_provider import RealtimeTimeProvider, TimeProvider

if TYPE_CHECKING:
    from .config import EngineConfig


class ManifestPoller:
    """
    Polls the live manifest and starts ad breaks.

    Each iteration:

    1. fetch the root manifest; failures and empty bodies skip the iteration
    2. while an ad break is playing, stop here
    3. for a multivariant playlist fetch the first rendition and look for cues
       there, otherwise look for cues in the manifest itself
    4. for each new break resolve its asset list and begin it; a break whose
       asset list fails is dropped and will be retried on the next poll

    Break IDs that have begun are remembered (bounded) so a cue that stays in
    the live window is not played twice.
    """

    def __init__(
        self,
        fetcher: ManifestFetcher,
        resolver: AssetListResolver,
        splicer: AdSplicer,
        *,
        stream_url: str,
        interval_sec: float = 15.0,
        host_rewrites: Mapping[str, str] | None = None,
        played_break_history: int = 64,
        time_provider: TimeProvider | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self.fetcher = fetcher
        self.resolver = resolver
        self.splicer = splicer
        self.stream_url = stream_url
        self.interval_sec = interval_sec
        self.host_rewrites = host_rewrites
        self.time_provider = time_provider or RealtimeTimeProvider()
        self.metrics = metrics or NoOpMetrics()

        self.previous_manifest: str | None = None
        self._played_break_ids: deque[str] = deque(maxlen=played_break_history)
        self._task: asyncio.Task | None = None
        self.logger = get_context_logger("manifest_poller")

    @classmethod
    def from_config(
        cls,
        config: "EngineConfig",
        fetcher: ManifestFetcher,
        resolver: AssetListResolver,
        splicer: AdSplicer,
        time_provider: TimeProvider | None = None,
        metrics: MetricsCollector | None = None,
    ) -> "ManifestPoller":
        return cls(
            fetcher,
            resolver,
            splicer,
            stream_url=config.stream_url,
            interval_sec=config.manifest_poll_interval_sec,
            host_rewrites=config.host_rewrites,
            played_break_history=config.played_break_history,
            time_provider=time_provider,
            metrics=metrics,
        )

    def has_played(self, break_id: str) -> bool:
        return break_id in self._played_break_ids

    async def run(self) -> None:
        """Poll forever, ``interval_sec`` apart."""
        self.logger.info(
            SgaiEvents.POLL_STARTED,
            stream_url=self.stream_url,
            interval_sec=self.interval_sec,
        )
        while True:
            await self.poll_once()
            await self.time_provider.sleep(self.interval_sec)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def aclose(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def poll_once(self) -> list[AdBreak]:
        """Run one polling iteration.

        Returns:
            Breaks handed to the splicer during this iteration
        """
        self.metrics.increment(SgaiMetrics.POLLS_TOTAL)
        try:
            manifest = await self.fetcher.fetch_text(self.stream_url)
        except ManifestFetchError as e:
            self.logger.warning(SgaiEvents.POLL_FAILED, error=str(e))
            self.metrics.increment(SgaiMetrics.POLLS_FAILED)
            return []

        if not manifest.strip():
            self.logger.info(SgaiEvents.POLL_SKIPPED, reason="empty_manifest")
            return []

        if manifest == self.previous_manifest:
            self.logger.debug(SgaiEvents.POLL_UNCHANGED)
        self.previous_manifest = manifest

        if self.splicer.is_active:
            self.logger.debug(SgaiEvents.POLL_SKIPPED, reason="ad_break_active")
            return []

        started: list[AdBreak] = []
        for ad_break in await self._extract_breaks(manifest):
            if self.splicer.is_active:
                break
            if self.has_played(ad_break.id):
                self.logger.debug(
                    SgaiEvents.BREAK_SKIPPED,
                    ad_break_id=ad_break.id,
                    reason="already_played",
                )
                continue

            self.logger.info(
                SgaiEvents.CUE_DETECTED,
                ad_break_id=ad_break.id,
                asset_list_url=ad_break.asset_list_url,
            )
            self.metrics.increment(SgaiMetrics.CUES_DETECTED)

            try:
                assets = await self.resolver.resolve(ad_break.asset_list_url)
            except AssetListError as e:
                self.logger.warning(
                    SgaiEvents.ASSET_LIST_FAILED,
                    ad_break_id=ad_break.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                self.metrics.increment(
                    SgaiMetrics.BREAKS_ABANDONED,
                    labels={MetricLabels.REASON: type(e).__name__},
                )
                continue

            if self.splicer.is_active:
                break
            self.splicer.begin_break(ad_break, assets)
            self._played_break_ids.append(ad_break.id)
            started.append(ad_break)

        return started

    async def _extract_breaks(self, manifest: str) -> list[AdBreak]:
        if not is_multivariant(manifest):
            return extract_ad_breaks(manifest, self.stream_url, self.host_rewrites)

        rendition_url = extract_rendition_url(manifest, self.stream_url)
        if rendition_url is None:
            self.logger.debug(SgaiEvents.POLL_SKIPPED, reason="no_rendition_url")
            return []

        try:
            rendition = await self.fetcher.fetch_text(rendition_url)
        except ManifestFetchError as e:
            self.logger.warning(SgaiEvents.POLL_FAILED, error=str(e), rendition_url=rendition_url)
            self.metrics.increment(SgaiMetrics.POLLS_FAILED)
            return []

        return extract_ad_breaks(rendition, rendition_url, self.host_rewrites)


__all__ = ["ManifestPoller"]
