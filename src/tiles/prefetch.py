"""Batch prefetch of every tile covering a set of regions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shared.constants import DOWNLOAD_CONCURRENCY, PREFETCH_LOG_MEMORY_EVERY_TILES
from shared.diagnostics import log_memory_usage
from tiles.errors import PrefetchAlreadyRunningError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from tiles.coverage import TileAddressGenerator
    from tiles.fetcher import CachingFetcher
    from tiles.models import FetchResult, GeoBoundingBox, ZoomRange

logger = logging.getLogger(__name__)


@dataclass
class PrefetchReport:
    """Outcome counters of one prefetch run."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    from_cache: int = 0

    @property
    def completed(self) -> bool:
        return self.skipped == 0


class Prefetcher:
    """Fetches every tile of some regions so they are available offline.

    Only one run may be in flight per Prefetcher. A failed tile is counted
    and skipped; setting ``stop_event`` stops dispatching the remaining URLs.
    """

    def __init__(
        self,
        fetcher: CachingFetcher,
        generator: TileAddressGenerator,
        *,
        concurrency: int = DOWNLOAD_CONCURRENCY,
    ) -> None:
        if concurrency <= 0:
            msg = 'concurrency must be positive'
            raise ValueError(msg)
        self.fetcher = fetcher
        self.generator = generator
        self.concurrency = concurrency
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run(
        self,
        regions: Sequence[GeoBoundingBox],
        zoom_range: ZoomRange,
        *,
        stop_event: asyncio.Event | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> PrefetchReport:
        """
        Fetch all tiles of ``regions`` across ``zoom_range``.

        Args:
            regions: Regions to cover; overlapping tiles are fetched once
            zoom_range: Inclusive zoom levels
            stop_event: When set, URLs not yet dispatched are skipped
            on_progress: Called with (done, total) after every tile

        Returns:
            PrefetchReport with per-outcome counts

        Raises:
            PrefetchAlreadyRunningError: If a run is already in progress.

        """
        if self._running:
            msg = 'prefetch already running'
            raise PrefetchAlreadyRunningError(msg)
        self._running = True
        try:
            urls = list(self.generator.iter_urls(regions, zoom_range))
            return await self._fetch_all(urls, stop_event, on_progress)
        finally:
            self._running = False

    async def _fetch_all(
        self,
        urls: list[str],
        stop_event: asyncio.Event | None,
        on_progress: Callable[[int, int], None] | None,
    ) -> PrefetchReport:
        report = PrefetchReport(total=len(urls))
        done = 0
        logger.info('Prefetch started: %d tiles', report.total)

        def _record(result: FetchResult | None) -> None:
            nonlocal done
            if result is None:
                report.skipped += 1
            elif result.ok:
                report.succeeded += 1
                if result.from_cache:
                    report.from_cache += 1
            else:
                report.failed += 1
                logger.debug('Prefetch failed for %s: %s', result.url, result.reason)
            done += 1
            if done % PREFETCH_LOG_MEMORY_EVERY_TILES == 0:
                log_memory_usage(f'after {done} tiles')
            if on_progress is not None:
                on_progress(done, report.total)

        pending = iter(urls)

        async def _worker() -> None:
            task = asyncio.current_task()
            for url in pending:
                if stop_event is not None and stop_event.is_set():
                    _record(None)
                    continue
                result = await self.fetcher.fetch(url)
                # The fetcher reports cancellation as a result; stop here instead
                if task is not None and task.cancelling():
                    raise asyncio.CancelledError
                _record(result)

        workers = min(self.concurrency, len(urls))
        await asyncio.gather(*(_worker() for _ in range(workers)))

        logger.info(
            'Prefetch finished: %d ok (%d from cache), %d failed, %d skipped of %d',
            report.succeeded,
            report.from_cache,
            report.failed,
            report.skipped,
            report.total,
        )
        return report
