"""Off-loop persistence of downloaded tiles.

Fetches hand their responses to a CacheWriter, whose thread commits them
to the TileCache in groups. A full queue is reported back to the caller,
which then writes the tile itself.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from shared.constants import TILE_WRITE_QUEUE_SIZE
from tiles.errors import CacheIOError

if TYPE_CHECKING:
    from tiles.cache import TileCache

logger = logging.getLogger(__name__)


@dataclass
class TileWriteRequest:
    """One downloaded response waiting to be committed."""

    url: str
    data: bytes
    content_type: str
    etag: str | None = None
    last_modified: str | None = None
    fetched_at: float | None = None

    def as_row(self) -> tuple[str, bytes, str, str | None, str | None, float | None]:
        return (
            self.url,
            self.data,
            self.content_type,
            self.etag,
            self.last_modified,
            self.fetched_at,
        )


class CacheWriter:
    """Commits queued tile responses to a TileCache from a worker thread.

    Rows are grouped into one transaction per BATCH_SIZE tiles, or whatever
    has arrived once FLUSH_INTERVAL seconds pass. ``stop`` commits the rest.

        with CacheWriter(cache) as writer:
            writer.put(url, tile_bytes, 'image/png')
    """

    BATCH_SIZE = 50
    FLUSH_INTERVAL = 1.0

    def __init__(self, cache: TileCache, max_queue_size: int | None = None) -> None:
        self.cache = cache
        self.max_queue_size = max_queue_size or TILE_WRITE_QUEUE_SIZE
        self._queue: queue.Queue[TileWriteRequest | None] = queue.Queue(
            maxsize=self.max_queue_size
        )
        self._thread: threading.Thread | None = None
        self._running = False
        self._counts_lock = threading.Lock()
        self._written = 0
        self._rejected = 0
        self._failed = 0

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(
            target=self._run, name='tile-cache-writer', daemon=True
        )
        self._thread.start()
        logger.info('Tile writer thread started (queue capacity %d)', self.max_queue_size)

    def stop(self, timeout: float = 30.0) -> None:
        """Commit everything still queued, then end the thread.

        Args:
            timeout: Seconds to wait for room in the queue and for the thread to exit.
        """
        if not self._running:
            return
        self._running = False

        # The end marker must be queued behind every pending request
        try:
            self._queue.put(None, timeout=timeout)
        except queue.Full:
            logger.warning(
                'Tile writer queue still full after %.0fs, end marker not queued', timeout
            )

        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning('Tile writer thread still alive after %.0fs', timeout)

        logger.info(
            'Tile writer thread finished: written=%d rejected=%d failed=%d',
            self._written,
            self._rejected,
            self._failed,
        )

    def put(
        self,
        url: str,
        data: bytes,
        content_type: str,
        etag: str | None = None,
        last_modified: str | None = None,
        fetched_at: float | None = None,
        block: bool = False,
    ) -> bool:
        """Hand a response to the writer thread.

        Returns False when the queue has no room; the caller keeps
        responsibility for the tile in that case.
        """
        request = TileWriteRequest(
            url,
            data,
            content_type,
            etag,
            last_modified,
            time.time() if fetched_at is None else fetched_at,
        )
        try:
            self._queue.put(request, block=block, timeout=1.0 if block else None)
        except queue.Full:
            with self._counts_lock:
                self._rejected += 1
            logger.debug('Tile writer queue full, rejected %s', url)
            return False
        return True

    def queue_size(self) -> int:
        return self._queue.qsize()

    def is_running(self) -> bool:
        return self._running and self._thread is not None and self._thread.is_alive()

    @property
    def stats(self) -> dict:
        return {
            'written': self._written,
            'rejected': self._rejected,
            'failed': self._failed,
            'queue_size': self.queue_size(),
            'running': self.is_running(),
        }

    def _run(self) -> None:
        pending: list[TileWriteRequest] = []
        deadline = time.monotonic() + self.FLUSH_INTERVAL
        finished = False

        while not finished:
            wait = max(deadline - time.monotonic(), 0.0)
            try:
                request = self._queue.get(timeout=wait)
            except queue.Empty:
                # Idle and already asked to stop, without an end marker
                finished = not self._running and not pending
            else:
                if request is None:
                    finished = True
                else:
                    pending.append(request)

            if pending and (
                finished
                or len(pending) >= self.BATCH_SIZE
                or time.monotonic() >= deadline
            ):
                self._write_batch(pending)
                pending = []
            if time.monotonic() >= deadline:
                deadline = time.monotonic() + self.FLUSH_INTERVAL

    def _write_batch(self, batch: list[TileWriteRequest]) -> None:
        if not batch:
            return
        try:
            self.cache.put_batch([request.as_row() for request in batch])
        except CacheIOError:
            with self._counts_lock:
                self._failed += len(batch)
            logger.exception('Tile writer lost a batch of %d tiles', len(batch))
            return
        with self._counts_lock:
            self._written += len(batch)

    def __enter__(self) -> CacheWriter:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
