"""Command line entry point: count, list or prefetch the tiles of a region."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import itertools
import logging
import signal
import sys
from pathlib import Path

from infrastructure.http import (
    SocketReachability,
    StaticReachability,
    make_http_session,
    resolve_cache_dir,
)
from shared.config import FetcherSettings, load_settings
from shared.constants import DOWNLOAD_CONCURRENCY, SOURCE_MAX_ZOOM, SOURCE_MIN_ZOOM
from shared.diagnostics import log_memory_usage
from tiles import (
    CachingFetcher,
    GeoBoundingBox,
    Prefetcher,
    PrefetchReport,
    TileAddressGenerator,
    TileError,
    ZoomRange,
)

logger = logging.getLogger(__name__)


def setup_logging(log_file: Path | None = None, *, verbose: bool = False) -> None:
    """Configure logging to stdout and, optionally, a log file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_file), encoding='utf-8'))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f'must be a positive integer, got {value}')
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Slippy-map tile addressing and offline-aware caching fetcher',
    )
    parser.add_argument('--env-file', type=Path, default=Path('.env'))
    parser.add_argument('--log-file', type=Path, default=None)
    parser.add_argument('-v', '--verbose', action='store_true')

    region = argparse.ArgumentParser(add_help=False)
    region.add_argument(
        '--bbox',
        nargs=4,
        type=float,
        action='append',
        required=True,
        metavar=('MIN_LAT', 'MIN_LON', 'MAX_LAT', 'MAX_LON'),
        help='WGS84 bounding box; repeat for several regions',
    )
    region.add_argument('--min-zoom', type=int, default=SOURCE_MIN_ZOOM)
    region.add_argument('--max-zoom', type=int, default=SOURCE_MAX_ZOOM)
    region.add_argument('--base-url', default=None, help='Tile server base URL')

    sub = parser.add_subparsers(dest='command', required=True)
    sub.add_parser('count', parents=[region], help='Print the number of tiles')
    urls = sub.add_parser('urls', parents=[region], help='Print tile URLs')
    urls.add_argument('--limit', type=_positive_int, default=None)
    prefetch = sub.add_parser('prefetch', parents=[region], help='Download tiles into the cache')
    prefetch.add_argument('--cache-dir', type=Path, default=None)
    prefetch.add_argument('--concurrency', type=int, default=DOWNLOAD_CONCURRENCY)
    prefetch.add_argument(
        '--offline',
        action='store_true',
        help='Serve from cache only, never touch the network',
    )
    return parser


def _regions(args: argparse.Namespace) -> list[GeoBoundingBox]:
    return [GeoBoundingBox(*bbox) for bbox in args.bbox]


async def _prefetch(
    settings: FetcherSettings,
    regions: list[GeoBoundingBox],
    zoom_range: ZoomRange,
    *,
    concurrency: int,
    offline: bool,
) -> PrefetchReport:
    reachability = (
        StaticReachability(reachable=False)
        if offline
        else SocketReachability.for_url(settings.base_url)
    )
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, stop_event.set)

    def _progress(done: int, total: int) -> None:
        if done == total or done % 100 == 0:
            logger.info('Progress: %d/%d', done, total)

    async with make_http_session(settings.request_timeout_s) as session:
        fetcher = CachingFetcher.create(settings, session, reachability)
        try:
            prefetcher = Prefetcher(
                fetcher,
                TileAddressGenerator(settings.base_url),
                concurrency=concurrency,
            )
            return await prefetcher.run(
                regions,
                zoom_range,
                stop_event=stop_event,
                on_progress=_progress,
            )
        finally:
            await asyncio.to_thread(fetcher.close)
            logger.info('Fetcher stats: %s', fetcher.stats)


def main(argv: list[str] | None = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_file, verbose=args.verbose)

    settings = load_settings(args.env_file)
    if args.base_url:
        settings = settings.model_copy(
            update={'base_url': FetcherSettings(base_url=args.base_url).base_url}
        )
    generator = TileAddressGenerator(settings.base_url)
    regions = _regions(args)
    zoom_range = ZoomRange(args.min_zoom, args.max_zoom)

    try:
        if args.command == 'count':
            if len(regions) == 1:
                total = generator.url_count(regions[0], zoom_range)
            else:
                # Overlapping regions share tiles, so count distinct URLs
                total = sum(1 for _ in generator.iter_urls(regions, zoom_range))
            print(total)
            return 0

        if args.command == 'urls':
            if args.limit is None:
                urls = generator.urls_for_regions(regions, zoom_range)
            elif len(regions) == 1:
                urls = generator.urls(regions[0], zoom_range, limit=args.limit)
            else:
                urls = frozenset(
                    itertools.islice(generator.iter_urls(regions, zoom_range), args.limit)
                )
            for url in sorted(urls):
                print(url)
            return 0

        cache_dir = args.cache_dir or settings.cache_dir
        settings = settings.model_copy(update={'cache_dir': resolve_cache_dir(cache_dir)})
        log_memory_usage('before prefetch', settings.cache_dir)
        report = asyncio.run(
            _prefetch(
                settings,
                regions,
                zoom_range,
                concurrency=args.concurrency,
                offline=args.offline,
            )
        )
    except TileError as e:
        logger.error('%s', e)
        return 2

    print(
        f'{report.succeeded}/{report.total} tiles available '
        f'({report.from_cache} from cache, {report.failed} failed, {report.skipped} skipped)'
    )
    return 0 if report.failed == 0 and report.completed else 1


if __name__ == '__main__':
    sys.exit(main())
