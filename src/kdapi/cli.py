"""
Command-line interface.

    kdapi scrape [--debug] [--sample N] [--delay MS] [--batch-size N]
                 [--cache | --no-cache] [--force]
    kdapi retry-failed

Exit codes: 0 when the session completed (even with failed URLs),
1 when the dataset could not be saved, 2 on invalid options,
130 when interrupted.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from .cache import ContentCache
from .config import CACHE_DIR, DATA_DIR, DEFAULT_BATCH_DELAY_MS, DEFAULT_BATCH_SIZE, DEFAULT_SAMPLE_SIZE
from .dashboard import LiveDashboard, print_final_summary
from .errors import ConfigurationError, PersistenceError
from .fetcher import FetchOrchestrator, PageFetcher
from .models import Category
from .rate_limiter import TokenBucketRateLimiter
from .retry import RetryController
from .session import ScrapeOptions, SessionDriver
from .storage import DatasetStore, FailedUrlStore

logger = logging.getLogger("kdapi")

console = Console()

EXIT_OK = 0
EXIT_PERSISTENCE = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def setup_logging(verbose: bool = False):
    """Route library logging through Rich."""
    handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    root = logging.getLogger("kdapi")
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.propagate = False


def options_from_args(args: argparse.Namespace) -> ScrapeOptions:
    categories = [Category(value) for value in args.category] if getattr(args, "category", None) else None
    return ScrapeOptions(
        debug=getattr(args, "debug", False),
        sample_size=getattr(args, "sample", DEFAULT_SAMPLE_SIZE),
        random_sample=not getattr(args, "first", False),
        delay_ms=args.delay,
        batch_size=args.batch_size,
        use_cache=args.cache,
        force_refresh=args.force,
        categories=categories,
    )


async def run_with_dashboard(driver: SessionDriver, session: asyncio.Task):
    """Run the session with the live dashboard."""
    dashboard = LiveDashboard(driver, console)
    dashboard_task = asyncio.create_task(dashboard.run())

    try:
        return await session
    finally:
        dashboard.stop()
        try:
            await asyncio.wait_for(dashboard_task, timeout=1.0)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            pass


async def run_without_dashboard(driver: SessionDriver, session: asyncio.Task):
    """Run the session with a tqdm progress bar per category."""
    from tqdm.asyncio import tqdm

    async def progress_display():
        with tqdm(desc="Scraping", unit=" profiles") as pbar:
            current = None
            last_count = 0
            while True:
                progress = driver.progress
                if progress is not None and progress is not current:
                    current = progress
                    last_count = 0
                    pbar.reset(total=progress.total)
                    pbar.set_description(progress.category.label)
                if current is not None:
                    pbar.update(current.processed - last_count)
                    last_count = current.processed
                    pbar.set_postfix({
                        'failed': current.failed,
                        'cache hits': driver.orchestrator.cache_hits,
                    })
                await asyncio.sleep(0.5)

    progress_task = asyncio.create_task(progress_display())
    try:
        return await session
    finally:
        progress_task.cancel()
        try:
            await progress_task
        except asyncio.CancelledError:
            pass


async def run(args: argparse.Namespace) -> int:
    """Build the pipeline, run one session, report. Returns the exit code."""
    try:
        options = options_from_args(args)
        options.validate()
    except (ConfigurationError, ValueError) as e:
        console.print(f"[red]❌ Invalid options: {e}[/red]")
        return EXIT_CONFIG

    data_dir = Path(args.data_dir)
    cache = ContentCache(Path(args.cache_dir))
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
        cache.ensure_dirs()
    except OSError as e:
        console.print(f"[red]❌ Cannot create directories: {e}[/red]")
        return EXIT_CONFIG

    store = DatasetStore(data_dir)
    failed_store = FailedUrlStore(data_dir)

    if args.command == "scrape":
        mode = f"debug (sample {options.sample_size})" if options.debug else "full"
        console.print(f"[bold cyan]🚀 Starting {mode} scrape[/bold cyan]")
    else:
        console.print("[bold cyan]🔁 Retrying previously failed URLs[/bold cyan]")
    console.print(f"   Data:  [green]{data_dir}[/green]")
    console.print(f"   Cache: [green]{cache.cache_dir}[/green] ({'on' if options.use_cache else 'reads off'})")
    console.print(f"   Batch: {options.batch_size} parallel, {options.delay_ms} ms apart\n")

    async with PageFetcher() as fetcher:
        orchestrator = FetchOrchestrator(
            fetcher,
            cache,
            TokenBucketRateLimiter(),
            RetryController(),
            use_cache=options.use_cache,
        )
        driver = SessionDriver(store, orchestrator, failed_store, options)

        if args.command == "scrape":
            session = asyncio.create_task(driver.run())
        else:
            session = asyncio.create_task(driver.retry_failed())

        def shutdown_handler():
            console.print("\n[yellow]⚠️  Shutting down...[/yellow]")
            session.cancel()

        if sys.platform != 'win32':
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, shutdown_handler)

        try:
            if args.no_dashboard:
                report = await run_without_dashboard(driver, session)
            else:
                report = await run_with_dashboard(driver, session)
        except asyncio.CancelledError:
            console.print("[yellow]⚠️  Interrupted. Completed batches are saved; run again to resume.[/yellow]")
            return EXIT_INTERRUPTED
        except PersistenceError as e:
            console.print(f"[red]❌ Could not save the dataset: {e}[/red]")
            return EXIT_PERSISTENCE
        except ConfigurationError as e:
            console.print(f"[red]❌ {e}[/red]")
            return EXIT_CONFIG
        finally:
            if sys.platform != 'win32':
                for sig in (signal.SIGINT, signal.SIGTERM):
                    loop.remove_signal_handler(sig)

    print_final_summary(report, orchestrator, console)
    if report.failures:
        console.print(f"📝 Failed URLs: [cyan]{failed_store.path}[/cyan] (run [bold]kdapi retry-failed[/bold])")
    console.print(f"📁 Output: [cyan]{store.idols_file}[/cyan], [cyan]{store.groups_file}[/cyan]")
    return EXIT_OK


def _add_common_arguments(parser: argparse.ArgumentParser):
    parser.add_argument('--delay', type=int, default=DEFAULT_BATCH_DELAY_MS,
                        help=f'Delay between batches in ms (default: {DEFAULT_BATCH_DELAY_MS})')
    parser.add_argument('--batch-size', type=int, default=DEFAULT_BATCH_SIZE,
                        help=f'Profiles fetched in parallel per batch (default: {DEFAULT_BATCH_SIZE})')
    parser.add_argument('--cache', action=argparse.BooleanOptionalAction, default=True,
                        help='Read cached pages (default: on; fetched pages are always cached)')
    parser.add_argument('--force', action='store_true',
                        help='Refetch every profile, ignoring the cache and the existing dataset')
    parser.add_argument('--data-dir', default=str(DATA_DIR),
                        help=f'Dataset directory (default: {DATA_DIR})')
    parser.add_argument('--cache-dir', default=str(CACHE_DIR),
                        help=f'Page cache directory (default: {CACHE_DIR})')
    parser.add_argument('--no-dashboard', action='store_true',
                        help='Show a simple progress bar instead of the live dashboard')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Debug logging')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kdapi",
        description="K-pop idol and group profile scraper",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kdapi scrape                     # Full scrape (skips profiles already saved)
  kdapi scrape --debug -s 3        # 3 random profiles per category
  kdapi scrape --force --no-cache  # Refetch everything
  kdapi retry-failed               # Retry URLs in failed_urls.json
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scrape = subparsers.add_parser("scrape", help="Scrape profiles into the dataset")
    scrape.add_argument('--debug', '-d', action='store_true',
                        help='Scrape a sample of each category')
    scrape.add_argument('--sample', '-s', type=int, default=DEFAULT_SAMPLE_SIZE,
                        help=f'Sample size per category in debug mode (default: {DEFAULT_SAMPLE_SIZE})')
    scrape.add_argument('--first', action='store_true',
                        help='In debug mode take the first profiles instead of a random sample')
    scrape.add_argument('--category', action='append', choices=[c.value for c in Category],
                        help='Only scrape this category (repeatable)')
    _add_common_arguments(scrape)

    retry = subparsers.add_parser("retry-failed", help="Retry URLs that failed in earlier sessions")
    _add_common_arguments(retry)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Console script entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Interrupted by user[/yellow]")
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())
