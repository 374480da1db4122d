"""
Live dashboard for monitoring a scrape session using Rich.
"""

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import Category

if TYPE_CHECKING:
    from .fetcher import FetchOrchestrator
    from .session import SessionDriver, SessionReport


def _format_duration(seconds: float) -> str:
    """Format seconds as HH:MM:SS."""
    return str(timedelta(seconds=int(seconds)))


def _bar(fraction: float, width: int) -> str:
    filled = int(max(0.0, min(1.0, fraction)) * width)
    return "█" * filled + "░" * (width - filled)


class LiveDashboard:
    """
    Real-time terminal dashboard for a ``SessionDriver``.
    Shows per-category counts, batch progress with ETA and fetch health.
    """

    def __init__(self, driver: "SessionDriver", console: Optional[Console] = None):
        self.driver = driver
        self.console = console or Console()
        self._running = False

    def _make_header(self) -> Panel:
        header_text = Text()
        header_text.append("K-pop Profile Scraper", style="bold cyan")
        header_text.append(f"  ·  {self.driver.state.value}", style="dim")
        return Panel(header_text, style="bold white on dark_blue")

    def _make_category_table(self) -> Table:
        """Per-category counts for the session so far."""
        report = self.driver.report

        table = Table(title="📊 Categories", expand=True, title_style="bold magenta")
        table.add_column("Category", style="cyan", justify="left")
        table.add_column("Found", justify="right")
        table.add_column("Known", style="dim", justify="right")
        table.add_column("Saved", style="green", justify="right")
        table.add_column("Failed", style="red", justify="right")
        table.add_column("State", justify="left")

        for category in Category:
            entry = report.categories.get(category)
            if entry is None:
                table.add_row(category.label, "-", "-", "-", "-", Text("pending", style="dim"))
                continue
            if entry.discovery_error:
                state = Text("listing failed", style="red")
            elif entry.checkpointed:
                state = Text("✅ done", style="green")
            else:
                state = Text("running", style="yellow")
            table.add_row(
                category.label,
                f"{entry.discovered:,}",
                f"{entry.skipped:,}",
                f"{entry.succeeded:,}",
                f"{entry.failed:,}",
                state,
            )

        table.add_section()
        table.add_row(
            "[bold]TOTAL[/bold]",
            "",
            "",
            f"[bold]{report.total_succeeded:,}[/bold]",
            f"[bold]{report.total_failed:,}[/bold]",
            "",
        )
        return table

    def _make_status_panel(self) -> Panel:
        """Batch progress with time estimates."""
        progress = self.driver.progress

        status_table = Table.grid(padding=(0, 2))
        status_table.add_column(justify="right", style="bold")
        status_table.add_column(justify="left")

        category = self.driver.current_category
        status_table.add_row("📂 Category:", category.label if category else "-")

        if progress is None:
            status_table.add_row("📊 Progress:", Text("Waiting...", style="dim"))
        else:
            progress_text = Text()
            progress_text.append(f"{_bar(progress.progress_percent / 100, 15)} ", style="green")
            progress_text.append(f"{progress.progress_percent:.1f}%", style="bold green")
            status_table.add_row("📊 Progress:", progress_text)
            status_table.add_row("📦 Batch:", f"{progress.batches_done}/{progress.batches_total}")
            status_table.add_row("✔️  Success:", f"{progress.success_rate:.1f}%")
            status_table.add_row("⏱️  Elapsed:", _format_duration(progress.elapsed_time))

            remaining = progress.estimated_remaining_seconds
            if remaining > 0:
                eta_text = Text(_format_duration(remaining), style="cyan")
            else:
                eta_text = Text("Calculating...", style="dim")
            status_table.add_row("⏳ ETA:", eta_text)
            status_table.add_row("⚡ Speed:", f"{progress.urls_per_minute:.1f} profiles/min")

        status_table.add_row("⏱️  Session:", _format_duration(self.driver.report.elapsed_time))
        return Panel(status_table, title="🔧 Status", border_style="blue")

    def _make_health_panel(self) -> Panel:
        """Cache, rate limiter and retry counters."""
        orchestrator = self.driver.orchestrator

        health_table = Table.grid(padding=(0, 2))
        health_table.add_column(justify="right", style="bold")
        health_table.add_column(justify="left")

        health_table.add_row("💾 Cache hits:", f"{orchestrator.cache_hits:,}")
        health_table.add_row("🌐 Fetches:", f"{orchestrator.network_fetches:,}")
        health_table.add_row("🪣 Tokens:", f"{orchestrator.rate_limiter.tokens:.1f}")
        health_table.add_row("🔁 Retries:", f"{orchestrator.retry.total_retries:,}")

        rate_limited = orchestrator.retry.total_rate_limited
        style = "bold red" if rate_limited else "green"
        health_table.add_row("🚦 429s:", Text(f"{rate_limited:,}", style=style))
        health_table.add_row("❌ Gave up:", f"{len(orchestrator.retry.permanently_failed):,}")

        return Panel(health_table, title="🚦 Health", border_style="yellow")

    def _make_activity_panel(self) -> Panel:
        progress = self.driver.progress

        if progress is not None and progress.current_urls:
            activity_text = Text()
            for i, url in enumerate(progress.current_urls[-5:]):
                if i > 0:
                    activity_text.append("\n")
                activity_text.append("→ ", style="green")
                activity_text.append(url, style="dim")
        else:
            activity_text = Text("Waiting for tasks...", style="dim italic")

        return Panel(activity_text, title="🌐 Current Batch", border_style="green")

    def generate_layout(self) -> Layout:
        """Generate the full dashboard layout."""
        layout = Layout()

        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=8)
        )

        layout["body"].split_row(
            Layout(name="main", ratio=2),
            Layout(name="sidebar", ratio=1)
        )

        layout["sidebar"].split_column(
            Layout(name="status"),
            Layout(name="health")
        )

        layout["header"].update(self._make_header())
        layout["main"].update(self._make_category_table())
        layout["status"].update(self._make_status_panel())
        layout["health"].update(self._make_health_panel())
        layout["footer"].update(self._make_activity_panel())

        return layout

    async def run(self, refresh_rate: float = 0.5):
        """Run the live dashboard until ``stop()`` is called."""
        self._running = True

        with Live(self.generate_layout(), console=self.console,
                  refresh_per_second=int(1 / refresh_rate), screen=True) as live:
            while self._running:
                live.update(self.generate_layout())
                await asyncio.sleep(refresh_rate)

    def stop(self):
        self._running = False


def print_final_summary(
    report: "SessionReport",
    orchestrator: Optional["FetchOrchestrator"] = None,
    console: Optional[Console] = None,
):
    """Print the session summary after scraping completes."""
    if console is None:
        console = Console()

    console.print("\n")
    console.print(Panel.fit(
        "[bold green]✅ Scraping Complete![/bold green]",
        border_style="green"
    ))

    table = Table(title="📊 Final Results", expand=False)
    table.add_column("Category", style="cyan")
    table.add_column("Found", justify="right")
    table.add_column("Known", style="dim", justify="right")
    table.add_column("Added", style="green", justify="right")
    table.add_column("Updated", style="yellow", justify="right")
    table.add_column("Failed", style="red", justify="right")

    for category, entry in report.categories.items():
        table.add_row(
            category.label,
            f"{entry.discovered:,}",
            f"{entry.skipped:,}",
            f"{entry.added:,}",
            f"{entry.updated:,}",
            f"{entry.failed:,}",
        )

    table.add_section()
    table.add_row(
        "[bold]Total[/bold]",
        "",
        "",
        f"[bold]{sum(e.added for e in report.categories.values()):,}[/bold]",
        f"[bold]{sum(e.updated for e in report.categories.values()):,}[/bold]",
        f"[bold]{report.total_failed:,}[/bold]",
    )
    console.print(table)

    if orchestrator is not None:
        retry = orchestrator.retry
        console.print(f"\n💾 Cache hits: {orchestrator.cache_hits:,}")
        console.print(f"🌐 Network fetches: {orchestrator.network_fetches:,}")
        if retry.total_retries or retry.total_rate_limited:
            console.print("\n[yellow]🚦 Retry Summary:[/yellow]")
            console.print(f"   Retries: {retry.total_retries:,}")
            console.print(f"   429 responses: {retry.total_rate_limited:,}")

    discovery_errors = [e for e in report.categories.values() if e.discovery_error]
    for entry in discovery_errors:
        console.print(f"[red]⚠️  {entry.category.label}: listing failed ({entry.discovery_error})[/red]")

    console.print(f"\n⏱️  Session runtime: {_format_duration(report.elapsed_time)}")
    console.print(f"❌ Failed URLs: {report.total_failed:,}")
