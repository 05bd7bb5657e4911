"""FPL upstream verification CLI."""

import argparse
import asyncio
import sys

from rich.console import Console
from rich.table import Table

from letletme_sync.infrastructure.http_client import ResilientHTTPClient, Timeout
from letletme_sync.infrastructure.rate_limiter import TokenBucketRateLimiter
from letletme_sync.infrastructure.retry import RetryPolicy
from letletme_sync.settings import HTTPSettings
from letletme_sync.upstream.dto import EventData
from letletme_sync.upstream.fpl import FplApi

console = Console()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Verify the FPL API adapter with real API calls")
    parser.add_argument(
        "--entry-id",
        type=int,
        default=1,
        help="Entry id to fetch in the entry check (default: 1)",
    )
    parser.add_argument(
        "--base-url",
        type=str,
        default=None,
        help="Override FPL_BASE_URL",
    )
    parser.add_argument(
        "--preview-limit",
        type=int,
        default=5,
        help="How many events to show in preview table (default: 5)",
    )
    return parser


def _render_event_preview(events: list[EventData], preview_limit: int) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Id", style="cyan", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Deadline", style="yellow")
    table.add_column("Status", style="green")

    for event in events[:preview_limit]:
        status = "current" if event.is_current else "next" if event.is_next else ""
        if event.finished:
            status = status or "finished"
        table.add_row(str(event.id), event.name, event.deadline_time.isoformat(), status)

    if len(events) > preview_limit:
        table.add_row("...", "...", "...", "...")

    console.print(table)


async def verify_fpl(base_url: str, entry_id: int, preview_limit: int) -> bool:
    console.print(f"\n[bold cyan]Verifying FPL API: {base_url}[/bold cyan]\n")

    client = ResilientHTTPClient(
        base_url,
        rate_limiter=TokenBucketRateLimiter(capacity=5, tokens_per_interval=5, interval=1.0),
        retry_policy=RetryPolicy(max_attempts=2),
        timeout=Timeout.LONG,
        cache_bust=True,
    )
    async with client:
        api = FplApi(client)

        console.print("[bold]Step 1: API - get_bootstrap_events()[/bold]")
        try:
            events = await api.get_bootstrap_events()
        except Exception as exc:
            console.print(f"  [bold red][FAIL][/bold red] get_bootstrap_events() failed: {exc}")
            return False

        console.print(f"  [green][OK][/green] Retrieved {len(events)} events")
        if not events:
            console.print("  [yellow][WARN][/yellow] No events returned. Expected between seasons.")
        else:
            _render_event_preview(events, preview_limit)
            current = next((event for event in events if event.is_current), None)
            if current is None:
                console.print("  [yellow][WARN][/yellow] No current event flagged")
            else:
                console.print(f"  [dim]Current event: {current.id} ({current.name})[/dim]")

        console.print(f"\n[bold]Step 2: API - get_entry_info({entry_id})[/bold]")
        try:
            entry = await api.get_entry_info(entry_id)
        except Exception as exc:
            console.print(f"  [bold red][FAIL][/bold red] get_entry_info() failed: {exc}")
            return False

        console.print(f"  [green][OK][/green] {entry.entry_name} ({entry.player_name})")
        console.print(
            f"  [dim]Overall: {entry.overall_points} pts, rank {entry.overall_rank}, "
            f"value {entry.team_value}, bank {entry.bank}[/dim]"
        )

    console.print("\n[bold green][OK] All checks passed[/bold green]\n")
    return True


async def amain(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.entry_id < 1:
        console.print("[bold red][FAIL][/bold red] --entry-id must be >= 1")
        return 1

    if args.preview_limit < 1:
        console.print("[bold red][FAIL][/bold red] --preview-limit must be >= 1")
        return 1

    base_url = args.base_url or HTTPSettings().base_url  # pyright: ignore[reportCallIssue]
    success = await verify_fpl(base_url, args.entry_id, args.preview_limit)
    return 0 if success else 1


def main() -> int:
    return asyncio.run(amain())


def entrypoint() -> None:
    sys.exit(main())
