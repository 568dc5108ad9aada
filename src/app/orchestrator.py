"""Command orchestrator for Stage Cache.

Routes parsed CLI commands to the cache, content and setlist services and
renders their results on the shared Rich console.
"""

import argparse
from typing import TYPE_CHECKING

from rich.table import Table

from core.exceptions import ContentFetchError
from core.logger import LogFormat, get_shared_console
from core.models.cache_types import CachePriority
from core.models.content_models import ReorderResult
from services.performance.render_selector import ContentRenderSelector

if TYPE_CHECKING:
    from services.dependency_container import DependencyContainer


class Orchestrator:
    """Runs one CLI command against the initialized services."""

    def __init__(self, deps: "DependencyContainer") -> None:
        """Initialize the orchestrator with dependencies.

        Args:
            deps: Dependency container with all required services

        """
        self.deps = deps
        self.console = get_shared_console()
        self.console_logger = deps.console_logger
        self.error_logger = deps.error_logger

    async def run_command(self, args: argparse.Namespace) -> int:
        """Execute the command named in ``args``.

        Returns:
            Process exit code

        """
        match args.command:
            case "warm" | "cache":
                return await self._run_warm(args)
            case "preflight":
                return await self._run_preflight(args)
            case "stats":
                return self._run_stats()
            case "insert":
                return self._report(
                    await self.deps.position_manager.insert_song(args.setlist, args.content, args.position, args.notes),
                )
            case "remove":
                return self._report(await self.deps.position_manager.remove_song(args.song))
            case "move":
                return self._report(await self.deps.position_manager.move_song(args.song, args.position))
            case "renumber":
                return self._report(await self.deps.position_manager.renumber(args.setlist))
            case "list" | "ls":
                return await self._run_list(args)
            case _:
                self.error_logger.error("No command given; run with --help for usage")
                return 2

    async def _run_warm(self, args: argparse.Namespace) -> int:
        """Cache every file of a setlist."""
        priority = CachePriority(args.priority)
        try:
            report = await self.deps.cache_service.warm_setlist(args.setlist, priority)
        except ContentFetchError as e:
            self.error_logger.error("Could not list setlist %s: %s", args.setlist, e)
            return 1

        await self.deps.cache_store.wait_for_maintenance()
        self.console_logger.info(
            "Setlist %s: %s cached, %s already fresh, %s failed in %s",
            LogFormat.entity(args.setlist),
            LogFormat.number(report.cached),
            LogFormat.number(report.skipped),
            LogFormat.number(report.failed),
            LogFormat.duration(report.get_duration_seconds()),
        )
        return 1 if report.failed else 0

    async def _run_preflight(self, args: argparse.Namespace) -> int:
        """Print the render decision for every song of a setlist."""
        try:
            songs = await self.deps.content_service.list_songs(args.setlist)
        except ContentFetchError as e:
            self.error_logger.error("Could not list setlist %s: %s", args.setlist, e)
            return 1

        async with self.deps.create_session() as session:
            resolved = await session.resolve_content(songs)
            table = Table(title=f"Setlist {args.setlist}", show_lines=False)
            for header in ("#", "Title", "Type", "Render", "Source"):
                table.add_column(header, overflow="fold")

            missing = 0
            for index, song in enumerate(songs):
                url = resolved.url_at(index)
                decision = ContentRenderSelector.select(song, url, resolved.mime_type_at(index))
                if not decision.has_content:
                    missing += 1
                source = "cache" if url and url.startswith("file:") else ("remote" if url else "-")
                table.add_row(str(index + 1), song.title or song.id, decision.content_type or "-", decision.kind.value, source)

        self.console.print(table)
        if missing:
            self.console_logger.warning("%s songs have nothing to show", LogFormat.number(missing))
        return 0

    def _run_stats(self) -> int:
        """Print cache statistics."""
        metrics = self.deps.cache_service.cache_metrics()
        stats = self.deps.get_stats()["cache"]

        table = Table(title="Offline cache", show_header=False)
        table.add_column("Metric")
        table.add_column("Value", justify="right")
        table.add_row("Entries", str(metrics.entry_count))
        table.add_row("Size", LogFormat.size(metrics.total_bytes))
        table.add_row("Hits", str(metrics.hit_count))
        table.add_row("Misses", str(metrics.miss_count))
        table.add_row("Hit ratio", f"{metrics.hit_ratio:.1%}")
        table.add_row("Evictions", str(stats.get("evictions", 0)))
        self.console.print(table)
        return 0

    async def _run_list(self, args: argparse.Namespace) -> int:
        """Print the songs of a setlist in position order."""
        songs = await self.deps.position_manager.list_songs(args.setlist)
        if not songs:
            self.console_logger.info("Setlist %s is empty", LogFormat.entity(args.setlist))
            return 0

        table = Table(title=f"Setlist {args.setlist}")
        for header in ("Position", "Song id", "Content id", "Notes"):
            table.add_column(header, overflow="fold")
        for song in songs:
            table.add_row(str(song.position), song.id, song.content_id, song.notes)
        self.console.print(table)
        return 0

    def _report(self, result: ReorderResult) -> int:
        """Log a reorder result and map it onto an exit code."""
        if not result.ok:
            self.error_logger.error("%s failed: %s", result.operation.value, result.error)
            return 1
        if result.song is not None:
            self.console.print(f"{result.operation.value}: song [cyan]{result.song.id}[/cyan] at position {result.song.position}")
        return 0
