"""Command-line interface for Stage Cache."""

import argparse
from typing import Any


def _add_warm_command(subparsers: Any) -> None:
    """Add warm command."""
    parser = subparsers.add_parser(
        "warm",
        aliases=["cache"],
        help="Download every file of a setlist into the offline cache",
        description="Fetch the files of all songs in a setlist and store them for offline use",
    )
    parser.add_argument(
        "--setlist",
        required=True,
        help="Setlist id to warm",
    )
    parser.add_argument(
        "--priority",
        choices=["normal", "high"],
        default="normal",
        help="Priority of the stored entries; high entries are evicted last",
    )


def _add_preflight_command(subparsers: Any) -> None:
    """Add preflight command."""
    parser = subparsers.add_parser(
        "preflight",
        help="Show how each song of a setlist would be rendered on stage",
        description="Resolve every song of a setlist through the cache and print its render decision",
    )
    parser.add_argument(
        "--setlist",
        required=True,
        help="Setlist id to check",
    )


def _add_insert_command(subparsers: Any) -> None:
    """Add insert command."""
    parser = subparsers.add_parser(
        "insert",
        help="Insert a content item into a setlist",
        description="Insert a content item at a position, shifting later songs down",
    )
    parser.add_argument("--setlist", required=True, help="Setlist id")
    parser.add_argument("--content", required=True, help="Content id to insert")
    parser.add_argument("--position", required=True, type=int, help="1-based position, at most song count + 1")
    parser.add_argument("--notes", default="", help="Performance notes for the song")


class CLI:
    """Command-line interface handler."""

    def __init__(self) -> None:
        """Initialize CLI parser."""
        self.parser = self._create_parser()

    @staticmethod
    def _create_parser() -> argparse.ArgumentParser:
        """Create the argument parser.

        Returns:
            Configured ArgumentParser

        """
        parser = argparse.ArgumentParser(
            prog="stagecache",
            description="Stage Cache - offline content cache and setlist tools for live performance",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
    # Cache every file of a setlist before the gig
    %(prog)s warm --setlist 42

    # Check what will be shown for each song
    %(prog)s preflight --setlist 42

    # Move a song to the top of its setlist
    %(prog)s move --song 7f3a --position 1
            """,
        )

        # Global options
        parser.add_argument(
            "--verbose",
            "-v",
            action="store_true",
            help="Enable verbose logging",
        )
        parser.add_argument(
            "--config",
            type=str,
            help="Path to configuration file. If not specified, uses CONFIG_PATH or 'config.yaml' when present.",
        )

        subparsers = parser.add_subparsers(
            dest="command", title="Commands", description="Available commands", help="Use '%(prog)s COMMAND --help' for command-specific help"
        )

        _add_warm_command(subparsers)
        _add_preflight_command(subparsers)
        CLI._add_stats_command(subparsers)
        _add_insert_command(subparsers)
        CLI._add_remove_command(subparsers)
        CLI._add_move_command(subparsers)
        CLI._add_list_command(subparsers)
        CLI._add_renumber_command(subparsers)

        return parser

    @staticmethod
    def _add_stats_command(subparsers: Any) -> None:
        """Add stats command."""
        subparsers.add_parser(
            "stats",
            help="Show offline cache statistics",
            description="Print entry count, size and hit ratio of the offline cache",
        )

    @staticmethod
    def _add_remove_command(subparsers: Any) -> None:
        """Add remove command."""
        parser = subparsers.add_parser(
            "remove",
            help="Remove a song from its setlist",
            description="Delete a setlist song and move later songs up",
        )
        parser.add_argument("--song", required=True, help="Setlist song id")

    @staticmethod
    def _add_move_command(subparsers: Any) -> None:
        """Add move command."""
        parser = subparsers.add_parser(
            "move",
            help="Move a song within its setlist",
            description="Move a setlist song to a new position, shifting the songs in between",
        )
        parser.add_argument("--song", required=True, help="Setlist song id")
        parser.add_argument("--position", required=True, type=int, help="New 1-based position")

    @staticmethod
    def _add_list_command(subparsers: Any) -> None:
        """Add list command."""
        parser = subparsers.add_parser(
            "list",
            aliases=["ls"],
            help="List the songs of a setlist",
            description="Print setlist songs in position order",
        )
        parser.add_argument("--setlist", required=True, help="Setlist id")

    @staticmethod
    def _add_renumber_command(subparsers: Any) -> None:
        """Add renumber command."""
        parser = subparsers.add_parser(
            "renumber",
            help="Rewrite setlist positions to 1..n",
            description="Close gaps left in a setlist by other tools, keeping the song order",
        )
        parser.add_argument("--setlist", required=True, help="Setlist id")

    def parse_args(self, args: list[str] | None = None) -> argparse.Namespace:
        """Parse command-line arguments.

        Args:
            args: List of arguments (use sys.argv if None)

        Returns:
            Parsed arguments namespace

        """
        return self.parser.parse_args(args)

    def print_help(self) -> None:
        """Print help message."""
        self.parser.print_help()
