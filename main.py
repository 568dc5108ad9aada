#!/usr/bin/env python3
"""Stage Cache - Main entry point.

Offline content cache, setlist position tools and performance preflight for
a music content-management service.
"""

import argparse
import asyncio
import logging
import sys
import time
import warnings
from pathlib import Path

# Add src directory to Python path BEFORE imports
sys.path.insert(0, str(Path(__file__).parent / "src"))

from app.cli import CLI
from app.orchestrator import Orchestrator
from core.core_config import load_config
from core.exceptions import ConfigurationError
from core.models.app_config import LogLevel
from core.logger import SafeQueueListener, get_loggers
from services.dependency_container import DependencyContainer

# Suppress Pydantic migration warnings
warnings.filterwarnings("ignore", category=UserWarning, module="pydantic._migration")


async def _setup_environment(args: argparse.Namespace) -> tuple[DependencyContainer, SafeQueueListener | None, logging.Logger, logging.Logger]:
    """Set up configuration, logging, and dependencies.

    Args:
        args: Parsed command line arguments

    Returns:
        Tuple of (deps, listener, logger_console, logger_error)

    """
    config = load_config(args.config)
    if args.verbose:
        config = config.model_copy(
            update={"logging": config.logging.model_copy(update={"levels": config.logging.levels.model_copy(update={"console": LogLevel.DEBUG})})},
        )

    logger_console, logger_error, listener = get_loggers(config)

    deps = DependencyContainer(
        config_path=args.config,
        console_logger=logger_console,
        error_logger=logger_error,
        config=config,
        logging_listener=listener,
    )
    await deps.initialize()

    return deps, listener, logger_console, logger_error


async def _cleanup_resources(
    deps: DependencyContainer,
    listener: SafeQueueListener | None,
    logger_console: logging.Logger | None,
    start_time: float,
) -> None:
    """Cleanup all resources and log execution time."""
    await deps.close()
    deps.shutdown()

    if listener:
        listener.stop()

    if logger_console:
        execution_time = time.time() - start_time
        logger_console.debug("Total execution time: %.2f seconds", execution_time)


async def main_async(argv: list[str] | None = None) -> int:
    """Execute main async entry point.

    Returns:
        Process exit code

    """
    cli = CLI()
    args = cli.parse_args(argv)
    if args.command is None:
        cli.print_help()
        return 2
    start_time = time.time()

    try:
        deps, listener, logger_console, logger_error = await _setup_environment(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    try:
        orchestrator = Orchestrator(deps)
        return await orchestrator.run_command(args)
    except (RuntimeError, ValueError, OSError) as e:
        logger_error.critical("A critical error occurred: %s", e, exc_info=True)
        return 1
    finally:
        await _cleanup_resources(deps, listener, logger_console, start_time)


def main() -> None:
    """Execute the main entry point."""
    try:
        sys.exit(asyncio.run(main_async()))
    except KeyboardInterrupt:
        print("\nInterrupted by user.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
