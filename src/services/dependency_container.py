"""Dependency Injection Container Module.

Owns the lifecycle of the offline cache, the content service client and the
setlist store. Services are constructed from the loaded AppConfig, initialized
in dependency order and closed in reverse order so pending cache writes land
before the HTTP session goes away.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any, Protocol, Self

from core.core_config import load_config
from core.logger import LogFormat
from core.models.app_config import AppConfig
from services.cache.cache_store import CacheStore
from services.cache.content_session import ContentCacheSession
from services.cache.handle_registry import HandleRegistry
from services.cache.orchestrator import CacheOrchestrator
from services.content.content_client import HttpContentService
from services.performance.navigator import PerformanceNavigator
from services.setlist.position_manager import SetlistPositionManager
from services.setlist.sqlite_store import SqliteSetlistStore

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable, Sequence

    from core.logger import SafeQueueListener
    from core.models.content_models import SongRef
    from core.models.protocols import ContentServiceProtocol


class InitializableService(Protocol):
    """Protocol for services with an async initialize step."""

    def initialize(self) -> Awaitable[None]:
        """Initialize the service."""
        ...


class DependencyContainer:
    """Dependency injection container for the application."""

    def __init__(
        self,
        config_path: str | None,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        *,
        config: AppConfig | None = None,
        logging_listener: SafeQueueListener | None = None,
        content_service: ContentServiceProtocol | None = None,
    ) -> None:
        """Initialize the dependency container.

        Args:
            config_path: Path to the configuration file, None for defaults
            console_logger: Logger for console output
            error_logger: Logger for error messages
            config: Preloaded configuration; skips loading from config_path
            logging_listener: Optional queue listener for logging
            content_service: Replacement for the HTTP content client

        """
        self._console_logger = console_logger
        self._error_logger = error_logger
        self._listener = logging_listener

        self._config_path = config_path
        self._config = config
        self._content_service: ContentServiceProtocol | None = content_service
        self._cache_store: CacheStore | None = None
        self._handle_registry: HandleRegistry | None = None
        self._cache_service: CacheOrchestrator | None = None
        self._setlist_store: SqliteSetlistStore | None = None
        self._position_manager: SetlistPositionManager | None = None
        self._initialized = False

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        if self._config is None:
            msg = "Configuration not loaded"
            raise RuntimeError(msg)
        return self._config

    @property
    def content_service(self) -> ContentServiceProtocol:
        """Get the content service client."""
        if self._content_service is None:
            msg = "Content service not initialized"
            raise RuntimeError(msg)
        return self._content_service

    @property
    def cache_store(self) -> CacheStore:
        """Get the persistent content cache."""
        if self._cache_store is None:
            msg = "Cache store not initialized"
            raise RuntimeError(msg)
        return self._cache_store

    @property
    def handle_registry(self) -> HandleRegistry:
        """Get the object handle registry."""
        if self._handle_registry is None:
            msg = "Handle registry not initialized"
            raise RuntimeError(msg)
        return self._handle_registry

    @property
    def cache_service(self) -> CacheOrchestrator:
        """Get the cache orchestrator."""
        if self._cache_service is None:
            msg = "Cache service not initialized"
            raise RuntimeError(msg)
        return self._cache_service

    @property
    def position_manager(self) -> SetlistPositionManager:
        """Get the setlist position manager."""
        if self._position_manager is None:
            msg = "Position manager not initialized"
            raise RuntimeError(msg)
        return self._position_manager

    @property
    def console_logger(self) -> logging.Logger:
        """Get the console logger."""
        return self._console_logger

    @property
    def error_logger(self) -> logging.Logger:
        """Get the error logger."""
        return self._error_logger

    # =========================== FACTORIES ===========================

    def create_session(self) -> ContentCacheSession:
        """Create a content session bound to the shared cache and handle registry."""
        return ContentCacheSession(
            self.cache_store,
            self.handle_registry,
            self.cache_service,
            logger=self._console_logger,
        )

    def create_navigator(
        self,
        songs: Sequence[SongRef],
        *,
        starting_index: int | None = None,
        on_exit: Callable[[], None] | None = None,
    ) -> PerformanceNavigator:
        """Create a navigator using the configured latency budget."""
        return PerformanceNavigator(
            songs,
            starting_index=starting_index,
            on_exit=on_exit,
            latency_budget_ms=self.config.performance.latency_budget_ms,
            logger=self._console_logger,
        )

    # =========================== LIFECYCLE ===========================

    async def _initialize_service(self, service: InitializableService, service_name: str) -> None:
        """Initialize one service, timing it and logging failures."""
        self._console_logger.debug(" Initializing %s...", LogFormat.entity(service_name))
        start = time.monotonic()
        try:
            await service.initialize()
        except Exception as e:
            elapsed = time.monotonic() - start
            self._error_logger.exception(" Failed to initialize %s after %.2fs: %s", LogFormat.entity(service_name), elapsed, e)
            raise
        elapsed = time.monotonic() - start
        self._console_logger.debug(" %s initialized in %.2fs", LogFormat.entity(service_name), elapsed)

    async def initialize(self) -> None:
        """Construct and initialize all services."""
        if self._initialized:
            return
        self._console_logger.info("Starting async initialization of services...")

        if self._config is None:
            self._config = load_config(self._config_path)
            if self._config_path:
                self._console_logger.info("Configuration: [cyan]%s[/cyan]", self._config_path)
        config = self._config

        if self._content_service is None:
            self._content_service = HttpContentService(config.content_service, self._console_logger, self._error_logger)
        if self._cache_store is None:
            self._cache_store = CacheStore(config.caching, self._console_logger)
        if self._handle_registry is None:
            self._handle_registry = HandleRegistry(config.caching.scratch_dir, self._console_logger)
        if self._cache_service is None:
            self._cache_service = CacheOrchestrator(
                self._cache_store,
                self._content_service,
                config.caching,
                self._console_logger,
                self._error_logger,
            )
        if self._setlist_store is None:
            self._setlist_store = SqliteSetlistStore(config.setlists.database_path)
        if self._position_manager is None:
            self._position_manager = SetlistPositionManager(self._setlist_store, self._console_logger, self._error_logger)

        services: list[tuple[InitializableService, str]] = [
            (self._cache_service, "Cache Service"),
            (self._setlist_store, "Setlist Store"),
        ]
        for service, name in services:
            await self._initialize_service(service, name)

        self._initialized = True
        self._console_logger.info(" All services initialized successfully")

    async def close(self) -> None:
        """Close services: cache first so pending writes finish, then the HTTP client."""
        self._console_logger.debug("Closing %s...", LogFormat.entity("DependencyContainer"))

        if self._cache_service is not None:
            try:
                await self._cache_service.shutdown()
            except (OSError, RuntimeError, asyncio.CancelledError) as e:
                self._error_logger.warning("Failed to shut down cache service: %s", e)

        if self._handle_registry is not None:
            released = self._handle_registry.release_all()
            if released:
                self._console_logger.debug("Released %d leftover object handles", released)

        close_client = getattr(self._content_service, "close", None)
        if callable(close_client):
            try:
                await close_client()
            except (OSError, RuntimeError) as e:
                self._error_logger.warning("Failed to close content service: %s", e)

        self._initialized = False
        self._console_logger.debug("%s closed.", LogFormat.entity("DependencyContainer"))

    def shutdown(self) -> None:
        """Stop the logging listener."""
        if self._listener is not None:
            self._console_logger.debug("Stopping logging listener...")
            self._listener.stop()
            self._listener = None

    def get_stats(self) -> dict[str, Any]:
        """Cache and handle statistics for reporting."""
        return {
            "cache": self.cache_service.get_stats(),
            "handles": {
                "active": self.handle_registry.active_handles,
                "created": self.handle_registry.created,
                "released": self.handle_registry.released,
            },
        }

    async def __aenter__(self) -> Self:
        """Initialize on context entry."""
        await self.initialize()
        return self

    async def __aexit__(self, _exc_type: type[BaseException] | None, _exc: BaseException | None, _tb: object) -> None:
        """Close on context exit."""
        await self.close()
