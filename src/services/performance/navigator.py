"""Live performance navigation over an ordered song list.

The navigator is a bounded-index state machine. Every transition is
synchronous and free of I/O; file resolution happens beforehand in the
content session. Transitions are timed and a warning is logged when one
exceeds the configured latency budget.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from core.models.content_models import SongRef

NEXT_KEYS: frozenset[str] = frozenset({"ArrowRight", "Right"})
PREVIOUS_KEYS: frozenset[str] = frozenset({"ArrowLeft", "Left"})
EXIT_KEYS: frozenset[str] = frozenset({"Escape", "Esc"})

DEFAULT_LATENCY_BUDGET_MS = 100.0

StateListener = Callable[["NavigationState"], None]


@dataclass(frozen=True)
class NavigationState:
    """Immutable view of the navigator at one instant."""

    songs: tuple[SongRef, ...] = field(default_factory=tuple)
    current_index: int | None = None

    @property
    def total_songs(self) -> int:
        """Number of songs in the list."""
        return len(self.songs)

    @property
    def can_go_next(self) -> bool:
        """Whether next() would move."""
        return self.current_index is not None and self.current_index < len(self.songs) - 1

    @property
    def can_go_previous(self) -> bool:
        """Whether previous() would move."""
        return self.current_index is not None and self.current_index > 0

    @property
    def current_song(self) -> SongRef | None:
        """Song at the current index, None when the list is empty."""
        return self.songs[self.current_index] if self.current_index is not None else None


def _initial_index(count: int, starting_index: int | None) -> int | None:
    if count == 0:
        return None
    if starting_index is not None and 0 <= starting_index < count:
        return starting_index
    return 0


class PerformanceNavigator:
    """Keyboard-driven navigation through a setlist during a performance."""

    def __init__(
        self,
        songs: Sequence[SongRef] = (),
        *,
        starting_index: int | None = None,
        on_exit: Callable[[], None] | None = None,
        latency_budget_ms: float = DEFAULT_LATENCY_BUDGET_MS,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the navigator.

        Args:
            songs: Songs in performance order
            starting_index: Index to open at; out-of-range values start at 0
            on_exit: Called when the exit key is pressed
            latency_budget_ms: Transition time above which a warning is logged
            logger: Optional logger instance

        """
        songs_tuple = tuple(songs)
        self._state = NavigationState(songs_tuple, _initial_index(len(songs_tuple), starting_index))
        self.on_exit = on_exit
        self.latency_budget_ms = latency_budget_ms
        self.logger = logger or logging.getLogger(__name__)
        self._listeners: list[StateListener] = []

    # =========================== READ-ONLY STATE ===========================

    @property
    def state(self) -> NavigationState:
        """Current immutable state."""
        return self._state

    @property
    def current_index(self) -> int | None:
        """Index of the song on screen, None when there are no songs."""
        return self._state.current_index

    @property
    def can_go_next(self) -> bool:
        """Whether next() would move."""
        return self._state.can_go_next

    @property
    def can_go_previous(self) -> bool:
        """Whether previous() would move."""
        return self._state.can_go_previous

    @property
    def current_song(self) -> SongRef | None:
        """Song on screen."""
        return self._state.current_song

    @property
    def songs(self) -> tuple[SongRef, ...]:
        """Songs in performance order."""
        return self._state.songs

    # =========================== TRANSITIONS ===========================

    def next(self) -> bool:
        """Advance one song; no-op at the last song.

        Returns:
            True if the index changed
        """
        index = self._state.current_index
        if index is None or not self._state.can_go_next:
            return False
        return self._transition(index + 1, "next")

    def previous(self) -> bool:
        """Go back one song; no-op at the first song."""
        index = self._state.current_index
        if index is None or not self._state.can_go_previous:
            return False
        return self._transition(index - 1, "previous")

    def go_to(self, index: int) -> bool:
        """Jump to ``index``; out-of-range indices are ignored."""
        if not 0 <= index < len(self._state.songs):
            self.logger.debug("Ignoring go_to(%d) with %d songs", index, len(self._state.songs))
            return False
        if index == self._state.current_index:
            return False
        return self._transition(index, "go_to")

    def handle_key(self, key: str) -> bool:
        """Dispatch a keyboard event.

        Args:
            key: Key name as reported by the UI (``"ArrowRight"``, ``"Escape"`` ...)

        Returns:
            True if the key belongs to the navigator, False to let it propagate
        """
        if key in NEXT_KEYS:
            self.next()
            return True
        if key in PREVIOUS_KEYS:
            self.previous()
            return True
        if key in EXIT_KEYS:
            if self.on_exit is not None:
                self.on_exit()
            return True
        return False

    def replace_songs(self, songs: Sequence[SongRef]) -> None:
        """Swap in a new song list, keeping the index valid.

        The current index is clamped into the new bounds; 0 when there was
        none before, None when the new list is empty.
        """
        start = time.perf_counter()
        songs_tuple = tuple(songs)
        current = self._state.current_index
        if not songs_tuple:
            index = None
        elif current is None:
            index = 0
        else:
            index = min(current, len(songs_tuple) - 1)

        self._state = NavigationState(songs_tuple, index)
        self._finish("replace_songs", start)

    def _transition(self, index: int, name: str) -> bool:
        start = time.perf_counter()
        self._state = NavigationState(self._state.songs, index)
        self._finish(name, start)
        return True

    def _finish(self, name: str, start: float) -> None:
        """Notify listeners and check the latency budget."""
        for listener in list(self._listeners):
            listener(self._state)
        elapsed_ms = (time.perf_counter() - start) * 1000
        if elapsed_ms > self.latency_budget_ms:
            self.logger.warning(
                "Navigation %s took %.1fms (budget %.0fms)",
                name,
                elapsed_ms,
                self.latency_budget_ms,
            )

    # =========================== LISTENERS ===========================

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a state-change callback.

        Returns:
            A function that unregisters the callback
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove
