"""Tests for PerformanceNavigator."""

from __future__ import annotations

from unittest.mock import MagicMock

import allure
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from core.models.content_models import SongRef
from services.performance.navigator import NavigationState, PerformanceNavigator
from tests.factories import make_songs

ACTIONS = st.sampled_from(["next", "previous", "go_to", "replace"])


@allure.epic("Stage Cache")
@allure.feature("Performance Navigation")
@pytest.mark.unit
class TestTransitions:
    """Tests for next, previous and go_to."""

    def test_starts_at_zero(self) -> None:
        """Without a starting index the first song is shown."""
        navigator = PerformanceNavigator(make_songs(3))

        assert navigator.current_index == 0
        assert navigator.state.total_songs == 3
        assert navigator.can_go_next
        assert not navigator.can_go_previous

    @pytest.mark.parametrize(("starting_index", "expected"), [(2, 2), (5, 0), (-1, 0), (None, 0)])
    def test_starting_index(self, starting_index: int | None, expected: int) -> None:
        """Valid starting indices are honoured, others fall back to 0."""
        assert PerformanceNavigator(make_songs(3), starting_index=starting_index).current_index == expected

    def test_empty_list(self) -> None:
        """An empty list has no current song and no moves."""
        navigator = PerformanceNavigator([])

        assert navigator.current_index is None
        assert navigator.current_song is None
        assert navigator.next() is False
        assert navigator.previous() is False
        assert navigator.go_to(0) is False

    def test_next_stops_at_last_song(self) -> None:
        """next() at the last of five songs keeps the index at 4."""
        navigator = PerformanceNavigator(make_songs(5))

        assert navigator.go_to(4) is True
        assert navigator.next() is False
        assert navigator.current_index == 4
        assert not navigator.can_go_next

    def test_previous_stops_at_first_song(self) -> None:
        """previous() at index 0 is a no-op."""
        navigator = PerformanceNavigator(make_songs(3))

        assert navigator.previous() is False
        assert navigator.current_index == 0

    def test_walk_forward_and_back(self) -> None:
        """next and previous move one step at a time."""
        navigator = PerformanceNavigator(make_songs(3))

        navigator.next()
        navigator.next()
        assert navigator.current_song is not None
        assert navigator.current_song.id == "c3"
        navigator.previous()
        assert navigator.current_index == 1

    @pytest.mark.parametrize("index", [-1, 3, 100])
    def test_go_to_out_of_range_ignored(self, index: int) -> None:
        """Out-of-range jumps leave the index unchanged."""
        navigator = PerformanceNavigator(make_songs(3), starting_index=1)

        assert navigator.go_to(index) is False
        assert navigator.current_index == 1

    def test_go_to_same_index(self) -> None:
        """Jumping to the current index reports no change."""
        navigator = PerformanceNavigator(make_songs(3))

        assert navigator.go_to(0) is False


@allure.epic("Stage Cache")
@allure.feature("Performance Navigation")
@pytest.mark.unit
class TestKeysAndListeners:
    """Tests for keyboard dispatch, listeners and list replacement."""

    @pytest.mark.parametrize(("key", "expected_index"), [("ArrowRight", 2), ("Right", 2), ("ArrowLeft", 0), ("Left", 0)])
    def test_arrow_keys(self, key: str, expected_index: int) -> None:
        """Arrow keys navigate and are consumed."""
        navigator = PerformanceNavigator(make_songs(3), starting_index=1)

        assert navigator.handle_key(key) is True
        assert navigator.current_index == expected_index

    def test_escape_calls_exit(self) -> None:
        """Escape invokes the exit callback without moving."""
        on_exit = MagicMock()
        navigator = PerformanceNavigator(make_songs(3), on_exit=on_exit)

        assert navigator.handle_key("Escape") is True
        on_exit.assert_called_once_with()
        assert navigator.current_index == 0

    def test_other_keys_propagate(self) -> None:
        """Unrelated keys are not consumed."""
        navigator = PerformanceNavigator(make_songs(3))

        assert navigator.handle_key("a") is False
        assert navigator.handle_key(" ") is False

    def test_arrow_at_boundary_still_consumed(self) -> None:
        """An arrow key at the end is consumed even though nothing moves."""
        navigator = PerformanceNavigator(make_songs(2), starting_index=1)

        assert navigator.handle_key("ArrowRight") is True
        assert navigator.current_index == 1

    def test_listener_receives_state(self) -> None:
        """Listeners see every transition and can unsubscribe."""
        seen: list[NavigationState] = []
        navigator = PerformanceNavigator(make_songs(3))
        remove = navigator.add_listener(seen.append)

        navigator.next()
        remove()
        navigator.next()

        assert [state.current_index for state in seen] == [1]

    def test_no_op_does_not_notify(self) -> None:
        """Blocked transitions do not reach listeners."""
        listener = MagicMock()
        navigator = PerformanceNavigator(make_songs(1))
        navigator.add_listener(listener)

        navigator.next()
        navigator.previous()

        listener.assert_not_called()

    def test_slow_listener_logs_budget_warning(self) -> None:
        """A transition slower than the budget logs a warning."""
        logger = MagicMock()
        navigator = PerformanceNavigator(make_songs(2), latency_budget_ms=-1, logger=logger)

        navigator.next()

        logger.warning.assert_called_once()

    def test_replace_songs_clamps_index(self) -> None:
        """A shorter list pulls the index back inside its bounds."""
        navigator = PerformanceNavigator(make_songs(5), starting_index=4)

        navigator.replace_songs(make_songs(2))

        assert navigator.current_index == 1
        assert len(navigator.songs) == 2

    def test_replace_songs_empty_then_filled(self) -> None:
        """Emptying the list clears the index; refilling starts at 0."""
        navigator = PerformanceNavigator(make_songs(3), starting_index=2)

        navigator.replace_songs([])
        assert navigator.current_index is None

        navigator.replace_songs(make_songs(4))
        assert navigator.current_index == 0


@allure.epic("Stage Cache")
@allure.feature("Performance Navigation")
@pytest.mark.unit
class TestNavigatorProperties:
    """Property-based tests for index bounds."""

    @given(
        size=st.integers(min_value=0, max_value=12),
        steps=st.lists(st.tuples(ACTIONS, st.integers(min_value=-3, max_value=15)), max_size=40),
    )
    @settings(max_examples=200, deadline=None)
    def test_index_always_in_bounds(self, size: int, steps: list[tuple[str, int]]) -> None:
        """No sequence of operations leaves the index outside the song list."""
        navigator = PerformanceNavigator([SongRef(id=f"s{i}") for i in range(size)])

        for action, value in steps:
            match action:
                case "next":
                    navigator.next()
                case "previous":
                    navigator.previous()
                case "go_to":
                    navigator.go_to(value)
                case "replace":
                    navigator.replace_songs([SongRef(id=f"r{i}") for i in range(max(value, 0))])

            songs = navigator.songs
            if songs:
                assert navigator.current_index is not None
                assert 0 <= navigator.current_index < len(songs)
            else:
                assert navigator.current_index is None
