"""Infinite-scroll pager as an explicit state machine.

States: IDLE and LOADING. Messages: FilterChanged, ScrolledIntoView,
FetchSucceeded, FetchFailed. ``reduce`` is pure; it returns the next state
and, when a request must be issued, the FetchCommand describing it.

Invariants:
  - at most one fetch in flight; ScrolledIntoView while LOADING is a no-op
  - FilterChanged is a full restart: entries cleared, back to page 1
  - every fetch carries the generation it was issued under; a response from
    an older generation (superseded by a filter change) is dropped
  - a failed fetch leaves ``has_more`` untouched so the same page can be retried
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class Phase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"


@dataclass(frozen=True)
class FilterChanged:
    filters: dict[str, Any]


@dataclass(frozen=True)
class ScrolledIntoView:
    pass


@dataclass(frozen=True)
class FetchSucceeded:
    generation: int
    page: int
    entries: tuple[dict[str, Any], ...]
    has_next_page: bool


@dataclass(frozen=True)
class FetchFailed:
    generation: int
    page: int
    error: str


Message = FilterChanged | ScrolledIntoView | FetchSucceeded | FetchFailed


@dataclass(frozen=True)
class FetchCommand:
    generation: int
    page: int
    filters: dict[str, Any]


@dataclass(frozen=True)
class PagerState:
    phase: Phase = Phase.IDLE
    filters: dict[str, Any] = field(default_factory=dict)
    entries: tuple[dict[str, Any], ...] = ()
    current_page: int = 0
    has_more: bool = True
    generation: int = 0
    in_flight_page: int | None = None
    error: str | None = None

    @property
    def loading(self) -> bool:
        return self.phase is Phase.LOADING

    @property
    def empty(self) -> bool:
        """The "no results" state: a completed first load that found nothing."""
        return (
            not self.loading
            and self.error is None
            and self.current_page >= 1
            and not self.entries
        )

    @property
    def exhausted(self) -> bool:
        """The "no more results" state, distinct from an error."""
        return not self.loading and self.error is None and self.current_page >= 1 and not self.has_more


def reduce(state: PagerState, message: Message) -> tuple[PagerState, FetchCommand | None]:
    """Apply one message; return the new state and an optional fetch to issue."""
    if isinstance(message, FilterChanged):
        generation = state.generation + 1
        next_state = PagerState(
            phase=Phase.LOADING,
            filters=dict(message.filters),
            generation=generation,
            in_flight_page=1,
        )
        return next_state, FetchCommand(generation, 1, next_state.filters)

    if isinstance(message, ScrolledIntoView):
        if state.loading or not state.has_more:
            return state, None
        page = state.current_page + 1
        next_state = replace(state, phase=Phase.LOADING, in_flight_page=page, error=None)
        return next_state, FetchCommand(state.generation, page, state.filters)

    if isinstance(message, FetchSucceeded):
        if message.generation != state.generation or message.page != state.in_flight_page:
            return state, None
        return replace(
            state,
            phase=Phase.IDLE,
            entries=state.entries + tuple(message.entries),
            current_page=message.page,
            has_more=message.has_next_page,
            in_flight_page=None,
            error=None,
        ), None

    if isinstance(message, FetchFailed):
        if message.generation != state.generation or message.page != state.in_flight_page:
            return state, None
        return replace(state, phase=Phase.IDLE, in_flight_page=None, error=message.error), None

    msg = f"Unknown pager message: {message!r}"
    raise TypeError(msg)
