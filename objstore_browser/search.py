from __future__ import annotations
"""Client-side object search and the fetch-ahead loop that feeds it."""
from dataclasses import dataclass
import logging
from typing import Callable, Iterable, Optional, TypeVar

from .models import Bucket, ObjectEntry

Scheduler = Callable[[float, Callable[[], None]], Callable[[], None]]

DEFAULT_PREFETCH_DELAY = 0.3

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def _filter_by_name(items: Iterable[T], query: str, name: Callable[[T], str]) -> list[T]:
    needle = query.lower()
    if not needle:
        return list(items)
    return [item for item in items if needle in name(item).lower()]


def filter_objects(objects: Iterable[ObjectEntry], query: str) -> list[ObjectEntry]:
    """Case-insensitive substring match on the object key."""

    return _filter_by_name(objects, query, lambda entry: entry.key)


def filter_buckets(buckets: Iterable[Bucket], query: str) -> list[Bucket]:
    """Case-insensitive substring match on the bucket name."""

    return _filter_by_name(buckets, query, lambda bucket: bucket.name)


@dataclass(frozen=True)
class SearchState:
    """What the prefetch loop needs to know about the current listing."""

    query: str
    has_more: bool
    loading: bool
    generation: int


class PrefetchController:
    """Keeps requesting pages, one delayed fetch at a time, while a search is active.

    ``read_state`` returns the current :class:`SearchState`; ``fetch_more`` starts a
    load-more request and returns whether one was issued. The owner reports every
    finished listing through :meth:`listing_finished` and calls :meth:`cancel` when
    the query or the listing context changes.
    """

    def __init__(
        self,
        *,
        read_state: Callable[[], SearchState],
        fetch_more: Callable[[], bool],
        schedule: Scheduler,
        delay: float = DEFAULT_PREFETCH_DELAY,
    ) -> None:
        self._read_state = read_state
        self._fetch_more = fetch_more
        self._schedule = schedule
        self._delay = delay
        self._cancel_timer: Optional[Callable[[], None]] = None
        self._in_flight = False
        self._token = 0
        self._halted_for: Optional[tuple[int, str]] = None

    @property
    def delay(self) -> float:
        return self._delay

    @delay.setter
    def delay(self, value: float) -> None:
        self._delay = max(float(value), 0.0)

    @property
    def search_loading(self) -> bool:
        return self._cancel_timer is not None or self._in_flight

    def evaluate(self) -> bool:
        """Schedule the next fetch if the loop should keep going."""

        if self.search_loading:
            return False
        state = self._read_state()
        if not state.query or not state.has_more or state.loading:
            return False
        tag = (state.generation, state.query)
        if self._halted_for == tag:
            return False
        token = self._token
        LOGGER.debug("Scheduling search prefetch in %.3fs", self._delay)
        self._cancel_timer = self._schedule(self._delay, lambda: self._fire(token, tag))
        return True

    def listing_finished(self, succeeded: bool) -> None:
        was_prefetch = self._in_flight
        self._in_flight = False
        state = self._read_state()
        if succeeded:
            self._halted_for = None
        elif was_prefetch:
            # Retrying would hammer a failing backend; wait for a new query or context.
            self._halted_for = (state.generation, state.query)
        self.evaluate()

    def cancel(self) -> bool:
        """Drop the pending timer; return whether a prefetch request was in flight."""

        self._token += 1
        cancel_timer, self._cancel_timer = self._cancel_timer, None
        if cancel_timer is not None:
            cancel_timer()
        was_in_flight, self._in_flight = self._in_flight, False
        self._halted_for = None
        return was_in_flight

    def _fire(self, token: int, tag: tuple[int, str]) -> None:
        if token != self._token:
            return
        self._cancel_timer = None
        state = self._read_state()
        if (state.generation, state.query) != tag:
            self.evaluate()
            return
        if not state.has_more or state.loading:
            return
        self._in_flight = True
        if not self._fetch_more():
            self._in_flight = False
