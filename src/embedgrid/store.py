"""Input list store: an ordered list of texts edited through tagged actions."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .errors import IndexOutOfRange
from .models import Snapshot

logger = logging.getLogger(__name__)

# Sentences shown by the original demo page
DEMO_INPUTS: Snapshot = (
    "The quick brown fox jumped over the lazy dog",
    "The fast orange fox lept over the sluggish dog",
    "I love Monday morning meetings",
    "I love Friday afternoon meetings",
    "The Krusty Krab pizza is the best pizza",
    "Costco pizza is the best pizza",
    "Per my previous email...",
    "Did you even read my last email...",
)


@dataclass(frozen=True)
class Create:
    """Append an empty text."""


@dataclass(frozen=True)
class Update:
    """Replace the text at ``index``."""

    index: int
    value: str


@dataclass(frozen=True)
class Delete:
    """Remove the text at ``index``."""

    index: int


InputAction = Create | Update | Delete


def _check_index(state: Snapshot, index: int) -> None:
    if not 0 <= index < len(state):
        raise IndexOutOfRange(index, len(state))


def reduce_inputs(state: Snapshot, action: InputAction) -> Snapshot:
    """Apply one action to a snapshot and return the new snapshot.

    Raises:
        IndexOutOfRange: If an Update or Delete targets a missing position
        TypeError: If the action is not an input action
    """
    match action:
        case Create():
            return (*state, "")
        case Update(index=index, value=value):
            _check_index(state, index)
            return (*state[:index], value, *state[index + 1 :])
        case Delete(index=index):
            _check_index(state, index)
            return (*state[:index], *state[index + 1 :])
        case _:
            raise TypeError(f"Unknown input action: {action!r}")


class InputListStore:
    """Owns the current snapshot of the input list.

    Every operation produces a fresh tuple, so listeners may keep any
    snapshot they receive without it changing underneath them.
    """

    def __init__(self, initial: Iterable[str] = ()) -> None:
        self._snapshot: Snapshot = tuple(initial)
        self._listeners: list[Callable[[Snapshot], None]] = []

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot)

    def subscribe(self, listener: Callable[[Snapshot], None]) -> None:
        """Call ``listener`` with every new snapshot."""
        self._listeners.append(listener)

    def dispatch(self, action: InputAction) -> Snapshot:
        """Apply an action, notify listeners and return the new snapshot."""
        self._snapshot = reduce_inputs(self._snapshot, action)
        logger.debug(f"Applied {action!r}, input list length {len(self._snapshot)}")

        for listener in self._listeners:
            listener(self._snapshot)
        return self._snapshot

    def create(self) -> Snapshot:
        return self.dispatch(Create())

    def update(self, index: int, value: str) -> Snapshot:
        return self.dispatch(Update(index, value))

    def delete(self, index: int) -> Snapshot:
        return self.dispatch(Delete(index))
