"""Highlight state machine driven by pointer hover and list-length changes."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from .models import Highlight

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reset:
    """Clear the highlight and size it to ``size`` entries."""

    size: int


@dataclass(frozen=True)
class SetHighlighted:
    """Highlight exactly ``indices``, clearing everything else."""

    indices: tuple[int, ...]


HighlightAction = Reset | SetHighlighted


def reduce_highlight(state: Highlight, action: HighlightAction) -> Highlight:
    """Apply one action and return the new highlight vector.

    SetHighlighted keeps the length of ``state``; indices outside it come
    from a stale list length and are dropped.
    """
    match action:
        case Reset(size=size):
            if size < 0:
                raise ValueError(f"size must be non-negative, got {size}")
            return (False,) * size
        case SetHighlighted(indices=indices):
            selected = {i for i in indices if 0 <= i < len(state)}
            return tuple(i in selected for i in range(len(state)))
        case _:
            raise TypeError(f"Unknown highlight action: {action!r}")


class HighlightStateMachine:
    """Owns the highlight vector for one matrix view.

    The vector length always follows the input list length passed to
    ``resize``; pointer events only flip entries within that length.
    """

    def __init__(self, size: int = 0) -> None:
        self._state: Highlight = reduce_highlight((), Reset(size))

    @property
    def state(self) -> Highlight:
        return self._state

    @property
    def highlighted(self) -> tuple[int, ...]:
        """Indices currently highlighted."""
        return tuple(i for i, on in enumerate(self._state) if on)

    def dispatch(self, action: HighlightAction) -> Highlight:
        self._state = reduce_highlight(self._state, action)
        return self._state

    def reset(self, size: int | None = None) -> Highlight:
        """Clear the highlight, optionally resizing it."""
        return self.dispatch(Reset(len(self._state) if size is None else size))

    def set_highlighted(self, indices: Iterable[int]) -> Highlight:
        return self.dispatch(SetHighlighted(tuple(indices)))

    def resize(self, size: int) -> Highlight:
        """Follow an input list length change; no-op if the length is unchanged."""
        if size != len(self._state):
            logger.debug(f"Input list length changed to {size}, resetting highlight")
            self.reset(size)
        return self._state

    # Pointer events

    def pointer_leave(self) -> Highlight:
        return self.reset()

    def enter_corner(self) -> Highlight:
        return self.reset()

    def enter_column_header(self, column: int) -> Highlight:
        return self.set_highlighted([column])

    def enter_row_header(self, row: int) -> Highlight:
        return self.set_highlighted([row])

    def enter_cell(self, row: int, column: int) -> Highlight:
        return self.set_highlighted([row, column])
