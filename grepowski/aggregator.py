"""Order-restoring sink for per-fragment outcomes."""

from __future__ import annotations

import threading
from collections.abc import Sequence

from grepowski.models import Fragment, Outcome, ReviewItem


class IncompleteResultsError(RuntimeError):
    """Raised when results are read before every fragment has an outcome."""


class DuplicateOutcomeError(RuntimeError):
    """Raised when a fragment's outcome is recorded twice."""


class ResultAggregator:
    """One write-once slot per fragment, read only when all slots are filled.

    Outcomes may be recorded from any thread in any order; ``items()`` always
    returns them in the fragments' generation order.
    """

    def __init__(self, fragments: Sequence[Fragment]) -> None:
        self._fragments = tuple(fragments)
        self._slots: list[Outcome | None] = [None] * len(self._fragments)
        self._received = 0
        self._lock = threading.Lock()
        self._items: list[ReviewItem] | None = None

    def __len__(self) -> int:
        return len(self._fragments)

    @property
    def received(self) -> int:
        with self._lock:
            return self._received

    @property
    def is_complete(self) -> bool:
        with self._lock:
            return self._received == len(self._fragments)

    def record(self, index: int, outcome: Outcome) -> None:
        with self._lock:
            if not 0 <= index < len(self._slots):
                raise IndexError(f"No fragment at index {index} (total {len(self._slots)}).")
            if self._slots[index] is not None:
                raise DuplicateOutcomeError(
                    f"Outcome for fragment {index} ({self._fragments[index].location}) "
                    "was already recorded."
                )
            self._slots[index] = outcome
            self._received += 1

    def pending(self) -> list[int]:
        with self._lock:
            return [idx for idx, slot in enumerate(self._slots) if slot is None]

    def items(self) -> list[ReviewItem]:
        """The full ordered ReviewItem list; refuses to expose a partial one."""
        with self._lock:
            if self._received < len(self._fragments):
                raise IncompleteResultsError(
                    f"Only {self._received}/{len(self._fragments)} fragments have an outcome."
                )
            if self._items is None:
                self._items = [
                    ReviewItem(index=idx, fragment=fragment, outcome=outcome)
                    for idx, (fragment, outcome) in enumerate(zip(self._fragments, self._slots))
                ]
            return list(self._items)
