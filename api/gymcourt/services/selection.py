"""Slot selection on the schedule board as an explicit state machine.

    idle --begin--> selecting --finish--> selected --submit--> submitting
      ^                                                            |
      +------------------ cancel (from any state) / complete ------+

The board feeds pointer events in; the machine owns which court, date and
half-hour slots are selected. ``finish`` refuses a broken run of slots, so a
selection that reaches ``selected`` is always contiguous.
"""

import enum
from collections.abc import Sequence
from datetime import date

from gymcourt.services.booking_rules import BookingViolation, check_contiguous_slots, selection_window
from gymcourt.services.timeutil import normalize_start_time


class SelectionState(enum.StrEnum):
    IDLE = "idle"
    SELECTING = "selecting"
    SELECTED = "selected"
    SUBMITTING = "submitting"


class InvalidTransition(Exception):
    def __init__(self, state: SelectionState, event: str):
        self.state = state
        self.event = event
        super().__init__(f"Cannot {event} while {state.value}")


class SlotSelection:
    def __init__(self):
        self._reset()

    def _reset(self) -> None:
        self.state = SelectionState.IDLE
        self.court_id = None
        self.date: date | None = None
        self.slots: list[str] = []

    def _require(self, event: str, *states: SelectionState) -> None:
        if self.state not in states:
            raise InvalidTransition(self.state, event)

    def begin(self, court_id, day: date, slot: str) -> None:
        """Pointer down on a free cell. Starting over from ``selected`` is allowed."""
        self._require("begin", SelectionState.IDLE, SelectionState.SELECTED)
        self._reset()
        self.state = SelectionState.SELECTING
        self.court_id = court_id
        self.date = day
        self.slots = [normalize_start_time(slot, "slot")]

    def toggle(self, court_id, day: date, slot: str) -> None:
        """Pointer enters another cell while dragging. Other courts/dates are ignored."""
        self._require("toggle", SelectionState.SELECTING)
        if court_id != self.court_id or day != self.date:
            return
        slot = normalize_start_time(slot, "slot")
        if slot in self.slots:
            self.slots.remove(slot)
        else:
            self.slots.append(slot)

    def finish(self) -> tuple[str, str]:
        """Pointer up. Returns the (start, end) window of the selection.

        A non-contiguous selection raises BookingViolation and leaves the
        machine in ``selecting`` so the user can fix it.
        """
        self._require("finish", SelectionState.SELECTING)
        if not self.slots:
            self._reset()
            raise BookingViolation("empty_selection", "Select at least one slot.")
        violation = check_contiguous_slots(self.slots)
        if violation:
            raise violation
        self.state = SelectionState.SELECTED
        return self.window

    @property
    def window(self) -> tuple[str, str]:
        return selection_window(self.slots)

    def submit(self) -> None:
        self._require("submit", SelectionState.SELECTED)
        self.state = SelectionState.SUBMITTING

    def complete(self) -> None:
        """The reservation request finished (either way); back to idle."""
        self._require("complete", SelectionState.SUBMITTING)
        self._reset()

    def cancel(self) -> None:
        """Pointer cancel, navigation away, modal closed: always ends idle."""
        self._reset()


def replay_selection(court_id, day: date, slots: Sequence[str]) -> tuple[str, str]:
    """Run a finished drag, sent as a list of cells, through the machine.

    The first cell begins the drag and the rest toggle in order, so a
    repeated cell deselects itself as it would on the board.
    """
    selection = SlotSelection()
    first, *rest = slots
    selection.begin(court_id, day, first)
    for slot in rest:
        selection.toggle(court_id, day, slot)
    return selection.finish()
