# squeezesync
# Copyright (C) 2024-2026 Markus Kirsten
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Drag-and-drop reordering of a list of rows, applied locally first.

The view is reordered the moment a row is dropped; the server is told
afterwards (``on_drop_cmd``) and the next full status read replaces whatever
we guessed.  Rows only carry what the drag logic needs: their vertical box
(``top``/``height``), whether they accept being dropped onto, and the
position/ordinal the list keeps up to date.

Per row:  IDLE -> DRAGGING -> DROPPED | CANCELLED -> IDLE

    rows = [Row(str(i), top=i * 20, height=20) for i in range(8)]
    sortable = SortableList(rows, on_drop_cmd=send_move)
    proxy = rows[5].dd
    proxy.start_drag()
    proxy.drag_over(rows[2], page_y=42)      # upper part of row 2 -> slot -1
    proxy.drop(rows[2])                      # send_move(5, 2, -1)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

log = logging.getLogger(__name__)

SLOT_ABOVE = -1
SLOT_ONTO = 0
SLOT_BELOW = 1

INDICATORS = {SLOT_ABOVE: "dragUp", SLOT_ONTO: "dragOver", SLOT_BELOW: "dragDown"}


class DragPhase(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPED = "dropped"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Move:
    source: int
    target: int
    slot: int


def calculate_slot(height: float, offset: float, droptarget: bool) -> int:
    """Where in a row of *height* a cursor *offset* px from its top points.

    Rows that accept drops get three zones (above / onto / below), others
    are split in half.
    """
    if droptarget:
        if offset <= 0.33 * height:
            return SLOT_ABOVE
        if offset >= 0.6 * height:
            return SLOT_BELOW
        return SLOT_ONTO
    return SLOT_ABOVE if offset <= 0.5 * height else SLOT_BELOW


class Row:
    """One draggable item in a SortableList."""

    def __init__(self, key: str, top: float = 0, height: float = 0,
                 droptarget: bool = False, draggable: bool = True):
        self.key = key
        self.top = top
        self.height = height
        self.droptarget = droptarget
        self.draggable = draggable
        self.position = -1            # index the server knows this row by
        self.ordinal: int | None = None   # number shown to the user
        self.indicator: str | None = None
        self.dd: DragProxy | None = None

    def __repr__(self):
        return f"Row({self.key!r}, position={self.position})"


class HoverHighlight:
    """Hover highlighting that stands down while a drag is in progress."""

    def __init__(self):
        self.current: Row | None = None
        self.is_dragging = False

    def highlight(self, row: Row) -> bool:
        if self.is_dragging:
            return False
        self.current = row
        return True

    def unhighlight(self):
        self.current = None


class DragProxy:
    """Drag state machine for one row."""

    def __init__(self, row: Row, sortable: "SortableList"):
        self.row = row
        self.sortable = sortable
        self.phase = DragPhase.IDLE
        self.outcome: DragPhase | None = None
        self.slot: int | None = None
        self._over: Row | None = None

    def start_drag(self):
        if self.phase is DragPhase.DRAGGING:
            return
        self.phase = DragPhase.DRAGGING
        self.outcome = None
        self.slot = None
        self._over = None
        self.sortable.begin_drag()

    def drag_over(self, target: Row, page_y: float) -> int:
        """Track the cursor over *target*; returns the slot it points at."""
        if self.phase is not DragPhase.DRAGGING:
            raise RuntimeError(f"{self.row!r} is not being dragged")
        old_slot, old_target = self.slot, self._over
        self.slot = calculate_slot(target.height, page_y - target.top, target.droptarget)
        self._over = target

        if old_slot != self.slot or old_target is not target:
            if old_target is not None:
                old_target.indicator = None
            target.indicator = INDICATORS[self.slot]
        return self.slot

    def drag_out(self, target: Row):
        target.indicator = None
        if self._over is target:
            self._over = None

    def drop(self, target: Row) -> Move | None:
        """Drop on *target*, the row drag_over last tracked.

        Any other row (or no drag_over at all) cancels the drag instead.
        """
        if self.phase is not DragPhase.DRAGGING:
            raise RuntimeError(f"{self.row!r} is not being dragged")
        if self.slot is None or target is not self._over:
            log.debug("Drop on %r without a slot for it, cancelling", target)
            target.indicator = None
            self.cancel()
            return None
        target.indicator = None
        self.phase = self.outcome = DragPhase.DROPPED
        try:
            return self.sortable.on_drop(self.row, target, self.slot)
        finally:
            self._end_drag()

    def cancel(self):
        if self.phase is not DragPhase.DRAGGING:
            return
        if self._over is not None:
            self._over.indicator = None
        self.phase = self.outcome = DragPhase.CANCELLED
        self._end_drag()

    def _end_drag(self):
        self._over = None
        self.phase = DragPhase.IDLE
        self.sortable.end_drag()


class SortableList:
    """An ordered list of rows that can be reordered by dragging."""

    def __init__(self, rows: list[Row], offset: int = 0,
                 on_drop_cmd: Callable[[int, int, int], object] | None = None,
                 highlighter: HoverHighlight | None = None):
        self.rows = list(rows)
        self.offset = offset
        self.on_drop_cmd = on_drop_cmd
        self.highlighter = highlighter
        self._range: tuple[int, int] | None = None
        self.init()

    def init(self):
        """Number every row from ``offset`` and give draggable ones a proxy."""
        for i, row in enumerate(self.rows):
            row.position = i + self.offset
            if row.ordinal is None:
                row.ordinal = row.position + 1
            row.dd = DragProxy(row, self) if row.draggable else None
        if self.highlighter:
            self.highlighter.is_dragging = False

    @property
    def dragging(self) -> bool:
        return any(row.dd and row.dd.phase is DragPhase.DRAGGING for row in self.rows)

    def begin_drag(self):
        positions = [row.position for row in self.rows if row.dd]
        self._range = (min(positions), max(positions))
        if self.highlighter:
            self.highlighter.unhighlight()
            self.highlighter.is_dragging = True

    def end_drag(self):
        self._range = None
        if self.highlighter:
            self.highlighter.is_dragging = False

    def on_drop(self, source: Row, target: Row, slot: int) -> Move | None:
        """Move *source* next to (or into) *target* and report the move."""
        if source is target or target.dd is None or target not in self.rows:
            return None

        source_pos, target_pos = source.position, target.position
        if source_pos < 0 or target_pos < 0:
            return None

        # dropping below something above us (or above something below us)
        # lands one slot further than the target's own index
        if (source_pos > target_pos and slot > 0) or (source_pos < target_pos and slot < 0):
            target_pos += slot
        if self._range:
            low, high = self._range
            target_pos = max(low, min(high, target_pos))
        if source_pos == target_pos:
            return None

        self.rows.remove(source)
        if slot == SLOT_ONTO:
            source.dd = None
            source.position = -1
            first = source_pos - self.offset
            self._renumber(first, len(self.rows) - 1)
        else:
            index = self.rows.index(target)
            self.rows.insert(index if slot < 0 else index + 1, source)
            self._renumber(min(source_pos, target_pos) - self.offset,
                           max(source_pos, target_pos) - self.offset)

        log.debug("Moved row %s from %d to %d (slot %d)", source.key, source_pos, target_pos, slot)
        if self.on_drop_cmd:
            self.on_drop_cmd(source_pos, target_pos, slot)
        return Move(source_pos, target_pos, slot)

    def _renumber(self, first: int, last: int):
        for index in range(max(first, 0), min(last, len(self.rows) - 1) + 1):
            row = self.rows[index]
            row.position = index + self.offset
            row.ordinal = row.position + 1

    def __iter__(self):
        return iter(self.rows)

    def __len__(self):
        return len(self.rows)
