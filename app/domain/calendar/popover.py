"""Placement of the appointment detail popover next to the pointer"""

from dataclasses import dataclass

# Pointer-enter shows after a short delay; pointer-leave waits long enough to
# let the pointer travel into the popover itself
POPOVER_SHOW_DELAY_MS = 150
POPOVER_HIDE_DELAY_MS = 300

POPOVER_OFFSET = 12
POPOVER_PADDING = 8


@dataclass(frozen=True)
class PopoverPlacement:
    left: float
    top: float
    flipped_x: bool
    flipped_y: bool


def place_popover(
    cursor: tuple[float, float],
    size: tuple[float, float],
    viewport: tuple[float, float],
    offset: float = POPOVER_OFFSET,
    padding: float = POPOVER_PADDING,
) -> PopoverPlacement:
    """
    Top-left corner for a popover of ``size`` shown at ``cursor``.

    Prefers right of and below the pointer. Flips to the left when the right
    edge would cross ``viewport`` minus ``padding``, flips above when the
    bottom would, then clamps so the popover keeps at least ``padding`` from
    every edge that it can fit inside.
    """
    x, y = cursor
    width, height = size
    view_width, view_height = viewport

    left = x + offset
    flipped_x = False
    if left + width > view_width - padding:
        left = x - offset - width
        flipped_x = True

    top = y + offset
    flipped_y = False
    if top + height > view_height - padding:
        top = y - offset - height
        flipped_y = True

    left = max(padding, min(left, view_width - padding - width))
    top = max(padding, min(top, view_height - padding - height))
    return PopoverPlacement(left, top, flipped_x, flipped_y)
