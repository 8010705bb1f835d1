"""
Event tracking utilities.
"""

from __future__ import annotations

from typing import List, Tuple

from models.config import BoundaryConfig, ORIENTATION_VERTICAL


def boundary_line(
    boundary: BoundaryConfig,
    frame_width: int,
    frame_height: int,
) -> List[Tuple[int, int]]:
    """
    Convert the configured boundary into pixel line endpoints.

    Returns:
        List of two (x, y) tuples spanning the whole frame.
    """
    pos = int(boundary.position)
    if boundary.orientation == ORIENTATION_VERTICAL:
        return [(pos, 0), (pos, frame_height)]
    return [(0, pos), (frame_width, pos)]
