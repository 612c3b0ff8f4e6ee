import numpy as np
from numba import njit


@njit(cache=True)
def closest_point_on_segment(px, py, x1, y1, x2, y2):
    """
    Nearest point to (px, py) on the segment (x1, y1)-(x2, y2).
    Uses the clamped projection parameter t in [0, 1].
    A zero-length segment collapses onto its first endpoint.
    """
    seg_x = x2 - x1
    seg_y = y2 - y1
    len_sq = seg_x * seg_x + seg_y * seg_y

    t = 0.0
    if len_sq != 0.0:
        t = ((px - x1) * seg_x + (py - y1) * seg_y) / len_sq
        if t < 0.0: t = 0.0
        elif t > 1.0: t = 1.0

    return x1 + t * seg_x, y1 + t * seg_y


@njit(cache=True)
def distance_to_segment(px, py, x1, y1, x2, y2):
    """
    Returns (distance, closest_x, closest_y).
    """
    cx, cy = closest_point_on_segment(px, py, x1, y1, x2, y2)
    dx = px - cx
    dy = py - cy
    return np.sqrt(dx * dx + dy * dy), cx, cy
