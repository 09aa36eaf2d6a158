from __future__ import annotations

"""
Final pixel-to-palette assignment.

quantize(buffer, palette) -> IndexMap
  Every opaque pixel gets the index of its nearest entry (lowest index wins on
  ties); transparent pixels get TRANSPARENT_INDEX. Entry qty is refreshed from
  the map, so populations sum to the opaque pixel count.
"""

from typing import List

import numpy as np

from .cluster import find_nearest
from .colour_convert import opaque_mask
from .constants import TRANSPARENT_INDEX
from .core_types import IndexMap, PaletteEntry, WorkBuffer


def quantize(buffer: WorkBuffer, palette: List[PaletteEntry]) -> IndexMap:
    indexed = np.full(buffer.shape[0], TRANSPARENT_INDEX, dtype=np.int32)
    opaque = opaque_mask(buffer)
    if palette and np.any(opaque):
        nearest, _ = find_nearest(buffer[opaque, :3], palette)
        indexed[opaque] = nearest

    visible = indexed[indexed != TRANSPARENT_INDEX]
    counts = np.bincount(visible, minlength=len(palette))
    for i, entry in enumerate(palette):
        entry.qty = int(counts[i])
    return indexed


__all__ = ["quantize"]
