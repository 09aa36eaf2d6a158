from __future__ import annotations

"""
Adaptive palette clustering.

Each iteration assigns opaque pixels to their nearest entry, moves non-fixed
entries to the centroid of their pixels, reorders the palette by population and
distinctness, truncates it to qty_max and bisects every cluster whose bounding
sphere is not degenerate. The loop stops on exhausted patience (the weighted
displacement grew too many times), when nothing can be split, or at the
iteration cap.
"""

import math
from typing import List, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from .colour_convert import opaque_mask, rgb_to_colourspace
from .constants import TRANSPARENT_INDEX
from .core_types import Bound, ExtractOptions, PaletteEntry, RGBTuple, WorkBuffer
from .utils import debug_log, key_value_pairs_to_string


def init_palette(
    colourspace: str, fixed: Sequence[RGBTuple], buffer: WorkBuffer
) -> List[PaletteEntry]:
    """
    Fixed colours become pinned entries. Without any, the first opaque pixel
    seeds a single free entry. A fully transparent buffer with no fixed colours
    gives an empty palette.
    """
    palette = [
        PaletteEntry(color=rgb_to_colourspace(colourspace, rgb), is_fixed=True)
        for rgb in fixed
    ]
    if palette:
        return palette
    opaque = np.flatnonzero(opaque_mask(buffer))
    if opaque.size:
        palette.append(PaletteEntry(color=buffer[opaque[0], :3].copy()))
    return palette


def find_nearest(
    points: NDArray[np.float64], palette: Sequence[PaletteEntry]
) -> Tuple[NDArray[np.int32], NDArray[np.float64]]:
    """
    Nearest palette entry per point by Euclidean distance.
    On exact ties the lowest palette index wins.
    """
    count = int(points.shape[0])
    best_idx = np.full(count, TRANSPARENT_INDEX, dtype=np.int32)
    best_dist = np.full(count, np.inf, dtype=np.float64)
    for i, entry in enumerate(palette):
        diff = points - entry.color
        dist = np.sqrt(np.einsum("ij,ij->i", diff, diff))
        closer = dist < best_dist
        best_dist[closer] = dist[closer]
        best_idx[closer] = i
    return best_idx, best_dist


def _first_outside(
    points: NDArray[np.float64],
    start: int,
    centre: Tuple[float, float, float],
    radius: float,
) -> Tuple[int, float]:
    """
    Index and distance of the first point at or after start lying outside the
    sphere, or (-1, 0.0). Scans in growing blocks so long runs of interior
    points cost one numpy pass each.
    """
    count = int(points.shape[0])
    block = 64
    cx, cy, cz = centre
    while start < count:
        rest = points[start : start + block]
        dx = rest[:, 0] - cx
        dy = rest[:, 1] - cy
        dz = rest[:, 2] - cz
        dist = np.sqrt(dx * dx + dy * dy + dz * dz)
        hits = np.flatnonzero(dist > radius)
        if hits.size:
            k = int(hits[0])
            return start + k, float(dist[k])
        start += block
        block *= 2
    return -1, 0.0


def _grow_bound(points: NDArray[np.float64]) -> Bound:
    """
    Online approximate minimum enclosing sphere, in scan order.

    A point outside the sphere pulls the centre toward itself by half the
    overshoot and the radius grows to the midpoint of old radius and distance.
    Points inside the sphere leave it unchanged.
    """
    cx, cy, cz = (float(v) for v in points[0])
    radius = 0.0
    vector = None
    i = 1
    while True:
        i, r = _first_outside(points, i, (cx, cy, cz), radius)
        if i < 0:
            break
        x, y, z = (float(v) for v in points[i])
        dx, dy, dz = x - cx, y - cy, z - cz
        k = (r - radius) / r / 2.0
        cx += dx * k
        cy += dy * k
        cz += dz * k
        vector = (x - cx, y - cy, z - cz)
        radius = (r + radius) / 2.0
        i += 1
    return Bound(
        center=np.array([cx, cy, cz], dtype=np.float64),
        radius=radius,
        vector=None if vector is None else np.array(vector, dtype=np.float64),
    )


def calc_bounds(palette: List[PaletteEntry], buffer: WorkBuffer) -> None:
    """Reset and recompute qty, sum and bound of every entry."""
    for entry in palette:
        entry.qty = 0
        entry.sum = np.zeros(3, dtype=np.float64)
        entry.bound = Bound()
    if not palette:
        return

    points = buffer[opaque_mask(buffer), :3]
    if points.shape[0] == 0:
        return

    size = len(palette)
    nearest, _ = find_nearest(points, palette)
    counts = np.bincount(nearest, minlength=size)
    sums = np.stack(
        [np.bincount(nearest, weights=points[:, c], minlength=size) for c in range(3)],
        axis=1,
    )
    # stable grouping keeps each cluster's points in scan order
    order = np.argsort(nearest, kind="stable")
    grouped = points[order]
    ends = np.cumsum(counts)
    for i, entry in enumerate(palette):
        entry.qty = int(counts[i])
        entry.sum = sums[i].astype(np.float64, copy=True)
        if entry.qty:
            entry.bound = _grow_bound(grouped[ends[i] - entry.qty : ends[i]])


def reallocate_palette(palette: List[PaletteEntry], qty_max: int) -> float:
    """
    Move every free entry with more than one pixel to its centroid.

    Returns the displacement of the first qty_max entries weighted by their
    population; the loop uses it as its convergence signal.
    """
    diff = 0.0
    for i, entry in enumerate(palette):
        prev = entry.color.copy()
        if not entry.is_fixed and entry.qty > 1:
            entry.color = entry.sum / entry.qty
        if i < qty_max:
            diff += float(np.linalg.norm(entry.color - prev)) * entry.qty
    return diff


def reorder_by_qty(palette: List[PaletteEntry]) -> None:
    """Fixed entries first, then descending qty. Stable."""
    palette.sort(key=lambda e: (not e.is_fixed, -e.qty))


def reorder_by_distance(
    palette: List[PaletteEntry], r_threshold: float, r_factor: float
) -> None:
    """
    Farthest-point style pass: position i+1 receives the candidate with the best
    blend of population and distance to the entries already placed at 0..i.

    score = qty * (r_factor + (1 - r_factor) * min(1, dist / max_dist))

    r_threshold is reserved and does not enter the score.
    """
    size = len(palette)
    for i in range(size - 1):
        if palette[i + 1].is_fixed:
            continue

        placed = np.array([e.color for e in palette[: i + 1]], dtype=np.float64)
        cands = np.array([e.color for e in palette[i + 1 :]], dtype=np.float64)
        diff = cands[:, None, :] - placed[None, :, :]
        dist = np.sqrt((diff * diff).sum(axis=2)).min(axis=1)

        far = float(dist.max())
        if far == 0.0:
            # every candidate coincides with a placed colour: no score is defined
            continue
        ratio = np.minimum(1.0, dist / far)
        qty = np.array([e.qty for e in palette[i + 1 :]], dtype=np.float64)
        scores = (r_factor + (1.0 - r_factor) * ratio) * qty

        j = i + 1 + int(np.argmax(scores))
        if j != i + 1:
            palette[i + 1], palette[j] = palette[j], palette[i + 1]


def split_palette(palette: List[PaletteEntry]) -> int:
    """
    Append one free entry per cluster with a non-degenerate bounding sphere,
    seeded halfway along its latest expansion vector. Returns the split count.
    """
    splits = 0
    for entry in list(palette):
        bound = entry.bound
        if bound.radius > 0.0 and bound.center is not None and bound.vector is not None:
            palette.append(PaletteEntry(color=bound.center + bound.vector / 2.0))
            splits += 1
    return splits


def run_cluster_loop(
    palette: List[PaletteEntry],
    buffer: WorkBuffer,
    options: ExtractOptions,
    *,
    debug: bool = False,
) -> List[PaletteEntry]:
    """
    Refine the palette until patience runs out, no cluster splits, or
    max_iterations is reached. Returns the truncated palette.
    """
    qty_max = int(options.qty_max)
    patience = int(options.stop_inc_qty)
    prev = math.inf

    for step in range(int(options.max_iterations)):
        calc_bounds(palette, buffer)
        diff = reallocate_palette(palette, qty_max)
        reorder_by_qty(palette)
        reorder_by_distance(palette, options.r_threshold, options.r_factor)
        palette = palette[:qty_max]
        if diff > prev:
            patience -= 1

        if step == options.max_iterations - 1 or patience <= 0:
            if debug:
                debug_log(
                    f"cluster stop at step {step}: "
                    + ("patience exhausted" if patience <= 0 else "iteration cap")
                )
            break

        splits = split_palette(palette)
        if debug:
            debug_log(
                key_value_pairs_to_string(
                    [
                        ("Step", step),
                        ("Palette", len(palette)),
                        ("Diff", diff),
                        ("Splits", splits),
                        ("Patience", patience),
                    ]
                )
            )
        if not splits:
            break
        prev = diff

    return palette


__all__ = [
    "init_palette",
    "find_nearest",
    "calc_bounds",
    "reallocate_palette",
    "reorder_by_qty",
    "reorder_by_distance",
    "split_palette",
    "run_cluster_loop",
]
