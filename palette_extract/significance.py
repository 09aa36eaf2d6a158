from __future__ import annotations

"""
Spatial significance of palette entries.

analyze_dimensions labels 4-connected blobs of equal palette index in a single
row-major pass and records, per entry, the largest blob and the mean size and
count of substantial blobs (>= SUBSTANTIAL_BLOB_MIN pixels).

calc_factor turns population and blob statistics into a significance score;
filter_by_factor keeps entries scoring above the threshold. Colours that are
numerous only as scattered single pixels score near zero.
"""

import math
from typing import List

from .constants import SUBSTANTIAL_BLOB_MIN, TRANSPARENT_INDEX
from .core_types import IndexMap, InvalidInput, PaletteEntry


class BlobUnionFind:
    """
    Arena-indexed union-find over pixel positions.

    parent[i] == i marks a root; size[root] is the blob size. Cells that never
    joined anything (transparent pixels) stay roots of size 0.
    """

    def __init__(self, count: int) -> None:
        self.parent: List[int] = list(range(count))
        self.size: List[int] = [0] * count

    def find(self, i: int) -> int:
        parent = self.parent
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    def add_root(self, i: int) -> None:
        self.size[i] = 1

    def add_to(self, i: int, root: int) -> None:
        self.parent[i] = root
        self.size[root] += 1

    def merge_into(self, child_root: int, root: int) -> None:
        """Attach child_root under root; root survives."""
        self.parent[child_root] = root
        self.size[root] += self.size[child_root]
        self.size[child_root] = 0


def label_blobs(indexed: IndexMap, width: int) -> BlobUnionFind:
    """
    Single row-major pass. A pixel joins the blob above it first; if the blob
    to its left differs, that blob is merged into the upper one.
    """
    labels = indexed.tolist()
    count = len(labels)
    uf = BlobUnionFind(count)
    for i in range(count):
        label = labels[i]
        if label == TRANSPARENT_INDEX:
            continue
        root = -1
        if i >= width and labels[i - width] == label:
            root = uf.find(i - width)
        if i % width > 0 and labels[i - 1] == label:
            left_root = uf.find(i - 1)
            if root < 0:
                root = left_root
            elif left_root != root:
                uf.merge_into(left_root, root)
        if root < 0:
            uf.add_root(i)
        else:
            uf.add_to(i, root)
    return uf


def analyze_dimensions(
    indexed: IndexMap, width: int, palette: List[PaletteEntry]
) -> None:
    """Set dim_max, dim_avg and dim_qty on every entry."""
    if width <= 0:
        raise InvalidInput("width must be > 0 for spatial analysis")

    for entry in palette:
        entry.dim_max = 0
        entry.dim_avg = 0.0
        entry.dim_qty = 0

    uf = label_blobs(indexed, width)
    labels = indexed.tolist()
    for i, label in enumerate(labels):
        if label == TRANSPARENT_INDEX or uf.parent[i] != i:
            continue
        blob = uf.size[i]
        entry = palette[label]
        entry.dim_max = max(entry.dim_max, blob)
        if blob >= SUBSTANTIAL_BLOB_MIN:
            entry.dim_avg += blob
            entry.dim_qty += 1

    for entry in palette:
        if entry.dim_qty > 0:
            entry.dim_avg /= entry.dim_qty


def calc_factor(palette: List[PaletteEntry]) -> None:
    """
    factor = (qty / avg_qty^2 + dim_max / avg_max^2) * (dim_avg * dim_qty / qty)^2

    avg_qty and avg_max are palette means of sqrt(qty) and sqrt(dim_max).
    Entries without pixels score 0 and never pass filter_by_factor.
    """
    size = len(palette)
    avg_qty = 0.0
    avg_max = 0.0
    for entry in palette:
        avg_qty += math.sqrt(entry.qty) / size
        avg_max += math.sqrt(entry.dim_max) / size

    for entry in palette:
        if entry.qty <= 0:
            entry.factor = 0.0
            continue
        factor = entry.qty / avg_qty**2
        factor += entry.dim_max / avg_max**2
        factor *= (entry.dim_avg * entry.dim_qty / entry.qty) ** 2
        entry.factor = factor


def filter_by_factor(
    palette: List[PaletteEntry], threshold: float
) -> List[PaletteEntry]:
    """Entries with pixels scoring strictly above threshold, in palette order."""
    return [e for e in palette if e.qty > 0 and e.factor > threshold]


__all__ = [
    "BlobUnionFind",
    "label_blobs",
    "analyze_dimensions",
    "calc_factor",
    "filter_by_factor",
]
