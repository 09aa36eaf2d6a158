from __future__ import annotations

"""
Palette extraction entry point.

extract_palette(pixels, width, options=None, *, debug=False, workers=1)
  -> List[PaletteEntry]

Pipeline:
  RGBA buffer -> working colourspace -> initial palette -> clustering loop
  -> quantize -> blob analysis -> significance filter -> RGB + hex.

The returned entries keep the order of the last reorder pass (fixed colours
first); each carries rgb and hex.
"""

import time
from typing import List, Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .cluster import init_palette, run_cluster_loop
from .colour_convert import colourspace_to_rgb, convert_buffer
from .core_types import Bound, ExtractOptions, InvalidInput, PaletteEntry, rgb_to_hex
from .quantize import quantize
from .significance import analyze_dimensions, calc_factor, filter_by_factor
from .utils import debug_log, format_seconds_compact, key_value_pairs_to_string


def _pixel_rows(pixels: ArrayLike) -> NDArray[np.float64]:
    """Flat RGBA sequence or (H, W, 4) array -> (N, 4) rows."""
    arr = np.asarray(pixels)
    if arr.ndim == 3:
        if arr.shape[-1] != 4:
            raise InvalidInput(f"expected (H, W, 4) RGBA array, got {arr.shape}")
        return arr.reshape(-1, 4)
    flat = arr.reshape(-1)
    if flat.size % 4 != 0:
        raise InvalidInput(
            f"buffer length must be a multiple of 4, got {flat.size}"
        )
    return flat.reshape(-1, 4)


def _resolve_width(pixels: ArrayLike, width: Optional[int], count: int) -> int:
    if width is None:
        arr = np.asarray(pixels)
        if arr.ndim != 3:
            raise InvalidInput("width is required for a flat buffer")
        width = int(arr.shape[1])
    width = int(width)
    if width <= 0:
        raise InvalidInput(f"width must be > 0, got {width}")
    if count % width != 0:
        raise InvalidInput(f"{count} pixels do not fill rows of width {width}")
    return width


def extract_palette(
    pixels: ArrayLike,
    width: Optional[int] = None,
    options: Optional[ExtractOptions] = None,
    *,
    debug: bool = False,
    workers: int = 1,
) -> List[PaletteEntry]:
    """
    Extract a palette from raw RGBA pixels.

    Args:
      pixels : flat row-major RGBA sequence (0..255) or an (H, W, 4) array
      width  : pixels per row; taken from the array when it is 3-D
      options: ExtractOptions, defaults when omitted
      debug  : print per-iteration and per-stage details
      workers: threads for the colourspace conversion
    Raises:
      UnsupportedColorspace, InvalidInput before any pixel work.
    """
    opts = (options or ExtractOptions()).validate()
    fixed = opts.fixed_rgb()
    rows = _pixel_rows(pixels)
    width = _resolve_width(pixels, width, int(rows.shape[0]))

    t_start = time.perf_counter()
    buffer = convert_buffer(rows, opts.colorspace, workers=workers)
    palette = init_palette(opts.colorspace, fixed, buffer)
    t_convert = time.perf_counter()

    palette = run_cluster_loop(palette, buffer, opts, debug=debug)
    t_loop = time.perf_counter()

    indexed = quantize(buffer, palette)
    analyze_dimensions(indexed, width, palette)
    calc_factor(palette)
    if debug:
        for entry in palette:
            debug_log(
                key_value_pairs_to_string(
                    [
                        ("Fixed", entry.is_fixed),
                        ("Qty", entry.qty),
                        ("DimMax", entry.dim_max),
                        ("DimAvg", entry.dim_avg),
                        ("DimQty", entry.dim_qty),
                        ("Factor", entry.factor),
                    ]
                )
            )
    result = filter_by_factor(palette, opts.threshold)

    for entry in result:
        rgb = colourspace_to_rgb(opts.colorspace, entry.color)
        entry.rgb = (int(rgb[0]), int(rgb[1]), int(rgb[2]))
        entry.hex = rgb_to_hex(entry.rgb)
        entry.bound = Bound()
        entry.sum = np.zeros(3, dtype=np.float64)
    t_end = time.perf_counter()

    if debug:
        debug_log(
            key_value_pairs_to_string(
                [
                    ("Pixels", int(rows.shape[0])),
                    ("Candidates", len(palette)),
                    ("Kept", len(result)),
                    ("Convert", format_seconds_compact(t_convert - t_start)),
                    ("Cluster", format_seconds_compact(t_loop - t_convert)),
                    ("Analyze", format_seconds_compact(t_end - t_loop)),
                ]
            )
        )
    return result


__all__ = ["extract_palette"]
