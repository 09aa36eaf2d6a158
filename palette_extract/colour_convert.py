from __future__ import annotations

"""
Colour conversions between sRGB, XYZ and CIE Lab (D65).

All transforms are vectorised over arrays of shape (..., 3) and accept plain
sequences for single colours. RGB is 0..255; XYZ is scaled so Y of white is 100.

Exports:
  rgb_to_xyz(rgb), xyz_to_rgb(xyz)
  xyz_to_lab(xyz), lab_to_xyz(lab)
  rgb_to_lab(rgb), lab_to_rgb(lab)
  rgb_to_colourspace(colourspace, rgb), colourspace_to_rgb(colourspace, colour)
  convert_buffer(pixels, colourspace, workers)
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Sequence, Union

import numpy as np
from numpy.typing import NDArray

from .constants import (
    ALPHA_OPAQUE_MIN,
    COLOURSPACES,
    LAB_EPSILON,
    LAB_KAPPA_SLOPE,
    LAB_OFFSET,
    RGB_TO_XYZ,
    SRGB_GAMMA_CUTOFF,
    SRGB_LINEAR_CUTOFF,
    WHITE_D65,
    XYZ_TO_RGB,
)
from .core_types import UnsupportedColorspace, WorkBuffer

ArrayLike3 = Union[Sequence[float], NDArray[np.generic]]

_WHITE = np.array(WHITE_D65, dtype=np.float64)


def _as_float(values: ArrayLike3) -> NDArray[np.float64]:
    return np.asarray(values, dtype=np.float64)


def _apply_matrix(
    matrix: Sequence[Sequence[float]], v: NDArray[np.float64]
) -> NDArray[np.float64]:
    """Row-by-row 3x3 product, elementwise so results do not depend on chunking."""
    out = np.empty(v.shape, dtype=np.float64)
    c0, c1, c2 = v[..., 0], v[..., 1], v[..., 2]
    for row, (m0, m1, m2) in enumerate(matrix):
        out[..., row] = c0 * m0 + c1 * m1 + c2 * m2
    return out


# sRGB <-> XYZ


def rgb_to_xyz(rgb: ArrayLike3) -> NDArray[np.float64]:
    """sRGB 0..255 to XYZ (0..~100). Shape (..., 3) preserved."""
    v = _as_float(rgb) / 255.0
    linear = np.where(
        v > SRGB_LINEAR_CUTOFF,
        ((v + 0.055) / 1.055) ** 2.4 * 100.0,
        v / 0.1292,
    )
    return _apply_matrix(RGB_TO_XYZ, linear)


def xyz_to_rgb(xyz: ArrayLike3) -> NDArray[np.int64]:
    """
    XYZ to sRGB 0..255 integers.
    Rounds half-up and clamps, so out-of-gamut colours land on the cube surface.
    """
    v = _apply_matrix(XYZ_TO_RGB, _as_float(xyz)) / 100.0
    with np.errstate(invalid="ignore"):
        companded = np.where(
            v > SRGB_GAMMA_CUTOFF,
            1.055 * np.power(v, 1.0 / 2.4) - 0.055,
            12.92 * v,
        )
    return _round_channels(companded * 255.0)


def _round_channels(values: NDArray[np.float64]) -> NDArray[np.int64]:
    return np.clip(np.floor(values + 0.5), 0, 255).astype(np.int64)


# XYZ <-> Lab


def xyz_to_lab(xyz: ArrayLike3) -> NDArray[np.float64]:
    """XYZ to CIE Lab against the D65 reference white."""
    v = _as_float(xyz) / _WHITE
    f = np.where(v > LAB_EPSILON, np.cbrt(v), LAB_KAPPA_SLOPE * v + LAB_OFFSET)
    fx, fy, fz = f[..., 0], f[..., 1], f[..., 2]
    out = np.empty(f.shape, dtype=np.float64)
    out[..., 0] = 116.0 * fy - 16.0
    out[..., 1] = 500.0 * (fx - fy)
    out[..., 2] = 200.0 * (fy - fz)
    return out


def lab_to_xyz(lab: ArrayLike3) -> NDArray[np.float64]:
    """CIE Lab to XYZ; exact inverse of xyz_to_lab."""
    lab_f = _as_float(lab)
    fy = (lab_f[..., 0] + 16.0) / 116.0
    f = np.empty(lab_f.shape, dtype=np.float64)
    f[..., 0] = lab_f[..., 1] / 500.0 + fy
    f[..., 1] = fy
    f[..., 2] = fy - lab_f[..., 2] / 200.0
    cubed = f * f * f
    v = np.where(cubed > LAB_EPSILON, cubed, (f - LAB_OFFSET) / LAB_KAPPA_SLOPE)
    return v * _WHITE


def rgb_to_lab(rgb: ArrayLike3) -> NDArray[np.float64]:
    return xyz_to_lab(rgb_to_xyz(rgb))


def lab_to_rgb(lab: ArrayLike3) -> NDArray[np.int64]:
    return xyz_to_rgb(lab_to_xyz(lab))


# Working colourspace dispatch


def _check_colourspace(colourspace: str) -> None:
    if colourspace not in COLOURSPACES:
        raise UnsupportedColorspace(f"colourspace {colourspace!r} not supported")


def rgb_to_colourspace(colourspace: str, rgb: ArrayLike3) -> NDArray[np.float64]:
    """RGB 0..255 into the working colourspace."""
    _check_colourspace(colourspace)
    if colourspace == "xyz":
        return rgb_to_xyz(rgb)
    if colourspace == "lab":
        return rgb_to_lab(rgb)
    return _as_float(rgb).copy()


def colourspace_to_rgb(colourspace: str, colour: ArrayLike3) -> NDArray[np.int64]:
    """Working colourspace back to integer RGB 0..255."""
    _check_colourspace(colourspace)
    if colourspace == "xyz":
        return xyz_to_rgb(colour)
    if colourspace == "lab":
        return lab_to_rgb(colour)
    return _round_channels(_as_float(colour))


# Buffers


def _split_rows(count: int, parts: int) -> list[tuple[int, int]]:
    """Partition count into ~parts contiguous [start, end) spans."""
    parts = max(1, int(parts))
    step = (count + parts - 1) // parts
    return [(i, min(i + step, count)) for i in range(0, count, step)]


def convert_buffer(
    pixels: NDArray[np.generic], colourspace: str, workers: int = 1
) -> WorkBuffer:
    """
    Convert an (N, 4) RGBA array into the working buffer.

    Columns 0..2 hold working-space channels, column 3 the untouched alpha.
    With workers > 1 and enough pixels the conversion is split across threads;
    the result matches the single-threaded one.
    """
    _check_colourspace(colourspace)
    count = int(pixels.shape[0])
    out = np.empty((count, 4), dtype=np.float64)
    out[:, 3] = pixels[:, 3]

    if workers <= 1 or count < 65536:
        out[:, :3] = rgb_to_colourspace(colourspace, pixels[:, :3])
        return out

    spans = _split_rows(count, workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(rgb_to_colourspace, colourspace, pixels[s:e, :3])
            for s, e in spans
        ]
        for (s, e), fut in zip(spans, futures):
            out[s:e, :3] = fut.result()
    return out


def opaque_mask(buffer: WorkBuffer) -> NDArray[np.bool_]:
    """True where alpha > 127."""
    return buffer[:, 3] > ALPHA_OPAQUE_MIN


__all__ = [
    "rgb_to_xyz",
    "xyz_to_rgb",
    "xyz_to_lab",
    "lab_to_xyz",
    "rgb_to_lab",
    "lab_to_rgb",
    "rgb_to_colourspace",
    "colourspace_to_rgb",
    "convert_buffer",
    "opaque_mask",
]
