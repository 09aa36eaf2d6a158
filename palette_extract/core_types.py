from __future__ import annotations

"""
Core type aliases, value objects, error types and small hex helpers.

Palette entries carry phase-specific fields. Validity windows:
  qty, sum, bound          : rewritten by every calc_bounds pass; qty is
                             refreshed once more by quantize
  dim_max, dim_avg, dim_qty: set by analyze_dimensions, after the loop
  factor                   : set by calc_factor, after the loop
  rgb, hex                 : set by extract_palette on surviving entries only
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.typing import NDArray

from .constants import (
    COLOURSPACES,
    DEFAULT_COLOURSPACE,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_QTY_MAX,
    DEFAULT_R_FACTOR,
    DEFAULT_R_THRESHOLD,
    DEFAULT_STOP_INC_QTY,
    DEFAULT_THRESHOLD,
)

# Basic aliases

RGBTuple = Tuple[int, int, int]
HexStr = str

Vec3 = NDArray[np.float64]  # (3,) colour in the working space
WorkBuffer = NDArray[np.float64]  # (N, 4) working channels + original alpha
IndexMap = NDArray[np.int32]  # (N,) palette index or TRANSPARENT_INDEX

FixedColour = Union[str, Sequence[int]]


# Errors


class UnsupportedColorspace(ValueError):
    """Working colourspace is not one of rgb / xyz / lab."""


class InvalidInput(ValueError):
    """Precondition failure on the pixel buffer, width or options."""


# Hex helpers


def rgb_to_hex(rgb: Sequence[int]) -> HexStr:
    """RGB triple to lowercase hex string '#rrggbb'."""
    return f"#{int(rgb[0]):02x}{int(rgb[1]):02x}{int(rgb[2]):02x}"


def hex_to_rgb(hex_str: str) -> RGBTuple:
    """Parse '#rgb' or '#rrggbb' (leading '#' optional) into an RGB tuple."""
    s = hex_str.strip().lower()
    if s.startswith("#"):
        s = s[1:]
    if len(s) == 3:
        s = "".join(ch * 2 for ch in s)
    if len(s) != 6:
        raise InvalidInput(f"hex must be '#rrggbb' or '#rgb', got {hex_str!r}")
    try:
        return (int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16))
    except ValueError as exc:
        raise InvalidInput(f"invalid hex colour {hex_str!r}") from exc


def coerce_to_rgb_tuple(value: FixedColour) -> RGBTuple:
    """
    Coerce a hex string or a 3-length sequence/array to an (int, int, int) tuple.
    Channels must lie in 0..255.
    """
    if isinstance(value, str):
        return hex_to_rgb(value)
    if len(value) < 3:
        raise InvalidInput("sequence too small for RGB")
    rgb = (int(value[0]), int(value[1]), int(value[2]))
    if any(c < 0 or c > 255 for c in rgb):
        raise InvalidInput(f"RGB channels must be in 0..255, got {rgb}")
    return rgb


# Value objects


@dataclass(eq=False)
class Bound:
    """Approximate minimum enclosing sphere of the pixels assigned to an entry."""

    center: Optional[Vec3] = None
    radius: float = 0.0
    vector: Optional[Vec3] = None  # center -> latest sphere-expanding point


@dataclass(eq=False)
class PaletteEntry:
    """One candidate or final palette colour."""

    color: Vec3
    is_fixed: bool = False
    qty: int = 0
    sum: Vec3 = field(default_factory=lambda: np.zeros(3, dtype=np.float64))
    bound: Bound = field(default_factory=Bound)
    dim_max: int = 0
    dim_avg: float = 0.0
    dim_qty: int = 0
    factor: float = 0.0
    rgb: Optional[RGBTuple] = None
    hex: Optional[HexStr] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view of a finished entry."""
        colour: List[Any] = (
            list(self.rgb) if self.rgb is not None else self.color.tolist()
        )
        return {
            "color": colour,
            "isFixed": self.is_fixed,
            "qty": int(self.qty),
            "dimMax": int(self.dim_max),
            "dimAvg": float(self.dim_avg),
            "dimQty": int(self.dim_qty),
            "factor": float(self.factor),
            "hex": self.hex,
        }


@dataclass(frozen=True)
class ExtractOptions:
    """
    Configuration record for extract_palette.

    r_threshold is accepted and passed through but no step consumes it.
    """

    fixed: Tuple[FixedColour, ...] = ()
    qty_max: int = DEFAULT_QTY_MAX
    colorspace: str = DEFAULT_COLOURSPACE
    threshold: float = DEFAULT_THRESHOLD
    r_threshold: float = DEFAULT_R_THRESHOLD
    r_factor: float = DEFAULT_R_FACTOR
    stop_inc_qty: int = DEFAULT_STOP_INC_QTY
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    def fixed_rgb(self) -> List[RGBTuple]:
        return [coerce_to_rgb_tuple(c) for c in self.fixed]

    def validate(self) -> "ExtractOptions":
        """Fail fast on bad options. Returns self for chaining."""
        if self.colorspace not in COLOURSPACES:
            raise UnsupportedColorspace(
                f"colourspace {self.colorspace!r} not supported "
                f"(expected one of {', '.join(COLOURSPACES)})"
            )
        if int(self.qty_max) < 1:
            raise InvalidInput("qty_max must be >= 1")
        if int(self.max_iterations) < 1:
            raise InvalidInput("max_iterations must be >= 1")
        if int(self.stop_inc_qty) < 1:
            raise InvalidInput("stop_inc_qty must be >= 1")
        self.fixed_rgb()
        return self


__all__ = [
    # aliases / types
    "RGBTuple",
    "HexStr",
    "Vec3",
    "WorkBuffer",
    "IndexMap",
    "FixedColour",
    # errors
    "UnsupportedColorspace",
    "InvalidInput",
    # value objects
    "Bound",
    "PaletteEntry",
    "ExtractOptions",
    # helpers
    "rgb_to_hex",
    "hex_to_rgb",
    "coerce_to_rgb_tuple",
]
