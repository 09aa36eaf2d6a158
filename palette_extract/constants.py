"""
Defaults and fixed numeric constants used across the project.

- Option defaults (DEFAULT_*)
- Pixel-level thresholds (alpha cut-off, transparent sentinel, blob floor)
- sRGB / XYZ / Lab conversion constants (D65)
"""
from __future__ import annotations

from typing import Tuple

# =================
# Option defaults
# =================
COLOURSPACES: Tuple[str, ...] = ("rgb", "xyz", "lab")

DEFAULT_QTY_MAX: int = 16
DEFAULT_COLOURSPACE: str = "lab"
DEFAULT_THRESHOLD: float = 0.2
DEFAULT_R_THRESHOLD: float = 100.0
DEFAULT_R_FACTOR: float = 0.001
DEFAULT_STOP_INC_QTY: int = 3
DEFAULT_MAX_ITERATIONS: int = 100

# ==============
# Pixel handling
# ==============
ALPHA_OPAQUE_MIN: int = 127  # alpha > this counts as opaque
TRANSPARENT_INDEX: int = -1
SUBSTANTIAL_BLOB_MIN: int = 4

# ====================
# Colour conversion
# ====================
SRGB_LINEAR_CUTOFF: float = 0.04045
SRGB_GAMMA_CUTOFF: float = 0.0031308

RGB_TO_XYZ: Tuple[Tuple[float, float, float], ...] = (
    (0.4124, 0.3576, 0.1805),
    (0.2126, 0.7152, 0.0722),
    (0.0193, 0.1192, 0.9505),
)
XYZ_TO_RGB: Tuple[Tuple[float, float, float], ...] = (
    (3.2406, -1.5372, -0.4986),
    (-0.9689, 1.8758, 0.0415),
    (0.0557, -0.2040, 1.0570),
)

WHITE_D65: Tuple[float, float, float] = (95.047, 100.0, 108.883)
LAB_EPSILON: float = 0.008856
LAB_KAPPA_SLOPE: float = 7.787
LAB_OFFSET: float = 16.0 / 116.0

__all__ = [
    "COLOURSPACES",
    "DEFAULT_QTY_MAX",
    "DEFAULT_COLOURSPACE",
    "DEFAULT_THRESHOLD",
    "DEFAULT_R_THRESHOLD",
    "DEFAULT_R_FACTOR",
    "DEFAULT_STOP_INC_QTY",
    "DEFAULT_MAX_ITERATIONS",
    "ALPHA_OPAQUE_MIN",
    "TRANSPARENT_INDEX",
    "SUBSTANTIAL_BLOB_MIN",
    "SRGB_LINEAR_CUTOFF",
    "SRGB_GAMMA_CUTOFF",
    "RGB_TO_XYZ",
    "XYZ_TO_RGB",
    "WHITE_D65",
    "LAB_EPSILON",
    "LAB_KAPPA_SLOPE",
    "LAB_OFFSET",
]
