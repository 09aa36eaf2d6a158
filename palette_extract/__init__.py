"""
palette_extract package.

Purpose:
  Extract a small representative palette from raw RGBA pixels. See
  extract_palette.py for the CLI.

Public API:
  extract_palette : pixels + width + ExtractOptions -> [PaletteEntry]
  ExtractOptions  : configuration record (fixed, qty_max, colorspace, ...)
  PaletteEntry    : palette colour with population, blob stats, factor, rgb, hex
  colour_convert  : rgb/xyz/lab transforms and buffer conversion
  cluster         : clustering loop building blocks
  significance    : blob analysis and significance filter
  image_io        : decode image files into RGBA buffers

Quick start:
  from palette_extract import extract_palette, ExtractOptions
  entries = extract_palette(buffer, width, ExtractOptions(qty_max=8))
  print([e.hex for e in entries])
"""

__version__ = "0.3.0"

from . import colour_convert
from . import core_types
from . import cluster
from . import quantize
from . import significance
from . import image_io
from . import utils

from .core_types import (  # noqa: E402,F401
    ExtractOptions,
    InvalidInput,
    PaletteEntry,
    UnsupportedColorspace,
    hex_to_rgb,
    rgb_to_hex,
)
from .extractor import extract_palette  # noqa: E402,F401

__all__ = [
    "__version__",
    "colour_convert",
    "core_types",
    "cluster",
    "quantize",
    "significance",
    "image_io",
    "utils",
    "ExtractOptions",
    "InvalidInput",
    "PaletteEntry",
    "UnsupportedColorspace",
    "hex_to_rgb",
    "rgb_to_hex",
    "extract_palette",
]
