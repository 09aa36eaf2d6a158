from __future__ import annotations

import io
from pathlib import Path
from typing import Tuple

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .core_types import InvalidInput

"""
Image decoding into the flat RGBA buffer consumed by extract_palette.

The PNG decoder is tried first; anything else Pillow can read is the fallback.
EXIF orientation is applied and embedded ICC profiles are converted to sRGB.
"""

try:
    from PIL import ImageCms  # ICC conversion if profile present
except ImportError:  # pragma: no cover
    ImageCms = None  # type: ignore[assignment]


def _convert_to_srgb_rgba(im: Image.Image) -> Image.Image:
    im = ImageOps.exif_transpose(im)
    icc_bytes = im.info.get("icc_profile")

    if icc_bytes and ImageCms is not None:
        try:
            src_prof = ImageCms.ImageCmsProfile(io.BytesIO(icc_bytes))
            dst_prof = ImageCms.createProfile("sRGB")
            im2 = ImageCms.profileToProfile(
                im,
                src_prof,
                dst_prof,
                renderingIntent=ImageCms.Intent.PERCEPTUAL,
                outputMode="RGBA",
            )
            if im2 is None:
                return im.convert("RGBA")
            return im2
        except (ImageCms.PyCMSError, OSError, ValueError):
            return im.convert("RGBA")

    return im.convert("RGBA")


def _open_image(path: Path) -> Image.Image:
    try:
        return Image.open(path, formats=("PNG",))
    except UnidentifiedImageError:
        pass
    try:
        return Image.open(path)
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidInput(f"cannot decode image {path}: {exc}") from exc


def load_rgba_buffer(path: Path) -> Tuple[np.ndarray, int]:
    """
    Decode an image file.

    Returns:
      (flat uint8 RGBA buffer of length 4*W*H, W)
    """
    # Pillow decodes lazily: truncated or corrupt data only fails here
    try:
        with _open_image(Path(path)) as im0:
            im = _convert_to_srgb_rgba(im0)
            arr = np.array(im, dtype=np.uint8)
    except OSError as exc:
        raise InvalidInput(f"cannot decode image {path}: {exc}") from exc
    height, width = int(arr.shape[0]), int(arr.shape[1])
    if width * height == 0:
        raise InvalidInput(f"image {path} has no pixels")
    return arr.reshape(-1), width


def is_image_file(path: Path) -> bool:
    try:
        with Image.open(path) as im:
            im.seek(0)
            im.load()
        return True
    except (UnidentifiedImageError, OSError):
        return False


__all__ = [
    "load_rgba_buffer",
    "is_image_file",
]
