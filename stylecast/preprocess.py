"""
Image -> tensor preprocessing.

The source image is letterboxed into the model's input size (aspect ratio kept,
never cropped, remainder padded with a neutral background) and then laid out
channel-planar as float32 in [0, 1]:

    channel 0 -> [0, H*W), channel 1 -> [H*W, 2*H*W), channel 2 -> [2*H*W, 3*H*W)

The letterboxed canvas is returned too; the decoder renders the model output
back onto it.
"""

from __future__ import annotations

import base64
import binascii
import io
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

import numpy as np
import torch
from PIL import Image, ImageOps, UnidentifiedImageError

from stylecast.errors import ImageDecodeFailed

ImageSource = Union[bytes, bytearray, str, Path, Image.Image]

NEUTRAL_GRAY: Tuple[int, int, int] = (128, 128, 128)


@dataclass(frozen=True)
class Letterbox:
    scale: float
    draw_w: int
    draw_h: int
    dx: int
    dy: int


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _decode_data_uri(uri: str) -> bytes:
    header, sep, payload = uri.partition(",")
    if not sep:
        raise ValueError("malformed data URI")
    if header.endswith(";base64"):
        return base64.b64decode(payload, validate=True)
    raise ValueError("only base64 data URIs are supported")


def load_image(source: ImageSource) -> Image.Image:
    """Decode bytes, a file path, a ``data:`` URI or a PIL image into an RGBA image."""
    if isinstance(source, Image.Image):
        return source.convert("RGBA")
    try:
        if isinstance(source, (bytes, bytearray)):
            img = Image.open(io.BytesIO(bytes(source)))
        elif isinstance(source, str) and source.startswith("data:"):
            img = Image.open(io.BytesIO(_decode_data_uri(source)))
        else:
            img = Image.open(Path(source))
        img.load()
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, binascii.Error) as e:
        raise ImageDecodeFailed(f"Failed to load image: {e}") from e
    return img.convert("RGBA")


def letterbox_geometry(src_w: int, src_h: int, target_w: int, target_h: int) -> Letterbox:
    if src_w <= 0 or src_h <= 0:
        raise ValueError(f"Image has no pixels ({src_w}x{src_h})")
    if target_w <= 0 or target_h <= 0:
        raise ValueError(f"Target size must be positive, got {target_w}x{target_h}")

    scale = min(target_w / src_w, target_h / src_h)
    # A sliver image still draws at least one pixel row/column.
    draw_w = max(1, _round_half_up(src_w * scale))
    draw_h = max(1, _round_half_up(src_h * scale))
    dx = (target_w - draw_w) // 2
    dy = (target_h - draw_h) // 2
    return Letterbox(scale=scale, draw_w=draw_w, draw_h=draw_h, dx=dx, dy=dy)


def letterbox(
    image: Image.Image,
    target_w: int,
    target_h: int,
    background: Tuple[int, int, int] = NEUTRAL_GRAY,
) -> Image.Image:
    """Fit ``image`` inside a ``target_w x target_h`` RGBA canvas, centered."""
    geo = letterbox_geometry(image.width, image.height, target_w, target_h)
    canvas = Image.new("RGBA", (target_w, target_h), tuple(background) + (255,))
    resized = image.convert("RGBA").resize((geo.draw_w, geo.draw_h), resample=Image.Resampling.LANCZOS)
    canvas.alpha_composite(resized, dest=(geo.dx, geo.dy))
    return canvas


def pixels_to_planar(rgba: Union[np.ndarray, Image.Image]) -> torch.Tensor:
    """Interleaved RGBA (H, W, 4) uint8 -> planar float32 tensor (1, 3, H, W) in [0, 1]."""
    arr = np.asarray(rgba)
    if arr.ndim != 3 or arr.shape[2] < 3:
        raise ValueError(f"Expected an (H, W, 4) pixel buffer, got shape {arr.shape}")
    arr = arr[:, :, :3].astype(np.float32) / 255.0
    return torch.from_numpy(arr).permute(2, 0, 1).contiguous().unsqueeze(0)


def preprocess(
    image: ImageSource,
    target_w: int,
    target_h: int,
    background: Tuple[int, int, int] = NEUTRAL_GRAY,
) -> Tuple[torch.Tensor, Image.Image]:
    """Letterbox ``image`` and encode it as a (1, 3, target_h, target_w) tensor.

    Returns:
        (tensor, canvas) where canvas is the letterboxed RGBA surface.
    """
    canvas = letterbox(load_image(image), target_w, target_h, background)
    return pixels_to_planar(canvas), canvas
