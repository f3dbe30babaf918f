"""
Planar output tensor -> displayable PNG.

Models disagree on their output range, and nothing here reads it from model
metadata. Instead the range is guessed from the observed min/max of the whole
tensor:

    max <= 1.2 and min >= -0.2   -> UNIT         clamp to [0, 1], x255
    max <= 1.1 and min >= -1.1   -> SIGNED_UNIT  (v * 0.5 + 0.5) x255
    anything else                -> ARBITRARY    (v - min) / (max - min) x255

This is an approximation. A model whose true [0, 1] output happens to stay
inside [-0.2, 1.2] is right; a [-1, 1] model whose output never goes below
-0.2 is decoded as UNIT and comes out washed out; a [0, 255] model that
produces a near-constant image is stretched to full contrast.
"""

from __future__ import annotations

import base64
import io
from enum import Enum
from typing import Optional

import numpy as np
import torch
from PIL import Image


class OutputRange(str, Enum):
    UNIT = "unit"
    SIGNED_UNIT = "signed_unit"
    ARBITRARY = "arbitrary"


def select_range(vmin: float, vmax: float) -> OutputRange:
    if vmax <= 1.2 and vmin >= -0.2:
        return OutputRange.UNIT
    if vmax <= 1.1 and vmin >= -1.1:
        return OutputRange.SIGNED_UNIT
    return OutputRange.ARBITRARY


def _to_bytes(values: torch.Tensor) -> torch.Tensor:
    # Saturating 8-bit conversion: NaN -> 0, round to nearest, clamp to [0, 255].
    values = torch.nan_to_num(values, nan=0.0, posinf=255.0, neginf=0.0)
    return values.round().clamp(0, 255).to(torch.uint8)


def planar_to_pixels(tensor: torch.Tensor, width: int, height: int) -> np.ndarray:
    """Planar float tensor with 3*H*W values -> interleaved RGBA uint8 array (H, W, 4)."""
    plane = width * height
    flat = tensor.detach().cpu().reshape(-1).to(torch.float32)
    if flat.numel() != 3 * plane:
        raise ValueError(f"Expected {3 * plane} values for a 3x{height}x{width} image, got {flat.numel()}")

    # NaN samples decode to 0 and do not take part in range detection.
    finite = flat[~torch.isnan(flat)]
    vmin = float(finite.min()) if finite.numel() else 0.0
    vmax = float(finite.max()) if finite.numel() else 0.0
    mode = select_range(vmin, vmax)
    chw = flat.view(3, height, width)
    if mode is OutputRange.UNIT:
        scaled = chw.clamp(0.0, 1.0) * 255.0
    elif mode is OutputRange.SIGNED_UNIT:
        scaled = (chw * 0.5 + 0.5) * 255.0
    else:
        scale = 1.0 if vmax == vmin else 1.0 / (vmax - vmin)
        scaled = (chw - vmin) * scale * 255.0

    rgb = _to_bytes(scaled).permute(1, 2, 0)
    alpha = torch.full((height, width, 1), 255, dtype=torch.uint8)
    return torch.cat([rgb, alpha], dim=2).contiguous().numpy()


def to_data_uri(image: Image.Image) -> str:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def decode(
    tensor: torch.Tensor,
    width: int,
    height: int,
    canvas: Optional[Image.Image] = None,
) -> str:
    """Render ``tensor`` onto ``canvas`` (replacing its pixels) and return a PNG data URI."""
    rendered = Image.fromarray(planar_to_pixels(tensor, width, height))
    if canvas is None:
        return to_data_uri(rendered)
    if canvas.size != (width, height):
        raise ValueError(f"Canvas is {canvas.size[0]}x{canvas.size[1]}, output is {width}x{height}")
    canvas.paste(rendered, (0, 0))
    return to_data_uri(canvas)
