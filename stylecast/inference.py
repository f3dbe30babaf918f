from __future__ import annotations

import logging

import numpy as np
import torch

from stylecast.errors import InferenceFailed
from stylecast.runtime import Session

logger = logging.getLogger(__name__)


def check_input(tensor: torch.Tensor) -> None:
    """Reject anything that is not a (1, 3, H, W) float32 tensor."""
    if tensor.dim() != 4:
        raise ValueError(f"Expected a 4-D NCHW tensor, got shape {tuple(tensor.shape)}")
    n, c, _, _ = tensor.shape
    if n != 1 or c != 3:
        raise ValueError(f"Expected batch=1 and channels=3, got shape {tuple(tensor.shape)}")
    if tensor.dtype != torch.float32:
        raise ValueError(f"Expected float32 input, got {tensor.dtype}")


async def run(session: Session, tensor: torch.Tensor) -> torch.Tensor:
    """Feed ``tensor`` to the session's first input and return its first output.

    A failed run is not retried: the same input would fail the same way.
    """
    check_input(tensor)
    if not session.input_names or not session.output_names:
        raise InferenceFailed("session declares no inputs or no outputs")

    input_name = session.input_names[0]
    output_name = session.output_names[0]
    feeds = {input_name: tensor.detach().cpu().contiguous().numpy()}
    try:
        results = await session.run(feeds)
    except Exception as e:
        reason = str(e) or type(e).__name__
        logger.error("ONNX inference error: %s", reason)
        raise InferenceFailed(reason) from e

    if output_name not in results:
        raise InferenceFailed(f"session returned no output named '{output_name}'")
    out = np.asarray(results[output_name], dtype=np.float32)
    return torch.from_numpy(np.ascontiguousarray(out))
