from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

STYLE_KIND = "style"
CLASSIFIER_KIND = "classifier"

FAST_STYLE_IDS: Tuple[str, ...] = ("udnie", "candy", "mosaic", "rain-princess", "pointilism")
CLASSIFIER_ID = "adv-inception-v3"

_LAYOUT = {
    STYLE_KIND: ("fast-style", (224, 224)),
    CLASSIFIER_KIND: ("computer-vision", (299, 299)),
}


@dataclass(frozen=True)
class ModelDescriptor:
    """Where a model lives and what input size to fall back to."""

    model_id: str
    kind: str
    location: str
    default_size: Tuple[int, int]  # (H, W)

    @property
    def is_classifier(self) -> bool:
        return self.kind == CLASSIFIER_KIND


def known_model_ids() -> List[str]:
    return list(FAST_STYLE_IDS) + [CLASSIFIER_ID]


def model_kind(model_id: str) -> Optional[str]:
    if model_id == CLASSIFIER_ID:
        return CLASSIFIER_KIND
    if model_id in FAST_STYLE_IDS:
        return STYLE_KIND
    return None


def model_location(models_root: str, kind: str, model_id: str) -> str:
    subdir, _ = _LAYOUT[kind]
    return str(Path(models_root) / subdir / f"{model_id}.onnx")


def describe_model(model_id: str, models_root: str) -> Optional[ModelDescriptor]:
    """Resolve a model id to its descriptor; ``None`` for ids outside the catalog."""
    kind = model_kind(model_id)
    if kind is None:
        return None
    _, default_size = _LAYOUT[kind]
    return ModelDescriptor(
        model_id=model_id,
        kind=kind,
        location=model_location(models_root, kind, model_id),
        default_size=default_size,
    )


def _static_dim(value: Any) -> Optional[int]:
    # Symbolic dims arrive as strings ("height") or None.
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value > 0 else None


def input_size(shape: Sequence[Any], default_size: Tuple[int, int]) -> Tuple[int, int]:
    """Read (H, W) from an NCHW input shape, substituting defaults for dynamic dims."""
    dims = list(shape)
    h = _static_dim(dims[2]) if len(dims) > 2 else None
    w = _static_dim(dims[3]) if len(dims) > 3 else None
    if h is None or w is None:
        logger.debug("Input shape %s has dynamic spatial dims; using default %s", dims, default_size)
    return (h or default_size[0], w or default_size[1])
