from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

import torch

LABELS_PATH = Path(__file__).resolve().parent / "data" / "imagenet_labels.json"

_SUMMARY_PREFIXES = ("Top prediction", "Second", "Third")


@dataclass(frozen=True)
class Prediction:
    label: str
    probability: float
    class_index: int


@lru_cache(maxsize=None)
def _load_labels(path: str) -> Dict[int, str]:
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    return {int(k): str(v) for k, v in raw.items()}


def load_labels(path: Optional[Path] = None) -> Dict[int, str]:
    """Class index -> human-readable ImageNet label. The bundled table is partial."""
    return dict(_load_labels(str(path or LABELS_PATH)))


def label_for(index: int, labels: Mapping[int, str]) -> str:
    return labels.get(index, f"Unknown class {index}")


def softmax(logits: torch.Tensor) -> torch.Tensor:
    """Numerically stable softmax over all values (max subtracted before exp)."""
    x = logits.detach().cpu().reshape(-1).to(torch.float64)
    if x.numel() == 0:
        raise ValueError("softmax of an empty logit vector")
    e = torch.exp(x - x.max())
    return e / e.sum()


def top_k(probabilities: torch.Tensor, k: int) -> List[Tuple[float, int]]:
    """Highest ``k`` (probability, index) pairs; ties go to the lower index."""
    if k <= 0:
        return []
    values, indices = torch.sort(probabilities.reshape(-1), descending=True, stable=True)
    k = min(k, values.numel())
    return [(float(values[i]), int(indices[i])) for i in range(k)]


def classify(
    output: torch.Tensor,
    k: int,
    labels: Optional[Mapping[int, str]] = None,
) -> List[Prediction]:
    labels = load_labels() if labels is None else labels
    ranked = top_k(softmax(output), k)
    return [Prediction(label=label_for(idx, labels), probability=p, class_index=idx) for p, idx in ranked]


def format_classification(predictions: List[Prediction]) -> str:
    lines = []
    for prefix, pred in zip(_SUMMARY_PREFIXES, predictions):
        lines.append(f"{prefix}: {pred.label} ({pred.probability * 100:.2f}%)")
    return "\n".join(lines)
