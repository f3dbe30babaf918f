from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

CPU_PROVIDER = "CPUExecutionProvider"


def _repo_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _find_models_root() -> str:
    env = os.environ.get("STYLECAST_MODELS_DIR")
    if env:
        return str(Path(env).expanduser())
    candidates = [
        _repo_root() / "public" / "models",
        Path.cwd() / "models",
    ]
    for p in candidates:
        if p.exists():
            return str(p)
    # Nothing on disk yet; a missing asset is reported with its full path at load time.
    return str(candidates[-1])


def _parse_providers(s: str) -> List[str]:
    out: List[str] = []
    for part in s.split(","):
        part = part.strip()
        if part:
            out.append(part)
    return out or [CPU_PROVIDER]


@dataclass(frozen=True)
class StylecastConfig:
    """Settings shared by the runtime loader, session cache and pipeline."""

    models_root: str = field(default_factory=_find_models_root)
    providers: Tuple[str, ...] = (CPU_PROVIDER,)
    intra_op_threads: int = 0
    log_severity: int = 3
    background: Tuple[int, int, int] = (128, 128, 128)
    top_k: int = 5

    @classmethod
    def from_env(cls, models_root: Optional[str] = None) -> "StylecastConfig":
        providers = _parse_providers(os.environ.get("STYLECAST_PROVIDERS", CPU_PROVIDER))
        threads = int(os.environ.get("STYLECAST_THREADS", "0") or 0)
        return cls(
            models_root=models_root or _find_models_root(),
            providers=tuple(providers),
            intra_op_threads=max(0, threads),
        )
