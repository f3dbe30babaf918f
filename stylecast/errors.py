from __future__ import annotations

from typing import Optional


class StylecastError(Exception):
    """Base class for every pipeline failure."""


class RuntimeUnavailable(StylecastError):
    """The inference runtime could not be acquired in this environment."""


class ModelLoadFailed(StylecastError):
    def __init__(self, model_id: str, location: Optional[str], reason: str = "") -> None:
        self.model_id = model_id
        self.location = location
        self.reason = reason
        msg = f"Failed to load model '{model_id}'."
        if location:
            msg += f" Make sure the model file exists at: {location}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ImageDecodeFailed(StylecastError):
    """The source image could not be decoded."""


class InferenceFailed(StylecastError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Inference failed: {reason}")
