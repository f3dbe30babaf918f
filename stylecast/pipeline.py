"""
StylePipeline: image -> letterbox -> ONNX session -> PNG data URI or ranked labels.

This is the integration point that composes the modules:
    RuntimeLoader -> SessionCache -> preprocess -> inference.run -> decode / classify

Style ids prefixed with ``onnx_`` run through the pipeline; every other id is
forwarded unchanged to the native style collaborator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from stylecast.classify import Prediction, classify, format_classification, load_labels
from stylecast.config import StylecastConfig
from stylecast.decode import decode, to_data_uri
from stylecast.errors import InferenceFailed, StylecastError
from stylecast.inference import run
from stylecast.models import CLASSIFIER_ID, input_size
from stylecast.preprocess import ImageSource, preprocess
from stylecast.runtime import RuntimeLoader, Session
from stylecast.session_cache import SessionCache

logger = logging.getLogger(__name__)

ONNX_PREFIX = "onnx_"


@dataclass
class StyleResult:
    success: bool
    message: str
    processed_image_data: Optional[str] = None
    classification: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.processed_image_data is not None:
            out["processed_image_data"] = self.processed_image_data
        if self.classification is not None:
            out["classification"] = self.classification
        return out


@dataclass
class ClassificationResult:
    predictions: List[Prediction] = field(default_factory=list)
    summary: str = ""
    image: Optional[str] = None


NativeStyle = Callable[[bytes, str], StyleResult]


class StylePipeline:
    """
    Usage:
        pipeline = StylePipeline()
        data_uri = await pipeline.stylize(image_bytes, "candy")
        result = await pipeline.process_image_style(image_bytes, "onnx_mosaic")
    """

    def __init__(
        self,
        config: Optional[StylecastConfig] = None,
        loader: Optional[RuntimeLoader] = None,
        cache: Optional[SessionCache] = None,
        native: Optional[NativeStyle] = None,
    ) -> None:
        self.config = config or StylecastConfig()
        self.loader = loader or RuntimeLoader(config=self.config)
        self.cache = cache or SessionCache(self.loader, self.config)
        self.native = native
        self._labels: Optional[Dict[int, str]] = None

    @property
    def labels(self) -> Dict[int, str]:
        if self._labels is None:
            self._labels = load_labels()
        return self._labels

    async def _session_and_size(self, model_id: str) -> Tuple[Session, int, int]:
        descriptor = self.cache.descriptor(model_id)
        session = await self.cache.get_session(model_id)
        shape = session.input_shape(session.input_names[0]) if session.input_names else []
        h, w = input_size(shape, descriptor.default_size)
        return session, h, w

    async def stylize(self, image: ImageSource, style_id: str) -> str:
        """Apply a fast-style model and return the result as a PNG data URI."""
        logger.info("Starting style transfer with style: %s", style_id)
        session, h, w = await self._session_and_size(style_id)
        tensor, canvas = preprocess(image, w, h, self.config.background)
        output = await run(session, tensor)

        if output.dim() != 4 or output.shape[0] != 1 or output.shape[1] != 3:
            raise InferenceFailed(f"expected a (1, 3, H, W) output, got {tuple(output.shape)}")
        out_h, out_w = int(output.shape[2]), int(output.shape[3])
        target = canvas if (out_w, out_h) == canvas.size else None
        return decode(output, out_w, out_h, target)

    async def classify_image(self, image: ImageSource, top_k: Optional[int] = None) -> ClassificationResult:
        """Run the classifier and return ranked labels plus the letterboxed input."""
        k = self.config.top_k if top_k is None else top_k
        session, h, w = await self._session_and_size(CLASSIFIER_ID)
        tensor, canvas = preprocess(image, w, h, self.config.background)
        output = await run(session, tensor)
        predictions = classify(output, k, self.labels)
        return ClassificationResult(
            predictions=predictions,
            summary=format_classification(predictions),
            image=to_data_uri(canvas),
        )

    async def process_image_style(self, image_data: bytes, style: str) -> StyleResult:
        """Route ``style`` to the ONNX pipeline or the native collaborator.

        Pipeline errors become a failed result; nothing partial is returned.
        """
        if not style.startswith(ONNX_PREFIX):
            if self.native is None:
                return StyleResult(success=False, message=f"Unknown style: {style}")
            return self.native(image_data, style)

        model_id = style[len(ONNX_PREFIX):]
        try:
            if model_id == CLASSIFIER_ID:
                result = await self.classify_image(image_data)
                return StyleResult(
                    success=True,
                    message=f"Successfully applied {model_id} (ONNX)",
                    processed_image_data=result.image,
                    classification=result.summary,
                )
            data_uri = await self.stylize(image_data, model_id)
        except StylecastError as e:
            logger.error("ONNX %s failed: %s", model_id, e)
            return StyleResult(success=False, message=f"ONNX failed: {e}")
        return StyleResult(
            success=True,
            message=f"Successfully applied {model_id} (ONNX)",
            processed_image_data=data_uri,
        )
