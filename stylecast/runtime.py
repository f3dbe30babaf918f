"""Inference runtime acquisition.

The runtime is an explicit dependency handed to :class:`RuntimeLoader` at
construction (a factory); the default factory imports ONNX Runtime. Tests pass
a fake runtime instead, so nothing here needs network access or native code.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Union

import numpy as np

from stylecast.config import StylecastConfig
from stylecast.errors import RuntimeUnavailable

logger = logging.getLogger(__name__)

ONNXRUNTIME_MISSING_MESSAGE = "onnxruntime is required. Try: pip install onnxruntime"


class Session(Protocol):
    input_names: List[str]
    output_names: List[str]

    def input_shape(self, name: str) -> List[Any]:
        ...

    async def run(self, feeds: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
        ...


class Runtime(Protocol):
    async def create_session(self, location: str, providers: Sequence[str]) -> Session:
        ...


RuntimeFactory = Callable[[StylecastConfig], Union[Runtime, Awaitable[Runtime]]]


class OrtSession:
    """Adapter exposing an ``onnxruntime.InferenceSession`` as a :class:`Session`."""

    def __init__(self, session: Any) -> None:
        self._session = session
        inputs = session.get_inputs()
        self.input_names = [i.name for i in inputs]
        self.output_names = [o.name for o in session.get_outputs()]
        self._input_shapes = {i.name: list(i.shape) for i in inputs}

    def input_shape(self, name: str) -> List[Any]:
        return list(self._input_shapes.get(name, []))

    async def run(self, feeds: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
        outputs = await asyncio.to_thread(self._session.run, self.output_names, dict(feeds))
        return dict(zip(self.output_names, outputs))


class OrtRuntime:
    def __init__(self, ort: Any, config: StylecastConfig) -> None:
        self._ort = ort
        self._config = config

    def _session_options(self) -> Any:
        opts = self._ort.SessionOptions()
        opts.log_severity_level = int(self._config.log_severity)
        if self._config.intra_op_threads > 0:
            opts.intra_op_num_threads = int(self._config.intra_op_threads)
        return opts

    async def create_session(self, location: str, providers: Sequence[str]) -> OrtSession:
        session = await asyncio.to_thread(
            self._ort.InferenceSession,
            location,
            sess_options=self._session_options(),
            providers=list(providers),
        )
        return OrtSession(session)


def load_onnxruntime(config: StylecastConfig) -> OrtRuntime:
    """Default runtime factory: import ONNX Runtime and configure its logging."""
    try:
        import onnxruntime as ort  # type: ignore
    except ImportError as e:
        raise RuntimeUnavailable(ONNXRUNTIME_MISSING_MESSAGE) from e

    ort.set_default_logger_severity(int(config.log_severity))
    return OrtRuntime(ort, config)


class RuntimeLoader:
    """Acquire the inference runtime once and hand the same instance to every caller.

    Usage:
        loader = RuntimeLoader()
        runtime = await loader.ensure_runtime()
    """

    def __init__(
        self,
        factory: Optional[RuntimeFactory] = None,
        config: Optional[StylecastConfig] = None,
    ) -> None:
        self._factory: RuntimeFactory = factory or load_onnxruntime
        self._config = config or StylecastConfig()
        self._runtime: Optional[Runtime] = None
        self._pending: Optional["asyncio.Future[Runtime]"] = None

    @property
    def runtime(self) -> Optional[Runtime]:
        return self._runtime

    async def ensure_runtime(self) -> Runtime:
        if self._runtime is not None:
            return self._runtime
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._acquire())
            self._pending.add_done_callback(self._forget)
        return await asyncio.shield(self._pending)

    def _forget(self, fut: "asyncio.Future[Runtime]") -> None:
        # A failed acquisition is not remembered; the next call starts over.
        if self._pending is fut:
            self._pending = None

    async def _acquire(self) -> Runtime:
        try:
            runtime = self._factory(self._config)
            if inspect.isawaitable(runtime):
                runtime = await runtime
        except RuntimeUnavailable:
            logger.error("Inference runtime unavailable")
            raise
        except Exception as e:
            logger.error("Inference runtime failed to load: %s", e)
            raise RuntimeUnavailable(f"Inference runtime failed to load: {e}") from e
        self._runtime = runtime
        logger.info("Inference runtime ready: %s", type(runtime).__name__)
        return runtime
