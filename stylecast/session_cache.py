"""
SessionCache: one inference session per model id, created on first use.

Design:
    - Owned by the pipeline instance; no module-level state.
    - Concurrent first requests for the same id await one shared in-flight
      future, so a session is never constructed twice. Cancelling one caller
      leaves the construction running for the rest.
    - A failed construction is dropped from the in-flight map; a later call
      tries again.
    - No eviction. Sessions live as long as the cache.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from stylecast.config import StylecastConfig
from stylecast.errors import ModelLoadFailed
from stylecast.models import ModelDescriptor, describe_model
from stylecast.runtime import RuntimeLoader, Session

logger = logging.getLogger(__name__)


class SessionCache:
    """
    Usage:
        cache = SessionCache(RuntimeLoader())
        session = await cache.get_session("candy")
    """

    def __init__(self, loader: RuntimeLoader, config: Optional[StylecastConfig] = None) -> None:
        self.loader = loader
        self.config = config or StylecastConfig()
        self._sessions: Dict[str, Session] = {}
        self._pending: Dict[str, "asyncio.Future[Session]"] = {}

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def clear(self) -> None:
        self._sessions.clear()
        self._pending.clear()

    def descriptor(self, model_id: str) -> ModelDescriptor:
        descriptor = describe_model(model_id, self.config.models_root)
        if descriptor is None:
            raise ModelLoadFailed(model_id, None, "unknown model id")
        return descriptor

    async def get_session(self, model_id: str) -> Session:
        cached = self._sessions.get(model_id)
        if cached is not None:
            return cached

        pending = self._pending.get(model_id)
        if pending is None:
            pending = asyncio.ensure_future(self._create(model_id))
            pending.add_done_callback(lambda fut: self._forget(model_id, fut))
            self._pending[model_id] = pending
        return await asyncio.shield(pending)

    def _forget(self, model_id: str, fut: "asyncio.Future[Session]") -> None:
        if self._pending.get(model_id) is fut:
            del self._pending[model_id]

    async def _create(self, model_id: str) -> Session:
        descriptor = self.descriptor(model_id)
        runtime = await self.loader.ensure_runtime()
        logger.info("Loading ONNX model: %s", model_id)
        try:
            session = await runtime.create_session(descriptor.location, self.config.providers)
        except Exception as e:
            logger.error("Failed to load model %s from %s: %s", model_id, descriptor.location, e)
            raise ModelLoadFailed(model_id, descriptor.location, str(e)) from e

        logger.info("Successfully loaded model: %s", model_id)
        self._sessions[model_id] = session
        return session
