import asyncio
import io
import pathlib
import sys

import numpy as np
import pytest
from PIL import Image

# Ensure the repo root is on sys.path for test imports
REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from stylecast.config import StylecastConfig
from stylecast.runtime import RuntimeLoader


class FakeSession:
    """Stands in for an ONNX Runtime session; ``fn`` maps the input array to the output array."""

    def __init__(self, fn=None, input_shape=(1, 3, "height", "width"), input_names=("input1",), output_names=("output1",)):
        self.fn = fn or (lambda x: x)
        self.input_names = list(input_names)
        self.output_names = list(output_names)
        self._shape = list(input_shape)
        self.calls = []

    def input_shape(self, name):
        return list(self._shape)

    async def run(self, feeds):
        self.calls.append(feeds)
        await asyncio.sleep(0)
        return {self.output_names[0]: self.fn(feeds[self.input_names[0]])}


class FakeRuntime:
    def __init__(self, make_session=None, error=None):
        self.make_session = make_session or (lambda location: FakeSession())
        self.error = error
        self.created = []

    async def create_session(self, location, providers):
        self.created.append((location, tuple(providers)))
        # Yield so concurrent callers get a chance to interleave.
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.make_session(location)


@pytest.fixture
def config(tmp_path):
    return StylecastConfig(models_root=str(tmp_path / "models"))


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def loader(fake_runtime, config):
    return RuntimeLoader(factory=lambda cfg: fake_runtime, config=config)


def png_bytes(width, height, color=(255, 0, 0, 255)):
    buf = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def random_rgba(height, width, seed=0):
    rng = np.random.default_rng(seed)
    arr = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    arr[:, :, 3] = 255
    return arr
