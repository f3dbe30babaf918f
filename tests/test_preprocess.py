import base64

import numpy as np
import pytest
import torch
from PIL import Image

from conftest import png_bytes
from stylecast.errors import ImageDecodeFailed
from stylecast.preprocess import NEUTRAL_GRAY, letterbox, letterbox_geometry, load_image, pixels_to_planar, preprocess


def test_letterbox_geometry_landscape_into_square():
    geo = letterbox_geometry(400, 300, 224, 224)
    assert (geo.draw_w, geo.draw_h) == (224, 168)
    assert (geo.dx, geo.dy) == (0, 28)


def test_letterbox_geometry_portrait_into_square():
    geo = letterbox_geometry(300, 400, 224, 224)
    assert (geo.draw_w, geo.draw_h) == (168, 224)
    assert (geo.dx, geo.dy) == (28, 0)


def test_letterbox_geometry_upscales_small_images():
    geo = letterbox_geometry(10, 5, 100, 100)
    assert (geo.draw_w, geo.draw_h) == (100, 50)
    assert (geo.dx, geo.dy) == (0, 25)


@pytest.mark.parametrize("src", [(400, 300), (640, 480), (123, 457), (1920, 1080), (7, 3), (299, 299)])
@pytest.mark.parametrize("target", [(224, 224), (299, 299), (96, 64)])
def test_letterbox_geometry_preserves_aspect_and_fits(src, target):
    w, h = src
    tw, th = target
    geo = letterbox_geometry(w, h, tw, th)
    assert geo.draw_w <= tw and geo.draw_h <= th
    assert geo.draw_w == tw or geo.draw_h == th
    # Each drawn side is within half a pixel of the exact scaled size.
    assert abs(geo.draw_w - w * geo.scale) <= 0.5
    assert abs(geo.draw_h - h * geo.scale) <= 0.5
    assert 0 <= geo.dx <= tw - geo.draw_w
    assert 0 <= geo.dy <= th - geo.draw_h


def test_letterbox_geometry_rejects_empty_sizes():
    with pytest.raises(ValueError):
        letterbox_geometry(0, 10, 224, 224)
    with pytest.raises(ValueError):
        letterbox_geometry(10, 10, 0, 224)


def test_letterbox_pads_with_background():
    img = Image.new("RGBA", (400, 300), (255, 0, 0, 255))
    canvas = letterbox(img, 224, 224)
    assert canvas.size == (224, 224)
    arr = np.asarray(canvas)
    gray = np.array(NEUTRAL_GRAY + (255,), dtype=np.uint8)
    assert (arr[:28] == gray).all()
    assert (arr[196:] == gray).all()
    assert tuple(arr[112, 112]) == (255, 0, 0, 255)
    assert tuple(arr[28, 0]) != tuple(gray)


def test_pixels_to_planar_layout():
    rgba = np.array(
        [
            [[10, 20, 30, 255], [40, 50, 60, 0]],
            [[70, 80, 90, 255], [100, 110, 120, 7]],
        ],
        dtype=np.uint8,
    )
    t = pixels_to_planar(rgba)
    assert t.shape == (1, 3, 2, 2)
    assert t.dtype == torch.float32
    flat = t.reshape(-1) * 255.0
    expected = [10, 40, 70, 100, 20, 50, 80, 110, 30, 60, 90, 120]
    assert torch.allclose(flat, torch.tensor(expected, dtype=torch.float32), atol=1e-4)


def test_preprocess_shape_and_range():
    tensor, canvas = preprocess(png_bytes(400, 300, (0, 255, 0, 255)), 224, 224)
    assert tensor.shape == (1, 3, 224, 224)
    assert canvas.size == (224, 224)
    assert float(tensor.min()) >= 0.0 and float(tensor.max()) <= 1.0
    # Center pixel is pure green; padding rows are the neutral gray.
    assert tensor[0, :, 112, 112].tolist() == [0.0, 1.0, 0.0]
    assert torch.allclose(tensor[0, :, 0, 0], torch.full((3,), 128 / 255.0))


def test_preprocess_is_deterministic():
    data = png_bytes(37, 91, (12, 200, 99, 255))
    a, _ = preprocess(data, 64, 48)
    b, _ = preprocess(data, 64, 48)
    assert torch.equal(a, b)


def test_load_image_accepts_data_uri_and_path(tmp_path):
    data = png_bytes(5, 4)
    uri = "data:image/png;base64," + base64.b64encode(data).decode("ascii")
    assert load_image(uri).size == (5, 4)

    path = tmp_path / "img.png"
    path.write_bytes(data)
    img = load_image(str(path))
    assert img.size == (5, 4)
    assert img.mode == "RGBA"


def test_load_image_rejects_garbage(tmp_path):
    with pytest.raises(ImageDecodeFailed):
        load_image(b"not an image")
    with pytest.raises(ImageDecodeFailed):
        load_image("data:image/png;base64,@@@")
    with pytest.raises(ImageDecodeFailed):
        load_image(str(tmp_path / "missing.png"))


def test_load_image_rejects_decompression_bomb(monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
    with pytest.raises(ImageDecodeFailed):
        load_image(png_bytes(30, 20))
