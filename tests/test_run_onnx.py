import pytest
from PIL import Image

import stylecast.run_onnx as cli
from conftest import FakeRuntime, FakeSession, png_bytes
from stylecast.pipeline import StylePipeline
from stylecast.runtime import RuntimeLoader


@pytest.fixture
def fake_pipeline(monkeypatch):
    runtime = FakeRuntime(make_session=lambda loc: FakeSession(fn=lambda x: x * 2.0 - 1.0))

    def make(config):
        return StylePipeline(config=config, loader=RuntimeLoader(factory=lambda cfg: runtime, config=config))

    monkeypatch.setattr(cli, "StylePipeline", lambda config: make(config))
    return runtime


def test_cli_writes_stylized_png(tmp_path, fake_pipeline):
    src = tmp_path / "in.png"
    src.write_bytes(png_bytes(30, 20))
    out = tmp_path / "out" / "styled.png"
    code = cli.main(["--image", str(src), "--model", "candy", "--out", str(out), "--models-dir", str(tmp_path)])
    assert code == 0
    assert Image.open(out).size == (224, 224)
    assert fake_pipeline.created[0][0].endswith("candy.onnx")


def test_cli_missing_image_returns_error(tmp_path, fake_pipeline, capsys):
    code = cli.main(["--image", str(tmp_path / "nope.png"), "--model", "candy", "--out", str(tmp_path / "o.png")])
    assert code == 1
    assert "error:" in capsys.readouterr().err


def test_cli_requires_out_for_style_models(tmp_path):
    with pytest.raises(SystemExit):
        cli.main(["--image", "x.png", "--model", "candy"])


def test_cli_rejects_unknown_model():
    with pytest.raises(SystemExit):
        cli.main(["--image", "x.png", "--model", "vangogh", "--out", "o.png"])
