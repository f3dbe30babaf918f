#!/usr/bin/env python3
from __future__ import annotations

import asyncio
import base64
import sys
from pathlib import Path
from typing import Dict, List, Tuple

import streamlit as st

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from stylecast.config import StylecastConfig
from stylecast.models import CLASSIFIER_ID, FAST_STYLE_IDS
from stylecast.pipeline import ONNX_PREFIX, StylePipeline


def _style_options() -> List[Tuple[str, str]]:
    options = [(f"{ONNX_PREFIX}{sid}", sid.replace("-", " ").title()) for sid in FAST_STYLE_IDS]
    options.append((f"{ONNX_PREFIX}{CLASSIFIER_ID}", "Inception v3 (classify)"))
    return options


@st.cache_resource(show_spinner=False)
def _load_pipeline(models_root: str) -> StylePipeline:
    return StylePipeline(config=StylecastConfig.from_env(models_root=models_root or None))


def _data_uri_bytes(data_uri: str) -> bytes:
    _, _, payload = data_uri.partition(",")
    return base64.b64decode(payload)


def main() -> None:
    st.set_page_config(page_title="stylecast", layout="wide")
    st.title("stylecast: ONNX style transfer")
    st.caption("Fast neural style models and an Inception v3 classifier, run on CPU with ONNX Runtime.")

    options = _style_options()
    labels: Dict[str, str] = dict(options)

    with st.sidebar:
        st.header("Models")
        models_root = st.text_input("Models directory", value=StylecastConfig.from_env().models_root)
        style = st.selectbox("Style", options=[o[0] for o in options], format_func=lambda s: labels[s])
        run_button = st.button("Apply", type="primary")

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Input")
        cam = st.camera_input("Take a photo")
        upload = st.file_uploader("…or upload an image", type=["jpg", "jpeg", "png", "webp"])

    with col2:
        st.subheader("Output")
        out_placeholder = st.empty()
        summary_placeholder = st.empty()
        dl_placeholder = st.empty()

    if not run_button:
        return

    image_bytes = cam.getvalue() if cam is not None else (upload.getvalue() if upload is not None else None)
    if not image_bytes:
        st.error("Capture a photo or upload an image.")
        return

    pipeline = _load_pipeline(models_root)
    with st.spinner("Running model…"):
        result = asyncio.run(pipeline.process_image_style(image_bytes, style))

    if not result.success:
        st.error(result.message)
        return

    st.info(result.message)
    if result.processed_image_data:
        png = _data_uri_bytes(result.processed_image_data)
        out_placeholder.image(png, caption=labels[style], use_container_width=True)
        dl_placeholder.download_button(
            "Download output", data=png, file_name=f"style-transfer-{style}.png", mime="image/png"
        )
    if result.classification:
        summary_placeholder.text(result.classification)


if __name__ == "__main__":
    main()
