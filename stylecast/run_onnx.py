from __future__ import annotations

import argparse
import asyncio
import base64
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from stylecast.config import StylecastConfig
from stylecast.errors import StylecastError
from stylecast.models import CLASSIFIER_ID, known_model_ids
from stylecast.pipeline import StylePipeline


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description=(
            "stylecast: run a fast-style ONNX model (or the Inception classifier) on one image.\n"
            "Models are read from <models-dir>/fast-style/<id>.onnx and "
            "<models-dir>/computer-vision/<id>.onnx (or set STYLECAST_MODELS_DIR)."
        )
    )
    p.add_argument("--image", type=str, required=True, help="Path to the input image.")
    p.add_argument("--model", type=str, required=True, choices=known_model_ids(), help="Model id.")
    p.add_argument("--out", type=str, default="", help="Output PNG path (required for style models).")
    p.add_argument("--models-dir", type=str, default="", help="Override the models directory.")
    p.add_argument("--top-k", type=int, default=5, help="Predictions to keep for the classifier.")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return p


def _write_data_uri(data_uri: str, path: str | Path) -> None:
    _, _, payload = data_uri.partition(",")
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(base64.b64decode(payload))


async def _run(args: argparse.Namespace) -> None:
    config = StylecastConfig.from_env(models_root=args.models_dir or None)
    pipeline = StylePipeline(config=config)
    image_bytes = Path(args.image).read_bytes()

    t0 = time.time()
    if args.model == CLASSIFIER_ID:
        result = await pipeline.classify_image(image_bytes, top_k=args.top_k)
        print(result.summary)
        for pred in result.predictions:
            print(f"  {pred.class_index:4d}  {pred.probability:.4f}  {pred.label}")
        if args.out and result.image:
            _write_data_uri(result.image, args.out)
            print(f"Saved: {args.out}")
    else:
        data_uri = await pipeline.stylize(image_bytes, args.model)
        _write_data_uri(data_uri, args.out)
        print(f"Saved: {args.out}")
    print(f"Total time: {round(time.time() - t0, 2)}s")


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.model != CLASSIFIER_ID and not args.out:
        parser.error("--out is required for style models")

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(_run(args))
    except (StylecastError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
