"""Command line interface for the TinyYOLO detector."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict

from tiny_yolo.api import create_pipeline
from tiny_yolo.pipeline.pipeline import PipelineResult
from tiny_yolo.utils.io import load_image, save_image


def _print_detections(tag: str, result: PipelineResult) -> None:
    if not result.detections:
        print(f"[{tag}] No objects detected")
        return
    for det in result.detections:
        x1, y1, x2, y2 = det.box.to_tuple()
        print(
            f"[{tag}] {det.class_name} score={det.score:.3f} class_score={det.class_score:.3f} "
            f"box=({x1:.1f}, {y1:.1f}, {x2:.1f}, {y2:.1f})"
        )


def _run_image(args: argparse.Namespace) -> None:
    overrides: Dict[str, Any] = {}
    if args.weights:
        overrides.setdefault("detector", {})["weights_path"] = str(args.weights)
    if args.device:
        overrides.setdefault("detector", {})["device"] = args.device
    pipeline = create_pipeline(args.config, overrides)

    options: Dict[str, Any] = {}
    if args.input_size is not None:
        options["input_size"] = args.input_size
    if args.score_threshold is not None:
        options["score_threshold"] = args.score_threshold

    image = load_image(args.source)
    result = pipeline.process_image(image, **options)
    _print_detections(str(args.source), result)
    if args.output:
        annotated = result.annotated if result.annotated is not None else image
        save_image(args.output, annotated)
        print(f"Annotated image written to {args.output}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the TinyYOLO v2 detector from the command line.")
    parser.add_argument("--config", type=Path, default=Path("configs/default.yaml"), help="Path to the YAML config.")
    parser.add_argument("--weights", type=Path, help="Override detector.weights_path.")
    parser.add_argument("--device", help="Override detector.device (auto, cpu, cuda:0).")

    subparsers = parser.add_subparsers(dest="command", required=True)

    image_parser = subparsers.add_parser("image", help="Run detection on a single image file.")
    image_parser.add_argument("source", type=Path, help="Path to the input image.")
    image_parser.add_argument("--output", type=Path, help="Optional path to save an annotated copy of the image.")
    image_parser.add_argument("--input-size", type=int, help="Network input size (multiple of 32).")
    image_parser.add_argument("--score-threshold", type=float, help="Objectness threshold; 0 disables filtering.")
    image_parser.set_defaults(func=_run_image)

    return parser


def main(argv: list[str] | None = None) -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
