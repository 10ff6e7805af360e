from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

import cv2

from Document_Analysis import DocumentAnalyzer, load_refine_config
from Document_Analysis.image_io import read_image
from doc_kit import DecodeConfig, LetterboxConfig, draw_detections


def main() -> int:
    parser = argparse.ArgumentParser(description="Classify one document photo and print the analysis as JSON.")
    parser.add_argument("image", help="Path to an input image.")
    parser.add_argument("--model", default="models/yolo/800-50/best.onnx", help="Path to the detector (.onnx).")
    parser.add_argument("--classes", default=None, help="classes.txt (defaults to the one next to the model).")
    parser.add_argument("--imgsz", type=int, default=800, help="Letterbox input size.")
    parser.add_argument("--conf", type=float, default=0.1, help="Raw-score threshold.")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for per-class NMS.")
    parser.add_argument("--refine-config", default=None, help="Optional JSON with tolerance overrides.")
    parser.add_argument("--no-refine", action="store_true", help="Return the raw detector summary.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--out", default=None, help="Optional path to save an overlay image.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log refinement trace at DEBUG level.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]

    class_names = None
    if args.classes:
        from doc_kit import load_class_names

        class_names = load_class_names(args.classes)

    analyzer = DocumentAnalyzer.from_model(
        args.model,
        class_names=class_names,
        letterbox_cfg=LetterboxConfig(size=int(args.imgsz)),
        decode_cfg=DecodeConfig(conf_threshold=args.conf, iou_threshold=args.iou),
        onnx_providers=onnx_providers,
        refine=not args.no_refine,
        refine_cfg=load_refine_config(args.refine_config),
    )

    result = analyzer.analyze(args.image)
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))

    if args.out:
        image, _ = read_image(args.image)
        vis = draw_detections(image, result.detections)
        Path(args.out).parent.mkdir(parents=True, exist_ok=True)
        if not cv2.imwrite(args.out, vis):
            raise RuntimeError(f"Failed to write output image: {args.out}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
