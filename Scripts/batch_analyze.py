from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import cv2
from tqdm import tqdm

from Document_Analysis import DocumentAnalyzer, DocumentType, load_refine_config
from Document_Analysis.image_io import is_valid_image_file, read_image
from doc_kit import DecodeConfig, LetterboxConfig, draw_detections


logger = logging.getLogger("batch_analyze")


def main() -> int:
    parser = argparse.ArgumentParser(description="Classify every image in a directory; one failure does not stop the batch.")
    parser.add_argument("input_dir", help="Directory with .jpg/.png/.webp/.tiff images.")
    parser.add_argument("--model", default="models/yolo/800-50/best.onnx", help="Path to the detector (.onnx).")
    parser.add_argument("--imgsz", type=int, default=800, help="Letterbox input size.")
    parser.add_argument("--conf", type=float, default=0.1, help="Raw-score threshold.")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for per-class NMS.")
    parser.add_argument("--refine-config", default=None, help="Optional JSON with tolerance overrides.")
    parser.add_argument("--out-dir", default="images/processed", help="Where overlays and results.json go.")
    parser.add_argument("--no-overlay", action="store_true", help="Skip writing overlay images.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    input_dir = Path(args.input_dir)
    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    analyzer = DocumentAnalyzer.from_model(
        args.model,
        letterbox_cfg=LetterboxConfig(size=int(args.imgsz)),
        decode_cfg=DecodeConfig(conf_threshold=args.conf, iou_threshold=args.iou),
        refine_cfg=load_refine_config(args.refine_config),
    )

    files = sorted(p for p in input_dir.iterdir() if p.is_file() and is_valid_image_file(p))
    logger.info("Found %d images in %s", len(files), input_dir)

    tally: Dict[str, int] = {t.value: 0 for t in DocumentType}
    records: List[Dict[str, Any]] = []
    for path in tqdm(files, unit="img"):
        record: Dict[str, Any] = {"filename": path.name, "input_path": str(path)}
        try:
            result = analyzer.analyze(path)
        except (OSError, ValueError, RuntimeError) as exc:
            logger.error("%s: %s", path.name, exc)
            record["error"] = str(exc)
            records.append(record)
            continue

        doc_type = result.summary.document_type.value
        tally[doc_type] += 1
        payload = result.to_dict()
        record.update(summary=payload["summary"], detections=payload["detections"], signals=payload["signals"])

        if result.detections and not args.no_overlay:
            image, _ = read_image(path)
            out_path = out_dir / path.name
            if cv2.imwrite(str(out_path), draw_detections(image, result.detections)):
                record["output_path"] = str(out_path)

        records.append(record)
        logger.info("%s: %s (%.1f%%)", path.name, doc_type, result.summary.confidence * 100)

    (out_dir / "results.json").write_text(
        json.dumps({"summary": tally, "results": records}, indent=2, ensure_ascii=False), encoding="utf-8"
    )
    logger.info("Done: %s", ", ".join(f"{k}={v}" for k, v in tally.items()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
