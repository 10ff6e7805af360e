"""
Rule-based refinement of a raw analysis result.

`refine_analysis` reconciles competing Receipt / Document / Screenshot detections
into one classification, validates status/navigation bars, corrects the primary
box and the partiality flag. It runs ten stages in a fixed order over a single
working value; the order and the trace notes are part of the contract.

The input result is never modified: detections and summaries are frozen and every
change produces a new value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from doc_kit.geometry import clamp_box, coverage, full_frame, intersect, iou
from doc_kit.types import Box, Detection, DetectionMeta, DetectionSource

from .config import RefineConfig, RefineTolerances
from .result import (
    BAR_LABELS,
    BOTTOM_BAR_LABEL,
    TOP_BAR_LABEL,
    AnalysisResult,
    AnalysisSignals,
    DocumentType,
    Summary,
)


logger = logging.getLogger(__name__)

SCREENSHOT_BAR_BOOST = 0.05
DOCUMENT_ASPECT_RATIO = 0.65
ALT_IOU_WEIGHT = 0.5
PRIMARY_REPLACE_IOU = 0.5
FULL_FRAME_MATCH_IOU = 0.95
PRIMARY_MATCH_IOU = 0.90


@dataclass(frozen=True)
class _Selection:
    document_type: DocumentType
    confidence: float
    detection: Detection


@dataclass
class _Working:
    """In-progress result owned by one refine call."""

    summary: Summary
    signals: AnalysisSignals
    detections: List[Detection] = field(default_factory=list)
    bars: List[Detection] = field(default_factory=list)
    selection: Optional[_Selection] = None
    notes: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class _Context:
    source: AnalysisResult
    cfg: RefineConfig
    width: float
    height: float
    log: logging.Logger

    @property
    def tol(self) -> RefineTolerances:
        return self.cfg.tol

    @property
    def frame(self) -> Box:
        return full_frame(self.width, self.height)

    def note(self, work: _Working, text: str) -> None:
        work.notes.append(text)
        self.log.debug("refine: %s", text)


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def _frac(num: float, den: float) -> float:
    return num / den if den > 0 else 0.0


def _best(detections: Sequence[Detection], labels: Tuple[str, ...]) -> Optional[Detection]:
    """Highest-scoring detection among `labels`; first one wins ties."""
    best = None
    for d in detections:
        if d.label in labels and (best is None or d.score > best.score):
            best = d
    return best


def _has_bars(detections: Sequence[Detection]) -> bool:
    return any(d.label in BAR_LABELS for d in detections)


# --------------------------------------------------------------------------- #
# Stages
# --------------------------------------------------------------------------- #
def _select_main_type(ctx: _Context, work: _Working) -> None:
    best_by_label: Dict[str, Detection] = {}
    for d in ctx.source.detections:
        if DocumentType.from_label(d.label) is None:
            continue
        prev = best_by_label.get(d.label)
        if prev is None or d.score > prev.score:
            best_by_label[d.label] = d

    if not best_by_label:
        return

    has_bars = _has_bars(ctx.source.detections)

    def boosted(item: Tuple[str, Detection]) -> float:
        label, det = item
        if label == DocumentType.SCREENSHOT.value and has_bars:
            return det.score + SCREENSHOT_BAR_BOOST
        return det.score

    ranked = sorted(best_by_label.items(), key=boosted, reverse=True)
    pick_label, pick = ranked[0]

    if len(ranked) > 1 and abs(ranked[0][1].score - ranked[1][1].score) < ctx.tol.class_margin:
        if has_bars:
            if DocumentType.SCREENSHOT.value in best_by_label:
                pick_label = DocumentType.SCREENSHOT.value
            ctx.note(work, "tie-breaker: bars present -> prefer Screenshot")
        elif ctx.source.meta.aspect_ratio >= DOCUMENT_ASPECT_RATIO and DocumentType.DOCUMENT.value in best_by_label:
            pick_label = DocumentType.DOCUMENT.value
            ctx.note(work, "tie-breaker: AR close to A4 and no bars -> prefer Document")
        pick = best_by_label[pick_label]

    work.selection = _Selection(DocumentType(pick_label), pick.score, pick)


def _retype(ctx: _Context, work: _Working) -> None:
    sel = work.selection
    if not ctx.cfg.allow_retype or sel is None or sel.document_type == work.summary.document_type:
        return
    ctx.note(work, f"retype: {work.summary.document_type.value} -> {sel.document_type.value}")
    work.summary = replace(work.summary, document_type=sel.document_type, confidence=sel.confidence)


def _establish_primary_box(ctx: _Context, work: _Working) -> None:
    summary = work.summary
    primary = summary.primary_box
    if primary is None and work.selection is not None:
        primary = work.selection.detection.box
        ctx.note(work, "primaryBox: adopted from best main-class detection")
    if primary is None:
        return

    primary = clamp_box(primary, ctx.width, ctx.height)
    cover = coverage(primary, ctx.width, ctx.height)
    is_partial = cover < ctx.tol.min_primary_area_frac
    quality = summary.quality
    if is_partial != quality.is_partial:
        quality = replace(quality, is_partial=is_partial)
        if is_partial:
            ctx.note(work, f"flag partial: primary area {_pct(cover)} < {_pct(ctx.tol.min_primary_area_frac)}")
        else:
            ctx.note(work, f"clear partial: primary area {_pct(cover)} >= {_pct(ctx.tol.min_primary_area_frac)}")
    work.summary = replace(summary, primary_box=primary, quality=quality)


def _segregate_bars(ctx: _Context, work: _Working) -> None:
    work.bars = [d for d in ctx.source.detections if d.label in BAR_LABELS]
    work.detections = [d for d in ctx.source.detections if d.label not in BAR_LABELS]
    if work.summary.document_type != DocumentType.SCREENSHOT and work.bars:
        ctx.note(work, "drop bars: non-screenshot type")


def _validate_bar(ctx: _Context, work: _Working, bar: Detection, container: Box, top: bool) -> Optional[Detection]:
    """
    Check a bar against the container using its intersection; the stored box is kept as-is.
    """

    tol = ctx.tol
    c_w = container.width
    c_h = container.height
    band_h = c_h * tol.top_bottom_band_frac

    inter = intersect(bar.box, container)
    if inter.area <= 0:
        ctx.note(work, f"drop {bar.label}: outside primaryBox")
        return None

    b_w = inter.width
    b_h = inter.height
    if b_w < c_w * tol.min_bar_width_frac:
        ctx.note(work, f"drop {bar.label}: too narrow ({_pct(_frac(b_w, c_w))} < {_pct(tol.min_bar_width_frac)})")
        return None
    if b_h > c_h * tol.max_bar_height_frac:
        ctx.note(work, f"drop {bar.label}: too tall ({_pct(_frac(b_h, c_h))} > {_pct(tol.max_bar_height_frac)})")
        return None

    cy = (inter.y1 + inter.y2) / 2
    if top:
        band_edge = container.y1 + band_h
        if cy > band_edge:
            ctx.note(work, f"drop {bar.label}: vertical position invalid (cy={cy:.1f} > topBand={band_edge:.1f})")
            return None
    else:
        band_edge = container.y2 - band_h
        if cy < band_edge:
            ctx.note(work, f"drop {bar.label}: vertical position invalid (cy={cy:.1f} < botBand={band_edge:.1f})")
            return None

    meta = replace(
        bar.meta or DetectionMeta(),
        source=DetectionSource.REFINE,
        reason="bar_valid",
        metrics=(
            ("width_frac", _frac(b_w, c_w)),
            ("height_frac", _frac(b_h, c_h)),
            ("which", "top" if top else "bottom"),
        ),
    )
    return replace(bar, meta=meta)


def _handle_screenshot(ctx: _Context, work: _Working) -> None:
    if work.summary.document_type != DocumentType.SCREENSHOT:
        return

    tol = ctx.tol
    source_dets = ctx.source.detections
    best_screenshot = _best(source_dets, (DocumentType.SCREENSHOT.value,))
    container = best_screenshot.box if best_screenshot is not None else ctx.frame

    top_raw = next((b for b in work.bars if b.label == TOP_BAR_LABEL), None)
    bottom_raw = next((b for b in work.bars if b.label == BOTTOM_BAR_LABEL), None)
    top_ok = _validate_bar(ctx, work, top_raw, container, top=True) if top_raw is not None else None
    bottom_ok = _validate_bar(ctx, work, bottom_raw, container, top=False) if bottom_raw is not None else None

    cover = coverage(container, ctx.width, ctx.height)
    valid_bars = sum(1 for b in (top_ok, bottom_ok) if b is not None)
    accept = work.summary.confidence + tol.screenshot_bar_bonus * valid_bars
    if valid_bars == 2:
        accept += tol.screenshot_both_bars_bonus
    if cover >= tol.screenshot_min_cover_frac:
        accept += tol.screenshot_cover_bonus

    alt = _best(source_dets, (DocumentType.DOCUMENT.value, DocumentType.RECEIPT.value))
    alt_score = None
    if alt is not None:
        alt_score = alt.score + ALT_IOU_WEIGHT * iou(alt.box, container)

    switch = (
        cover < tol.screenshot_min_cover_frac
        and alt_score is not None
        and alt_score >= accept - tol.alt_candidate_max_delta
        and ctx.cfg.allow_retype
    )
    if switch:
        alt_type = DocumentType(alt.label)
        ctx.note(
            work,
            f"switch: Screenshot -> {alt_type.value} (cover {_pct(cover)} < {_pct(tol.screenshot_min_cover_frac)}, "
            f"alt={alt_score:.3f} vs scr={accept:.3f})",
        )
        work.summary = replace(work.summary, document_type=alt_type, confidence=alt.score, primary_box=alt.box)
        return

    if best_screenshot is None or cover < tol.screenshot_min_cover_frac:
        primary = ctx.frame
        ctx.note(work, "primaryBox: forced to full frame for Screenshot")
    else:
        primary = container
    work.summary = replace(work.summary, confidence=accept, primary_box=primary)
    work.detections.extend(b for b in (top_ok, bottom_ok) if b is not None)


def _resolve_document_vs_receipt(ctx: _Context, work: _Working) -> None:
    primary = work.summary.primary_box
    docs = [d for d in work.detections if d.label == DocumentType.DOCUMENT.value]
    recs = [d for d in work.detections if d.label == DocumentType.RECEIPT.value]
    if not docs or not recs or primary is None or not ctx.cfg.allow_retype:
        return

    score_doc = max(d.score for d in docs)
    score_rec = max(d.score for d in recs)
    iou_doc = max(iou(d.box, primary) for d in docs)
    iou_rec = max(iou(d.box, primary) for d in recs)

    keep = DocumentType.DOCUMENT if score_doc + iou_doc >= score_rec + iou_rec else DocumentType.RECEIPT
    drop_label = DocumentType.RECEIPT.value if keep is DocumentType.DOCUMENT else DocumentType.DOCUMENT.value
    work.detections = [d for d in work.detections if d.label != drop_label]

    if work.summary.document_type != keep:
        conf = score_doc if keep is DocumentType.DOCUMENT else score_rec
        work.summary = replace(work.summary, document_type=keep, confidence=conf)
        ctx.note(work, f"resolve doc/receipt conflict -> prefer {keep.value}")


def _correct_primary_box(ctx: _Context, work: _Working) -> None:
    primary = work.summary.primary_box
    wanted = work.summary.document_type.detection_label
    if not ctx.cfg.allow_retype or primary is None or wanted is None:
        return

    cands = [d for d in work.detections if d.label == wanted]
    if not cands:
        return
    best = max(cands, key=lambda d: d.score + ALT_IOU_WEIGHT * iou(d.box, primary))
    if iou(best.box, primary) < PRIMARY_REPLACE_IOU:
        work.summary = replace(work.summary, primary_box=best.box)
        ctx.note(work, f"primaryBox: replaced by best {wanted} (low IoU with old)")


def _unknown_fallback(ctx: _Context, work: _Working) -> None:
    if work.summary.document_type != DocumentType.UNKNOWN:
        return

    frame = ctx.frame
    fallback = Detection(
        label=DocumentType.DOCUMENT.value,
        score=0.0,
        box=frame,
        meta=DetectionMeta(synthetic=True, source=DetectionSource.FALLBACK, reason="unknown_full_frame"),
    )

    summary = work.summary
    if summary.primary_box is None:
        summary = replace(summary, primary_box=frame)
        ctx.note(work, "primaryBox: synthesized full-frame for Unknown")

    near_full = any(
        d.label in (DocumentType.DOCUMENT.value, DocumentType.SCREENSHOT.value)
        and iou(d.box, frame) >= FULL_FRAME_MATCH_IOU
        for d in ctx.source.detections
    )
    if not near_full:
        work.detections.insert(0, fallback)
        ctx.note(work, "synth detection: Document full-frame for Unknown")

    work.summary = replace(summary, quality=replace(summary.quality, is_partial=False))


def _ensure_primary_detection(ctx: _Context, work: _Working) -> None:
    primary = work.summary.primary_box
    wanted = work.summary.document_type.detection_label
    if primary is None or wanted is None:
        return

    best_iou = max((iou(d.box, primary) for d in work.detections if d.label == wanted), default=0.0)
    if best_iou >= PRIMARY_MATCH_IOU:
        return

    work.detections.append(
        Detection(
            label=wanted,
            score=work.summary.confidence,
            box=primary,
            meta=DetectionMeta(synthetic=True, source=DetectionSource.REFINE, reason="matches_primaryBox"),
        )
    )
    ctx.note(work, "detections: inserted synthetic main-class box to match primaryBox")


def _append_diagnostics(ctx: _Context, work: _Working) -> None:
    if ctx.cfg.keep_diagnostics:
        work.signals = replace(work.signals, diagnostics=work.signals.diagnostics + tuple(work.notes))


STAGES: Tuple[Callable[[_Context, _Working], None], ...] = (
    _select_main_type,
    _retype,
    _establish_primary_box,
    _segregate_bars,
    _handle_screenshot,
    _resolve_document_vs_receipt,
    _correct_primary_box,
    _unknown_fallback,
    _ensure_primary_detection,
    _append_diagnostics,
)


def refine_analysis(
    result: AnalysisResult,
    cfg: RefineConfig = RefineConfig(),
    *,
    log: Optional[logging.Logger] = None,
) -> AnalysisResult:
    """
    Return a corrected copy of `result`.

    Deterministic for a given (result, cfg); never raises on ambiguous or missing
    inputs, it keeps the prior values instead. Trace notes go to `log` at DEBUG
    and, with `keep_diagnostics`, are appended to `signals.diagnostics`.
    """

    ctx = _Context(
        source=result,
        cfg=cfg,
        width=result.meta.width,
        height=result.meta.height,
        log=log or logger,
    )
    work = _Working(summary=result.summary, signals=result.signals, detections=list(result.detections))

    for stage in STAGES:
        stage(ctx, work)

    return replace(result, summary=work.summary, detections=tuple(work.detections), signals=work.signals)
