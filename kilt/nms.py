"""Anchor-box decoding and non-maximum suppression for object detection."""

from __future__ import annotations

import math
from array import array
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from kilt.bitcasts import fp16_to_fp32

NUM_COORDINATES = 4
SCORE_POSITION = 5
CLASS_POSITION = 6
R34_MIN_RAW_CONFIDENCE = 10854


class ModelKind(Enum):
    """Detection networks with distinct output layouts."""

    MV1 = "mv1"
    R34 = "r34"
    RX50 = "rx50"


class DataKind(Enum):
    """Element types of the network's location and confidence outputs."""

    UINT8 = "uint8"
    INT8 = "int8"
    FP16 = "fp16"
    FLOAT32 = "float32"


@dataclass(frozen=True)
class ModelParams:
    """Layout, quantisation and thresholds of a detection network."""

    total_num_boxes: int
    num_classes: int
    classes_offset: int = 1
    nms_threshold: float = 0.5
    max_boxes_per_class: int = 100
    max_detections_per_image: int = 600
    class_threshold: float = 0.05
    class_threshold_uint8: int = 0
    loc_offset: float = 0.0
    loc_scale: float = 1.0
    conf_offset: float = 0.0
    conf_scale: float = 1.0
    variance: tuple[float, float] | None = None
    class_map: tuple[float, ...] = ()
    map_classes: bool = False
    preprocess_prior: bool = False
    prior_name: str = "priors.bin"
    box_itr: tuple[int, int, int, int] = (0, 1, 2, 3)
    offset_conf: int | None = None
    kind: ModelKind = ModelKind.MV1
    loc_kind: DataKind = DataKind.FLOAT32
    conf_kind: DataKind = DataKind.FLOAT32

    @property
    def conf_stride(self) -> int:
        """Distance between classes in a class-major confidence tensor."""
        return self.total_num_boxes if self.offset_conf is None else self.offset_conf


def compute_iou(box1: Sequence[float], box2: Sequence[float]) -> float:
    """Intersection over union of two ``[_, y1, x1, y2, x2, ...]`` boxes."""
    b1_y1, b1_x1, b1_y2, b1_x2 = box1[1:5]
    b2_y1, b2_x1, b2_y2, b2_x2 = box2[1:5]
    if not (b1_y1 < b1_y2 and b1_x1 < b1_x2):
        raise ValueError(f"degenerate box {list(box1[1:5])}")
    if not (b2_y1 < b2_y2 and b2_x1 < b2_x2):
        raise ValueError(f"degenerate box {list(box2[1:5])}")

    inter_y1 = max(b1_y1, b2_y1)
    inter_x1 = max(b1_x1, b2_x1)
    inter_y2 = min(b1_y2, b2_y2)
    inter_x2 = min(b1_x2, b2_x2)
    if inter_y1 < inter_y2 and inter_x1 < inter_x2:
        intersect = (inter_y2 - inter_y1) * (inter_x2 - inter_x1)
        total = (
            (b1_y2 - b1_y1) * (b1_x2 - b1_x1)
            + (b2_y2 - b2_y1) * (b2_x2 - b2_x1)
            - intersect
        )
        return intersect / total if total > 0.0 else 0.0
    return 0.0


def _dequantize(raw: float, kind: DataKind, offset: float, scale: float) -> float:
    if kind is DataKind.FP16:
        return fp16_to_fp32(int(raw))
    if kind is DataKind.FLOAT32:
        return float(raw)
    return (raw - offset) * scale


class NmsAbp:
    """Decodes anchor-box outputs and filters them with per-class NMS."""

    def __init__(self, params: ModelParams, priors: Sequence[float]) -> None:
        expected = params.total_num_boxes * NUM_COORDINATES
        values = [float(v) for v in priors]
        if len(values) != expected:
            raise ValueError(
                f"Length mismatch: tensor size {expected}, prior size {len(values)}"
            )
        self.params = params
        self.priors = values
        if params.preprocess_prior:
            self.preprocess_prior()

    @classmethod
    def from_file(cls, params: ModelParams, directory: str) -> NmsAbp:
        """Load the priors file ``params.prior_name`` from ``directory``."""
        path = Path(directory or ".") / params.prior_name
        data = path.read_bytes()
        expected = params.total_num_boxes * NUM_COORDINATES * 4
        if len(data) != expected:
            raise ValueError(
                f"Invalid input: {params.prior_name}: length mismatch, "
                f"tensor size {expected}, file size {len(data)}"
            )
        values = array("f")
        values.frombytes(data)
        return cls(params, values)

    def preprocess_prior(self) -> None:
        """Convert corner-form priors ``x1, y1, x2, y2`` to ``w, h, cx, cy``."""
        for base in range(0, len(self.priors), NUM_COORDINATES):
            x1, y1, x2, y2 = self.priors[base:base + NUM_COORDINATES]
            w = x2 - x1
            h = y2 - y1
            self.priors[base:base + NUM_COORDINATES] = [w, h, x1 + 0.5 * w, y1 + 0.5 * h]

    def loc_value(self, raw: float) -> float:
        """Return the real value of a raw location element."""
        p = self.params
        return _dequantize(raw, p.loc_kind, p.loc_offset, p.loc_scale)

    def score_value(self, raw: float) -> float:
        """Return the real value of a raw confidence element."""
        p = self.params
        return _dequantize(raw, p.conf_kind, p.conf_offset, p.conf_scale)

    def above_threshold(self, raw: float) -> bool:
        """Whether a raw confidence exceeds the class threshold."""
        p = self.params
        if p.conf_kind in (DataKind.UINT8, DataKind.INT8):
            return raw > p.class_threshold_uint8
        if p.conf_kind is DataKind.FP16:
            return fp16_to_fp32(int(raw)) > p.class_threshold
        return raw > p.class_threshold

    def decode_location(self, loc: Sequence[float], prior: Sequence[float]) -> list[float]:
        """Decode box offsets ``loc`` against ``prior`` into ``x1, y1, x2, y2``."""
        return self._decode(loc, prior, 0)

    def _decode(self, loc: Sequence[float], prior: Sequence[float], base: int) -> list[float]:
        p = self.params
        if p.variance is not None:
            i0, i1, i2, i3 = (base + i for i in p.box_itr)
            var0, var1 = p.variance
            x = prior[i0] + loc[0] * var0 * prior[i2]
            y = prior[i1] + loc[1] * var0 * prior[i3]
            w = prior[i2] * math.exp(loc[2] * var1)
            h = prior[i3] * math.exp(loc[3] * var1)
            x -= w / 2.0
            y -= h / 2.0
            return [x, y, w + x, h + y]

        p0, p1, p2, p3 = prior[base:base + NUM_COORDINATES]
        if p.kind is ModelKind.RX50:
            w, h, cent_x, cent_y = p0, p1, p2, p3
            dx, dy, dw, dh = loc[:4]
        else:
            w = p3 - p1
            h = p2 - p0
            cent_x = p1 + 0.5 * w
            cent_y = p0 + 0.5 * h
            dy = loc[0] / 10.0
            dx = loc[1] / 10.0
            dh = loc[2] / 5.0
            dw = loc[3] / 5.0
        pred_cx = dx * w + cent_x
        pred_cy = dy * h + cent_y
        pred_w = math.exp(dw) * w
        pred_h = math.exp(dh) * h
        return [
            pred_cx - 0.5 * pred_w,
            pred_cy - 0.5 * pred_h,
            pred_cx + 0.5 * pred_w,
            pred_cy + 0.5 * pred_h,
        ]

    def nms(self, boxes: list[list[float]], selected_all: list[list[float]]) -> list[list[float]]:
        """Suppress overlapping boxes of one class.

        Kept boxes are appended to ``selected_all``; those of this class are returned.
        """
        p = self.params
        selected: list[list[float]] = []
        for cand in sorted(boxes, key=lambda box: box[5], reverse=True):
            if len(selected) >= p.max_boxes_per_class:
                break
            if any(compute_iou(cand, kept) > p.nms_threshold for kept in selected):
                continue
            cand[SCORE_POSITION] = cand[5]
            if p.map_classes:
                cand[CLASS_POSITION] = p.class_map[int(cand[CLASS_POSITION])]
            selected.append(cand)
            selected_all.append(cand)
        return selected

    def anchor_box_processing(
        self, loc: Sequence[float], conf: Sequence[float], image_index: float
    ) -> list[list[float]]:
        """Decode, filter and suppress the boxes of one image.

        Each result is ``[image_index, y1, x1, y2, x2, score, class]``; results
        are ordered by descending score.
        """
        p = self.params
        image_index = float(image_index)
        selected_all: list[list[float]] = []

        if p.kind is ModelKind.R34:
            stride = p.conf_stride
            for ci in range(p.classes_offset, p.num_classes):
                result = []
                for bi in range(p.total_num_boxes):
                    confidence = conf[ci * stride + bi]
                    if confidence < R34_MIN_RAW_CONFIDENCE:
                        continue
                    score = self.score_value(confidence)
                    raw_box = [self.loc_value(loc[bi + i]) for i in p.box_itr]
                    box = self._decode(raw_box, self.priors, bi)
                    result.append(
                        [image_index, box[1], box[0], box[3], box[2], score, float(ci)]
                    )
                if result:
                    self.nms(result, selected_all)
        else:
            per_class: list[list[list[float]]] = [[] for _ in range(p.num_classes)]
            for bi in range(p.total_num_boxes):
                base = bi * NUM_COORDINATES
                for ci in range(p.classes_offset, p.num_classes):
                    confidence = conf[bi * p.num_classes + ci]
                    if not self.above_threshold(confidence):
                        continue
                    score = self.score_value(confidence)
                    raw_box = [self.loc_value(v) for v in loc[base:base + NUM_COORDINATES]]
                    box = self._decode(raw_box, self.priors, base)
                    per_class[ci].append(
                        [image_index, box[1], box[0], box[3], box[2], score, float(ci)]
                    )
            for result in per_class[p.classes_offset:]:
                if result:
                    self.nms(result, selected_all)

        selected_all.sort(key=lambda box: box[SCORE_POSITION], reverse=True)
        return selected_all