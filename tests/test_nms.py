from array import array

import pytest

from kilt.bitcasts import fp16_to_fp32
from kilt.nms import (
    CLASS_POSITION,
    SCORE_POSITION,
    DataKind,
    ModelKind,
    ModelParams,
    NmsAbp,
    compute_iou,
)

# Two disjoint priors in y1, x1, y2, x2 form.
DISJOINT_PRIORS = [0.0, 0.0, 0.4, 0.4, 0.6, 0.6, 1.0, 1.0]
SAME_PRIORS = [0.0, 0.0, 0.4, 0.4, 0.0, 0.0, 0.4, 0.4]
ZERO_LOC = [0.0] * 8


def mv1_params(**overrides):
    base = dict(
        total_num_boxes=2,
        num_classes=2,
        classes_offset=1,
        nms_threshold=0.5,
        max_boxes_per_class=10,
        max_detections_per_image=10,
        class_threshold=0.3,
    )
    base.update(overrides)
    return ModelParams(**base)


def test_iou_identical_boxes():
    box = [0, 0.0, 0.0, 1.0, 1.0]
    assert compute_iou(box, box) == pytest.approx(1.0)


def test_iou_disjoint_boxes():
    assert compute_iou([0, 0.0, 0.0, 1.0, 1.0], [0, 2.0, 2.0, 3.0, 3.0]) == 0.0


def test_iou_is_symmetric_and_bounded():
    a = [0, 0.0, 0.0, 1.0, 1.0]
    b = [0, 0.0, 0.5, 1.0, 2.0]
    value = compute_iou(a, b)
    assert value == compute_iou(b, a)
    assert 0.0 < value < 1.0


def test_iou_rejects_degenerate_box():
    with pytest.raises(ValueError):
        compute_iou([0, 1.0, 0.0, 0.0, 1.0], [0, 0.0, 0.0, 1.0, 1.0])


def test_prior_length_mismatch():
    with pytest.raises(ValueError):
        NmsAbp(mv1_params(), [0.0] * 7)


def test_preprocess_prior_gives_size_and_centre():
    params = ModelParams(total_num_boxes=1, num_classes=1, preprocess_prior=True)
    nms = NmsAbp(params, [0.0, 1.0, 2.0, 4.0])
    w, h, cx, cy = nms.priors
    assert cx - w / 2 == pytest.approx(0.0)
    assert cx + w / 2 == pytest.approx(2.0)
    assert cy - h / 2 == pytest.approx(1.0)
    assert cy + h / 2 == pytest.approx(4.0)


def test_decode_zero_offsets_returns_prior_corners():
    nms = NmsAbp(mv1_params(), DISJOINT_PRIORS)
    box = nms.decode_location([0.0, 0.0, 0.0, 0.0], [0.1, 0.2, 0.5, 0.6])
    assert box == pytest.approx([0.2, 0.1, 0.6, 0.5])


def test_decode_with_variance_keeps_centre_and_size():
    nms = NmsAbp(mv1_params(variance=(0.1, 0.2)), DISJOINT_PRIORS)
    x1, y1, x2, y2 = nms.decode_location([0.0] * 4, [0.5, 0.5, 0.2, 0.4])
    assert (x1 + x2) / 2 == pytest.approx(0.5)
    assert (y1 + y2) / 2 == pytest.approx(0.5)
    assert x2 - x1 == pytest.approx(0.2)
    assert y2 - y1 == pytest.approx(0.4)


def test_decode_rx50_uses_size_centre_priors():
    nms = NmsAbp(mv1_params(kind=ModelKind.RX50), DISJOINT_PRIORS)
    x1, y1, x2, y2 = nms.decode_location([0.0] * 4, [0.2, 0.4, 0.5, 0.5])
    assert x2 - x1 == pytest.approx(0.2)
    assert y2 - y1 == pytest.approx(0.4)
    assert (x1 + x2) / 2 == pytest.approx(0.5)


def test_value_conversions():
    params = mv1_params(
        loc_kind=DataKind.UINT8, conf_kind=DataKind.FP16, loc_offset=128, loc_scale=0.5
    )
    nms = NmsAbp(params, DISJOINT_PRIORS)
    assert nms.loc_value(128) == 0.0
    assert nms.loc_value(130) > nms.loc_value(129) > 0.0
    assert nms.score_value(0x3C00) == fp16_to_fp32(0x3C00)
    assert nms.above_threshold(0x3C00)
    assert not nms.above_threshold(0x0000)


def test_uint8_threshold_uses_raw_value():
    params = mv1_params(conf_kind=DataKind.UINT8, class_threshold_uint8=100)
    nms = NmsAbp(params, DISJOINT_PRIORS)
    assert nms.above_threshold(101)
    assert not nms.above_threshold(100)


def test_float_values_pass_through():
    nms = NmsAbp(mv1_params(), DISJOINT_PRIORS)
    assert nms.loc_value(0.25) == 0.25
    assert nms.score_value(0.75) == 0.75


def test_anchor_box_processing_keeps_disjoint_boxes():
    nms = NmsAbp(mv1_params(), DISJOINT_PRIORS)
    conf = [0.1, 0.8, 0.2, 0.9]
    result = nms.anchor_box_processing(ZERO_LOC, conf, 3)
    assert [box[SCORE_POSITION] for box in result] == [0.9, 0.8]
    assert all(box[0] == 3.0 for box in result)
    assert all(box[CLASS_POSITION] == 1.0 for box in result)
    assert result[0][1:5] == pytest.approx([0.6, 0.6, 1.0, 1.0])
    assert result[1][1:5] == pytest.approx([0.0, 0.0, 0.4, 0.4])


def test_anchor_box_processing_suppresses_overlap():
    nms = NmsAbp(mv1_params(), SAME_PRIORS)
    result = nms.anchor_box_processing(ZERO_LOC, [0.0, 0.8, 0.0, 0.9], 0)
    assert len(result) == 1
    assert result[0][SCORE_POSITION] == 0.9


def test_anchor_box_processing_applies_threshold():
    nms = NmsAbp(mv1_params(), DISJOINT_PRIORS)
    result = nms.anchor_box_processing(ZERO_LOC, [0.0, 0.9, 0.0, 0.2], 0)
    assert [box[SCORE_POSITION] for box in result] == [0.9]


def test_max_boxes_per_class():
    nms = NmsAbp(mv1_params(max_boxes_per_class=1), DISJOINT_PRIORS)
    result = nms.anchor_box_processing(ZERO_LOC, [0.0, 0.8, 0.0, 0.9], 0)
    assert [box[SCORE_POSITION] for box in result] == [0.9]


def test_class_map_is_applied():
    params = mv1_params(map_classes=True, class_map=(0.0, 7.0))
    nms = NmsAbp(params, DISJOINT_PRIORS)
    result = nms.anchor_box_processing(ZERO_LOC, [0.0, 0.8, 0.0, 0.9], 0)
    assert {box[CLASS_POSITION] for box in result} == {7.0}


def test_nms_returns_class_selection_and_extends_all():
    nms = NmsAbp(mv1_params(), DISJOINT_PRIORS)
    boxes = [
        [0.0, 0.0, 0.0, 1.0, 1.0, 0.5, 1.0],
        [0.0, 0.0, 0.0, 1.0, 1.0, 0.7, 1.0],
        [0.0, 2.0, 2.0, 3.0, 3.0, 0.6, 1.0],
    ]
    existing = [[1.0, 0.0, 0.0, 1.0, 1.0, 0.9, 2.0]]
    selected = nms.nms(boxes, existing)
    assert [box[5] for box in selected] == [0.7, 0.6]
    assert len(existing) == 3
    assert existing[1:] == selected


def test_r34_layout():
    params = ModelParams(
        total_num_boxes=2,
        num_classes=2,
        classes_offset=1,
        kind=ModelKind.R34,
        conf_kind=DataKind.FP16,
        variance=(0.1, 0.2),
        box_itr=(0, 2, 4, 6),
        offset_conf=2,
    )
    priors = [0.2, 0.7, 0.2, 0.7, 0.2, 0.2, 0.2, 0.2]
    nms = NmsAbp(params, priors)
    conf = [0, 0, 0x3C00, 0x2000]
    result = nms.anchor_box_processing(ZERO_LOC, conf, 5)
    assert len(result) == 1
    box = result[0]
    assert box[0] == 5.0
    assert box[SCORE_POSITION] == fp16_to_fp32(0x3C00)
    assert box[4] - box[2] == pytest.approx(0.2)
    assert (box[2] + box[4]) / 2 == pytest.approx(0.2)


def test_from_file(tmp_path):
    params = ModelParams(total_num_boxes=1, num_classes=1, prior_name="priors.bin")
    (tmp_path / "priors.bin").write_bytes(array("f", [0.0, 0.25, 0.5, 0.75]).tobytes())
    nms = NmsAbp.from_file(params, str(tmp_path))
    assert nms.priors == [0.0, 0.25, 0.5, 0.75]


def test_from_file_length_mismatch(tmp_path):
    params = ModelParams(total_num_boxes=1, num_classes=1, prior_name="priors.bin")
    (tmp_path / "priors.bin").write_bytes(array("f", [0.0, 0.25, 0.5]).tobytes())
    with pytest.raises(ValueError):
        NmsAbp.from_file(params, str(tmp_path))