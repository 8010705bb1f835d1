"""
Tests for box geometry and non-maximum suppression.
"""

import itertools

import numpy as np
import pytest

from algorithms.nms import decode_boxes, iou, non_max_suppression, xywh_to_xyxy
from models.detection import BoundingBox, Detection


def det(x1, y1, x2, y2, conf, cls=0):
    return Detection.from_xyxy(x1, y1, x2, y2, confidence=conf, class_id=cls)


class TestBoxConversion:
    def test_xywh_to_xyxy_unscaled(self):
        assert xywh_to_xyxy(50, 40, 20, 10) == (40, 35, 60, 45)

    def test_xywh_to_xyxy_scaled(self):
        # 640x640 model input -> 1280x960 frame
        assert xywh_to_xyxy(320, 320, 64, 128, scale_x=2.0, scale_y=1.5) == (576, 384, 704, 576)

    def test_decode_boxes_matches_scalar(self):
        boxes = np.array([[320, 320, 64, 128], [10, 20, 4, 8]], dtype=np.float32)
        decoded = decode_boxes(boxes, 2.0, 1.5)
        assert decoded.shape == (2, 4)
        assert tuple(decoded[0]) == (576, 384, 704, 576)
        assert tuple(decoded[1]) == xywh_to_xyxy(10, 20, 4, 8, 2.0, 1.5)

    def test_decode_boxes_empty(self):
        assert decode_boxes(np.zeros((0, 4))).shape == (0, 4)


class TestIoU:
    def test_identical_boxes(self):
        box = BoundingBox(10, 10, 50, 30)
        assert iou(box, box) == 1.0

    def test_disjoint_boxes(self):
        assert iou((0, 0, 10, 10), (20, 20, 30, 30)) == 0.0

    def test_touching_boxes(self):
        assert iou((0, 0, 10, 10), (10, 0, 20, 10)) == 0.0

    def test_partial_overlap(self):
        # intersection 50, union 150
        assert iou((0, 0, 10, 10), (5, 0, 15, 10)) == pytest.approx(1 / 3)

    def test_contained_box(self):
        assert iou((0, 0, 10, 10), (0, 0, 5, 10)) == pytest.approx(0.5)

    def test_degenerate_boxes_do_not_divide_by_zero(self):
        assert iou((5, 5, 5, 5), (5, 5, 5, 5)) == 0.0

    def test_symmetric(self):
        a, b = (0, 0, 10, 10), (3, 4, 12, 9)
        assert iou(a, b) == iou(b, a)


class TestNonMaxSuppression:
    def test_empty(self):
        assert non_max_suppression([], 0.45) == []

    def test_keeps_higher_confidence_of_overlapping_pair(self):
        low = det(0, 0, 10, 10, 0.6)
        high = det(1, 0, 11, 10, 0.9)
        assert non_max_suppression([low, high], 0.45) == [high]

    def test_different_classes_are_not_suppressed(self):
        a = det(0, 0, 10, 10, 0.9, cls=0)
        b = det(0, 0, 10, 10, 0.8, cls=1)
        assert non_max_suppression([a, b], 0.45) == [a, b]

    def test_overlap_at_threshold_is_kept(self):
        # IoU exactly 0.5 is not greater than a 0.5 threshold
        a = det(0, 0, 10, 10, 0.9)
        b = det(0, 0, 5, 10, 0.8)
        assert non_max_suppression([a, b], 0.5) == [a, b]

    def test_output_sorted_by_confidence(self):
        dets = [det(0, 0, 10, 10, 0.3), det(100, 0, 110, 10, 0.9), det(200, 0, 210, 10, 0.6)]
        kept = non_max_suppression(dets, 0.45)
        assert [d.confidence for d in kept] == [0.9, 0.6, 0.3]

    def test_ties_keep_input_order(self):
        first = det(0, 0, 10, 10, 0.7)
        second = det(0, 0, 10, 10, 0.7)
        kept = non_max_suppression([first, second], 0.45)
        assert len(kept) == 1
        assert kept[0] is first

    def test_suppression_is_greedy(self):
        # b overlaps a and c, a and c do not overlap: b is removed by a, c survives
        a = det(0, 0, 10, 10, 0.9)
        b = det(4, 0, 14, 10, 0.8)
        c = det(9, 0, 19, 10, 0.7)
        assert non_max_suppression([c, b, a], 0.3) == [a, c]

    def test_idempotent_and_no_surviving_overlaps(self):
        rng = np.random.default_rng(42)
        dets = []
        for _ in range(200):
            x, y = rng.uniform(0, 200, size=2)
            w, h = rng.uniform(5, 40, size=2)
            dets.append(det(x, y, x + w, y + h, float(rng.uniform(0.26, 1.0)), int(rng.integers(0, 3))))

        kept = non_max_suppression(dets, 0.45)

        assert non_max_suppression(kept, 0.45) == kept
        for a, b in itertools.combinations(kept, 2):
            if a.class_id == b.class_id:
                assert iou(a.bbox, b.bbox) <= 0.45

    def test_every_suppressed_box_has_a_stronger_survivor(self):
        rng = np.random.default_rng(7)
        dets = [
            det(x, 0, x + 20, 20, float(c))
            for x, c in zip(rng.uniform(0, 30, size=20), rng.uniform(0.3, 1.0, size=20))
        ]
        kept = non_max_suppression(dets, 0.45)
        for d in dets:
            if d in kept:
                continue
            blockers = [k for k in kept if iou(k.bbox, d.bbox) > 0.45]
            assert blockers
            assert max(k.confidence for k in blockers) >= d.confidence
