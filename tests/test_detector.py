"""Tests for the BlazeFace detector adapter."""

import numpy as np
import pytest

from facemesh.detector import (
    BlazeFaceDetector,
    generate_anchors,
    non_max_suppression,
)
from helpers import FakeBlazeFaceModel


class TestAnchors:
    def test_front_model_anchor_count(self):
        anchors = generate_anchors(128)
        assert anchors.shape == (896, 2)

    def test_first_layer_centers(self):
        anchors = generate_anchors(128)
        # 16x16 grid, two anchors per cell
        assert tuple(anchors[0]) == pytest.approx((0.5 / 16, 0.5 / 16))
        assert tuple(anchors[1]) == pytest.approx((0.5 / 16, 0.5 / 16))
        assert tuple(anchors[2]) == pytest.approx((1.5 / 16, 0.5 / 16))

    def test_merged_stride16_layers(self):
        anchors = generate_anchors(128)
        # 8x8 grid, six anchors per cell, starts after 16*16*2
        second = anchors[512:]
        assert len(second) == 8 * 8 * 6
        np.testing.assert_allclose(second[:6], [[0.0625, 0.0625]] * 6)
        assert tuple(second[6]) == pytest.approx((1.5 / 8, 0.5 / 8))


class TestNonMaxSuppression:
    def test_suppresses_overlap(self):
        boxes = np.array([
            [0.0, 0.0, 1.0, 1.0],
            [0.05, 0.05, 1.0, 1.0],
            [2.0, 2.0, 3.0, 3.0],
        ])
        scores = np.array([0.8, 0.9, 0.7])
        keep = non_max_suppression(boxes, scores, iou_threshold=0.3, max_output=10)
        assert keep == [1, 2]

    def test_respects_max_output(self):
        boxes = np.array([[0, 0, 1, 1], [2, 2, 3, 3], [4, 4, 5, 5]], dtype=float)
        scores = np.array([0.5, 0.9, 0.7])
        keep = non_max_suppression(boxes, scores, iou_threshold=0.3, max_output=2)
        assert keep == [1, 2]


class TestBlazeFaceDetector:
    def test_no_face_returns_empty(self):
        detector = BlazeFaceDetector(FakeBlazeFaceModel())
        image = np.zeros((240, 320, 3), dtype=np.float32)
        assert detector.detect(image) == []

    def test_decodes_box_in_image_pixels(self):
        model = FakeBlazeFaceModel(faces=[((0.5, 0.5, 0.25, 0.5), 0.95)])
        detector = BlazeFaceDetector(model)
        image = np.zeros((100, 200, 3), dtype=np.float32)

        detections = detector.detect(image)

        assert len(detections) == 1
        det = detections[0]
        assert det.confidence == pytest.approx(0.95, abs=1e-4)
        assert det.box.top_left == pytest.approx((75, 25), abs=1e-2)
        assert det.box.bottom_right == pytest.approx((125, 75), abs=1e-2)
        assert det.keypoints.shape == (6, 2)
        np.testing.assert_allclose(det.keypoints, [[100, 50]] * 6, atol=1e-2)

    def test_below_threshold_dropped(self):
        model = FakeBlazeFaceModel(faces=[((0.5, 0.5, 0.2, 0.2), 0.6)])
        detector = BlazeFaceDetector(model, score_threshold=0.75)
        assert detector.detect(np.zeros((64, 64, 3), dtype=np.float32)) == []

    def test_sorted_by_confidence(self):
        model = FakeBlazeFaceModel(faces=[
            ((0.2, 0.2, 0.1, 0.1), 0.8),
            ((0.7, 0.7, 0.2, 0.2), 0.99),
        ])
        detector = BlazeFaceDetector(model)
        detections = detector.detect(np.zeros((128, 128, 3), dtype=np.float32))
        assert [round(d.confidence, 2) for d in detections] == [0.99, 0.8]

    def test_overlapping_candidates_merged(self):
        model = FakeBlazeFaceModel(faces=[
            ((0.5, 0.5, 0.3, 0.3), 0.85),
            ((0.51, 0.5, 0.3, 0.3), 0.97),
        ])
        detector = BlazeFaceDetector(model)
        detections = detector.detect(np.zeros((128, 128, 3), dtype=np.float32))
        assert len(detections) == 1
        assert detections[0].confidence == pytest.approx(0.97, abs=1e-4)

    def test_zero_size_candidate_dropped(self):
        model = FakeBlazeFaceModel(faces=[((0.5, 0.5, 0.0, 0.0), 0.95)])
        detector = BlazeFaceDetector(model)
        assert detector.detect(np.zeros((128, 128, 3), dtype=np.float32)) == []

    def test_zero_size_candidate_skipped_for_valid_one(self):
        model = FakeBlazeFaceModel(faces=[
            ((0.5, 0.5, 0.0, 0.0), 0.99),
            ((0.3, 0.3, 0.2, 0.2), 0.9),
        ])
        detector = BlazeFaceDetector(model)

        detections = detector.detect(np.zeros((100, 100, 3), dtype=np.float32))

        assert len(detections) == 1
        assert detections[0].confidence == pytest.approx(0.9, abs=1e-4)
        assert not detections[0].box.is_degenerate()

    def test_input_tensor_normalized(self):
        model = FakeBlazeFaceModel()
        detector = BlazeFaceDetector(model)
        image = np.full((50, 80, 3), 255.0, dtype=np.float32)
        image[..., 0] = 0.0

        detector.detect(image)

        tensor = model.tensors[0]
        assert tensor.shape == (1, 3, 128, 128)
        assert tensor.dtype == np.float32
        np.testing.assert_allclose(tensor[0, 0], -1.0)
        np.testing.assert_allclose(tensor[0, 1], 1.0)

    def test_nhwc_layout(self):
        model = FakeBlazeFaceModel()
        detector = BlazeFaceDetector(model, layout="nhwc")
        detector.detect(np.zeros((50, 80, 3), dtype=np.uint8))
        assert model.tensors[0].shape == (1, 128, 128, 3)

    def test_does_not_modify_input(self):
        model = FakeBlazeFaceModel(faces=[((0.5, 0.5, 0.25, 0.25), 0.95)])
        detector = BlazeFaceDetector(model)
        image = np.random.default_rng(0).uniform(0, 255, (60, 60, 3)).astype(np.float32)
        before = image.copy()
        detector.detect(image)
        np.testing.assert_array_equal(image, before)

    def test_deterministic(self):
        model = FakeBlazeFaceModel(faces=[((0.4, 0.6, 0.2, 0.3), 0.9)])
        detector = BlazeFaceDetector(model)
        image = np.zeros((90, 120, 3), dtype=np.float32)
        first = detector.detect(image)
        second = detector.detect(image)
        assert [d.box for d in first] == [d.box for d in second]
        assert [d.confidence for d in first] == [d.confidence for d in second]

    def test_unexpected_outputs_raise(self):
        class BadModel:
            def run(self, tensor):
                return [np.zeros((1, 896, 4), dtype=np.float32)]

            def close(self):
                pass

        detector = BlazeFaceDetector(BadModel())
        with pytest.raises(ValueError):
            detector.detect(np.zeros((32, 32, 3), dtype=np.float32))

    def test_anchor_count_mismatch_raises(self):
        class ShortModel:
            def run(self, tensor):
                return [
                    np.zeros((1, 10, 16), dtype=np.float32),
                    np.zeros((1, 10, 1), dtype=np.float32),
                ]

            def close(self):
                pass

        detector = BlazeFaceDetector(ShortModel())
        with pytest.raises(ValueError):
            detector.detect(np.zeros((32, 32, 3), dtype=np.float32))
