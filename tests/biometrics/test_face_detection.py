"""Adapters around DeepFace and the MediaPipe face landmarker."""

from __future__ import annotations

import sys
import types
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from biometrics.detection import (
    BoundingBox,
    DeepFaceDetector,
    FaceDetection,
    MediaPipeLandmarkTracker,
)


def _fake_deepface(represent):
    module = types.ModuleType("deepface")
    module.DeepFace = MagicMock()
    module.DeepFace.represent = represent
    return module


def _frame(width: int = 640, height: int = 480) -> np.ndarray:
    return np.zeros((height, width, 3), dtype=np.uint8)


def test_bounding_box_from_facial_area() -> None:
    assert BoundingBox.from_facial_area({"x": 1, "y": 2, "w": 30, "h": 40}) == BoundingBox(
        1, 2, 30, 40
    )
    assert BoundingBox.from_facial_area({"x": 1, "y": 2, "w": 0, "h": 40}) is None
    assert BoundingBox.from_facial_area(None) is None


def test_width_ratio_uses_frame_width() -> None:
    detection = FaceDetection(BoundingBox(0, 0, 160, 160), np.zeros(4), frame_width=640)

    assert detection.width_ratio == pytest.approx(0.25)


def test_deepface_detector_returns_confident_faces() -> None:
    represent = MagicMock(
        return_value=[
            {
                "embedding": [0.1] * 128,
                "facial_area": {"x": 10, "y": 20, "w": 200, "h": 220},
                "face_confidence": 0.98,
            },
            {
                "embedding": [0.2] * 128,
                "facial_area": {"x": 300, "y": 20, "w": 50, "h": 60},
                "face_confidence": 0.1,
            },
        ]
    )
    detector = DeepFaceDetector(model_name="Facenet", detector_backend="opencv", min_confidence=0.5)

    with patch.dict(sys.modules, {"deepface": _fake_deepface(represent)}):
        detections = detector.detect_all(_frame())

    assert len(detections) == 1
    assert detections[0].box.w == 200
    assert detections[0].frame_width == 640
    assert detections[0].embedding.shape == (128,)
    represent.assert_called_once()
    assert represent.call_args.kwargs["enforce_detection"] is False
    assert represent.call_args.kwargs["model_name"] == "Facenet"


def test_deepface_detector_reports_every_face_for_multi_face_frames() -> None:
    faces = [
        {"embedding": [0.1] * 4, "facial_area": {"x": 0, "y": 0, "w": 100, "h": 100}},
        {"embedding": [0.3] * 4, "facial_area": {"x": 200, "y": 0, "w": 100, "h": 100}},
    ]
    detector = DeepFaceDetector(min_confidence=0.0)

    with patch.dict(sys.modules, {"deepface": _fake_deepface(MagicMock(return_value=faces))}):
        assert len(detector.detect_all(_frame())) == 2


def test_deepface_errors_mean_no_face() -> None:
    represent = MagicMock(side_effect=ValueError("Face could not be detected"))
    detector = DeepFaceDetector()

    with patch.dict(sys.modules, {"deepface": _fake_deepface(represent)}):
        assert detector.detect_all(_frame()) == []


def test_empty_frames_skip_deepface() -> None:
    represent = MagicMock()
    detector = DeepFaceDetector()

    with patch.dict(sys.modules, {"deepface": _fake_deepface(represent)}):
        assert detector.detect_all(np.zeros((0, 0, 3), dtype=np.uint8)) == []

    represent.assert_not_called()


def _landmarker_result(with_face: bool = True):
    if not with_face:
        return SimpleNamespace(face_landmarks=[], facial_transformation_matrixes=[])
    landmarks = [SimpleNamespace(x=0.01 * i, y=0.02 * i, z=0.0) for i in range(478)]
    return SimpleNamespace(
        face_landmarks=[landmarks],
        facial_transformation_matrixes=[np.eye(4)],
    )


def test_landmark_tracker_converts_results() -> None:
    tracker = MediaPipeLandmarkTracker(model_path="face_landmarker.task")
    tracker._landmarker = MagicMock()
    tracker._landmarker.detect_for_video.return_value = _landmarker_result()

    with patch.dict(sys.modules, {"mediapipe": MagicMock()}):
        observation = tracker.observe(_frame(), 1000)

    assert observation is not None
    assert observation.landmarks.shape == (478, 2)
    assert observation.landmarks[10, 0] == pytest.approx(0.1)
    np.testing.assert_allclose(observation.transformation, np.eye(4))


def test_landmark_tracker_forces_increasing_timestamps() -> None:
    tracker = MediaPipeLandmarkTracker(model_path="face_landmarker.task")
    tracker._landmarker = MagicMock()
    tracker._landmarker.detect_for_video.return_value = _landmarker_result(with_face=False)

    with patch.dict(sys.modules, {"mediapipe": MagicMock()}):
        assert tracker.observe(_frame(), 500) is None
        tracker.observe(_frame(), 500)
        tracker.observe(_frame(), 100)

    timestamps = [call.args[1] for call in tracker._landmarker.detect_for_video.call_args_list]
    assert timestamps == [500, 501, 502]


def test_landmark_tracker_close_releases_the_model() -> None:
    tracker = MediaPipeLandmarkTracker(model_path="face_landmarker.task")
    landmarker = MagicMock()
    tracker._landmarker = landmarker

    tracker.close()

    landmarker.close.assert_called_once()
    assert tracker._landmarker is None
