"""Tests for blink and head-movement liveness analysis."""

from __future__ import annotations

import itertools

import numpy as np
import pytest
from kiosk_fakes import (
    FakeFrameSource,
    FakeTracker,
    live_observations,
    make_landmarks,
    no_sleep,
    observation,
    photo_observations,
    yaw_matrix,
)

from biometrics.config import LivenessThresholds
from biometrics.liveness import (
    LivenessAnalyzer,
    LivenessSample,
    LivenessWindow,
    average_eye_aspect_ratio,
    evaluate_liveness,
    eye_aspect_ratio,
    yaw_from_transformation,
)
from biometrics.results import RejectionReason

THRESHOLDS = LivenessThresholds(interval_seconds=0.0)


def _samples(ears, yaws):
    return [
        LivenessSample(ear=ear, yaw=yaw, timestamp=float(index))
        for index, (ear, yaw) in enumerate(zip(ears, yaws))
    ]


def test_eye_aspect_ratio_formula() -> None:
    points = np.array(
        [[0.0, 0.0], [1.0, 1.0], [2.0, 1.0], [3.0, 0.0], [2.0, -1.0], [1.0, -1.0]]
    )

    assert eye_aspect_ratio(points) == pytest.approx((2.0 + 2.0) / (2.0 * 3.0))


def test_eye_aspect_ratio_handles_degenerate_eye() -> None:
    assert eye_aspect_ratio(np.zeros((6, 2))) is None
    with pytest.raises(ValueError):
        eye_aspect_ratio(np.zeros((5, 2)))


def test_average_eye_aspect_ratio_from_face_mesh() -> None:
    assert average_eye_aspect_ratio(make_landmarks(0.3)) == pytest.approx(0.3)
    assert average_eye_aspect_ratio(np.zeros((10, 2))) is None


def test_yaw_from_transformation_matrix() -> None:
    assert yaw_from_transformation(yaw_matrix(0.3)) == pytest.approx(0.3)
    assert yaw_from_transformation(None) is None
    assert yaw_from_transformation(np.eye(3)) is None


def test_live_window_passes() -> None:
    ears = [0.3, 0.3, 0.1, 0.3, 0.3]
    yaws = [0.0, 0.05, 0.1, 0.15, 0.2]

    result = evaluate_liveness(_samples(ears, yaws), THRESHOLDS)

    assert result.passed
    assert result.reason is None
    assert result.blink_detected
    assert result.head_movement == pytest.approx(0.2)
    assert result.frames_analyzed == 5


def test_blink_without_head_movement_is_rejected() -> None:
    result = evaluate_liveness(_samples([0.3, 0.1, 0.3], [0.0, 0.01, 0.02]), THRESHOLDS)

    assert not result.passed
    assert result.blink_detected
    assert result.reason == RejectionReason.NO_HEAD_MOVEMENT


def test_head_movement_without_blink_is_rejected() -> None:
    result = evaluate_liveness(_samples([0.3, 0.3, 0.3], [0.0, 0.3, 0.6]), THRESHOLDS)

    assert not result.passed
    assert not result.blink_detected
    assert result.reason == RejectionReason.NO_BLINK_DETECTED


def test_missing_blink_is_reported_before_missing_movement() -> None:
    result = evaluate_liveness(_samples([0.3] * 4, [0.0] * 4), THRESHOLDS)

    assert result.reason == RejectionReason.NO_BLINK_DETECTED


def test_closed_eyes_from_the_first_sample_are_not_a_blink() -> None:
    """A blink needs an open-eye reading before the closed one."""

    result = evaluate_liveness(_samples([0.1, 0.1, 0.1], [0.0, 0.2, 0.4]), THRESHOLDS)

    assert not result.blink_detected


def test_samples_without_a_face_do_not_reset_the_previous_ear() -> None:
    samples = [
        LivenessSample(ear=0.3, yaw=0.0, timestamp=0.0),
        LivenessSample(ear=None, yaw=None, timestamp=1.0),
        LivenessSample(ear=0.1, yaw=0.3, timestamp=2.0),
    ]

    result = evaluate_liveness(samples, THRESHOLDS)

    assert result.blink_detected
    assert result.passed
    assert result.frames_analyzed == 2


def test_yaw_exactly_at_threshold_is_not_enough() -> None:
    result = evaluate_liveness(_samples([0.3, 0.1], [0.0, 0.15]), THRESHOLDS)

    assert result.reason == RejectionReason.NO_HEAD_MOVEMENT


def test_window_keeps_most_recent_samples() -> None:
    window = LivenessWindow(maxlen=3)
    for index in range(5):
        window.append(LivenessSample(ear=0.3, yaw=0.0, timestamp=float(index)))

    assert [sample.timestamp for sample in window.snapshot()] == [2.0, 3.0, 4.0]
    window.clear()
    assert window.snapshot() == []


def test_analyzer_samples_one_window_with_paced_timestamps() -> None:
    ticks = itertools.count(start=10.0, step=0.1)
    pauses = []
    tracker = FakeTracker(live_observations())
    analyzer = LivenessAnalyzer(
        tracker,
        LivenessThresholds(interval_seconds=0.1),
        sleep=pauses.append,
        clock=lambda: next(ticks),
    )

    result = analyzer.check(FakeFrameSource())

    assert result.passed
    assert result.frames_analyzed == 15
    assert pauses == [0.1] * 15
    assert tracker.timestamps == sorted(tracker.timestamps)
    assert tracker.timestamps[0] == 10000


def test_analyzer_rejects_a_static_photo() -> None:
    analyzer = LivenessAnalyzer(FakeTracker(photo_observations()), THRESHOLDS, sleep=no_sleep)

    result = analyzer.check(FakeFrameSource())

    assert not result.passed
    assert result.reason == RejectionReason.NO_BLINK_DETECTED


def test_analyzer_skips_the_tracker_when_frames_are_missing() -> None:
    tracker = FakeTracker([observation(0.3)])
    analyzer = LivenessAnalyzer(tracker, THRESHOLDS, sleep=no_sleep)

    result = analyzer.check(FakeFrameSource([None]))

    assert tracker.timestamps == []
    assert result.frames_analyzed == 0
    assert result.reason == RejectionReason.NO_BLINK_DETECTED
