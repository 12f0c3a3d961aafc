"""Tests for the kiosk health metrics and alerting."""

from __future__ import annotations

import pytest
from django.test import SimpleTestCase, override_settings

from biometrics import monitoring


class KioskMonitoringTests(SimpleTestCase):
    def setUp(self):
        monitoring.reset_for_tests()

    @override_settings(RECOGNITION_CAMERA_START_ALERT_SECONDS=0.5)
    def test_slow_camera_start_raises_alert(self):
        monitoring.record_camera_start(True, latency=1.2)

        snapshot = monitoring.get_health_snapshot()
        self.assertTrue(snapshot["camera"]["running"])
        self.assertEqual(snapshot["metrics"]["camera_start"]["success"], 1)
        self.assertEqual(snapshot["alerts"][-1]["type"], "camera_start_latency")

    def test_failed_camera_start_is_recorded(self):
        monitoring.record_camera_start(False, latency=0.1, error="device busy")

        snapshot = monitoring.get_health_snapshot()
        self.assertFalse(snapshot["camera"]["running"])
        self.assertEqual(snapshot["camera"]["last_error"], "device busy")
        self.assertEqual(snapshot["metrics"]["camera_start"]["failure"], 1)
        self.assertEqual(snapshot["alerts"][-1]["type"], "camera_start_failure")

    def test_camera_stop_clears_running_flag(self):
        monitoring.record_camera_start(True, latency=0.1)
        monitoring.record_camera_stop(True)

        snapshot = monitoring.get_health_snapshot()
        self.assertFalse(snapshot["camera"]["running"])
        self.assertEqual(snapshot["camera"]["last_stop"]["status"], "success")

    @override_settings(RECOGNITION_FRAME_DELAY_ALERT_SECONDS=0.2)
    def test_frame_delay_alert(self):
        monitoring.record_frame_delay(0.05)
        self.assertEqual(monitoring.get_health_snapshot()["alerts"], [])

        monitoring.record_frame_delay(0.5)
        snapshot = monitoring.get_health_snapshot()
        self.assertEqual(snapshot["frames"]["last_frame_delay"], 0.5)
        self.assertEqual(snapshot["alerts"][-1]["type"], "frame_delay")

    def test_frame_drops_are_counted(self):
        monitoring.record_frame_drop()
        monitoring.record_frame_drop()

        self.assertEqual(monitoring.get_health_snapshot()["metrics"]["frame_drop_total"], 2)

    @override_settings(RECOGNITION_LOOP_ALERT_SECONDS=0.1)
    def test_slow_recognition_iteration_alerts(self):
        monitoring.observe_stage_duration("detection", 0.4)
        monitoring.observe_stage_duration(
            "recognition_iteration", 0.4, threshold_key="recognition_iteration"
        )

        snapshot = monitoring.get_health_snapshot()
        self.assertEqual(snapshot["stages"]["detection"]["last_duration"], 0.4)
        self.assertEqual(len(snapshot["alerts"]), 1)
        self.assertEqual(snapshot["alerts"][0]["data"]["stage"], "recognition_iteration")

    def test_identification_outcomes_are_counted(self):
        monitoring.record_identification_outcome("verified")
        monitoring.record_identification_outcome("spoof")
        monitoring.record_identification_outcome("spoof")

        snapshot = monitoring.get_health_snapshot()
        self.assertEqual(snapshot["last_outcome"], "spoof")
        self.assertEqual(snapshot["metrics"]["outcomes"]["spoof"], 2)
        self.assertEqual(snapshot["metrics"]["outcomes"]["verified"], 1)
        self.assertEqual(snapshot["metrics"]["outcomes"]["no_face"], 0)

    @override_settings(RECOGNITION_HEALTH_ALERT_HISTORY=2)
    def test_alert_history_is_bounded(self):
        for _ in range(4):
            monitoring.record_camera_start(False, latency=None, error="boom")

        self.assertEqual(len(monitoring.get_health_snapshot()["alerts"]), 2)

    def test_export_contains_kiosk_metrics(self):
        monitoring.record_identification_outcome("no_face")

        payload = monitoring.export_metrics().decode()
        self.assertIn("recognition_identification_outcome_total", payload)
        self.assertIn("kiosk_camera_running", payload)
        self.assertTrue(monitoring.prometheus_content_type().startswith("text/plain"))


def test_unknown_outcome_is_rejected() -> None:
    with pytest.raises(ValueError):
        monitoring.record_identification_outcome("maybe")


def test_unknown_threshold_key_is_rejected() -> None:
    with pytest.raises(KeyError):
        monitoring.get_threshold("unknown")
