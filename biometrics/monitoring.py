"""Health and Prometheus metrics for the attendance kiosk camera loop."""

from __future__ import annotations

import datetime as _dt
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from django.conf import settings

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)


@dataclass
class _HealthState:
    running: bool = False
    last_start: Optional[Dict[str, Any]] = None
    last_stop: Optional[Dict[str, Any]] = None
    last_error: Optional[str] = None
    last_frame_timestamp: Optional[float] = None
    last_frame_delay: Optional[float] = None
    last_outcome: Optional[str] = None
    stage_durations: Dict[str, float] = field(default_factory=dict)


_STATE = _HealthState()
_STATE_LOCK = threading.Lock()
_ALERTS: deque[Dict[str, Any]] = deque()

_THRESHOLD_SETTING_NAMES: Dict[str, str] = {
    "camera_start": "RECOGNITION_CAMERA_START_ALERT_SECONDS",
    "frame_delay": "RECOGNITION_FRAME_DELAY_ALERT_SECONDS",
    "recognition_iteration": "RECOGNITION_LOOP_ALERT_SECONDS",
}

_DEFAULT_THRESHOLDS: Dict[str, float] = {
    "camera_start": 3.0,
    "frame_delay": 0.75,
    "recognition_iteration": 2.5,
}

OUTCOMES = (
    "verified",
    "unverified",
    "no_face",
    "too_close",
    "too_far",
    "multiple_faces",
    "spoof",
    "not_enrolled",
)


def _max_alert_history() -> int:
    value = getattr(settings, "RECOGNITION_HEALTH_ALERT_HISTORY", 50)
    try:
        numeric = int(value)
    except (TypeError, ValueError):  # pragma: no cover
        numeric = 50
    return max(1, numeric)


def _now_timestamp() -> float:
    return time.time()


def _format_timestamp(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return _dt.datetime.fromtimestamp(ts, tz=_dt.timezone.utc).isoformat()


def _append_alert(
    event_type: str, severity: str, message: str, data: Optional[Dict[str, Any]] = None
) -> None:
    payload = {
        "timestamp": _format_timestamp(_now_timestamp()),
        "type": event_type,
        "severity": severity,
        "message": message,
        "data": data or {},
    }
    with _STATE_LOCK:
        _ALERTS.append(payload)
        max_alerts = _max_alert_history()
        while len(_ALERTS) > max_alerts:
            _ALERTS.popleft()


def _build_metrics() -> None:
    global REGISTRY
    global CAMERA_START_COUNTER
    global CAMERA_START_LATENCY
    global CAMERA_STOP_COUNTER
    global CAMERA_RUNNING_GAUGE
    global FRAME_DELAY_HISTOGRAM
    global FRAME_DROP_COUNTER
    global STAGE_DURATION_HISTOGRAM
    global IDENTIFICATION_OUTCOME_COUNTER

    REGISTRY = CollectorRegistry(auto_describe=True)

    CAMERA_START_COUNTER = Counter(
        "kiosk_camera_start",
        "Total camera start attempts",
        labelnames=("status",),
        registry=REGISTRY,
    )
    CAMERA_START_LATENCY = Histogram(
        "kiosk_camera_start_latency_seconds",
        "Camera start latency in seconds",
        buckets=(0.1, 0.25, 0.5, 1.0, 2.0, 3.0, 5.0, 10.0),
        registry=REGISTRY,
    )
    CAMERA_STOP_COUNTER = Counter(
        "kiosk_camera_stop",
        "Total camera shutdown attempts",
        labelnames=("status",),
        registry=REGISTRY,
    )
    CAMERA_RUNNING_GAUGE = Gauge(
        "kiosk_camera_running",
        "1 while the kiosk camera is capturing",
        registry=REGISTRY,
    )
    FRAME_DELAY_HISTOGRAM = Histogram(
        "kiosk_frame_delay_seconds",
        "Time between successive frames",
        buckets=(0.0, 0.016, 0.033, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
        registry=REGISTRY,
    )
    FRAME_DROP_COUNTER = Counter(
        "kiosk_frame_drop",
        "Count of reads that returned no frame",
        registry=REGISTRY,
    )
    STAGE_DURATION_HISTOGRAM = Histogram(
        "recognition_stage_duration_seconds",
        "Duration of detection, liveness, matching and full iterations",
        labelnames=("stage",),
        buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 1.5, 2.5, 5.0, 10.0),
        registry=REGISTRY,
    )
    IDENTIFICATION_OUTCOME_COUNTER = Counter(
        "recognition_identification_outcome",
        "Identification results by outcome",
        labelnames=("outcome",),
        registry=REGISTRY,
    )


_build_metrics()


def reset_for_tests() -> None:
    """Reset in-memory state and metrics (intended for test suites)."""

    with _STATE_LOCK:
        global _STATE
        _STATE = _HealthState()
        _ALERTS.clear()
    _build_metrics()


def get_threshold(key: str) -> float:
    """Fetch the configured alert threshold for the supplied key."""

    if key not in _THRESHOLD_SETTING_NAMES:
        raise KeyError(f"Unknown threshold key: {key}")
    default = _DEFAULT_THRESHOLDS[key]
    value = getattr(settings, _THRESHOLD_SETTING_NAMES[key], default)
    try:
        return float(value)
    except (TypeError, ValueError):  # pragma: no cover
        return default


def get_alert_thresholds() -> Dict[str, float]:
    return {key: get_threshold(key) for key in _THRESHOLD_SETTING_NAMES}


def _metric_value(name: str, labels: Optional[Dict[str, str]] = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0


def record_camera_start(
    success: bool, latency: Optional[float], error: Optional[str] = None
) -> None:
    """Record metrics and internal state for a camera start attempt."""

    status = "success" if success else "failure"
    CAMERA_START_COUNTER.labels(status=status).inc()
    if latency is not None:
        CAMERA_START_LATENCY.observe(latency)
    with _STATE_LOCK:
        _STATE.running = success
        if success:
            _STATE.last_error = None
        else:
            _STATE.last_error = error
        CAMERA_RUNNING_GAUGE.set(1 if success else 0)
        _STATE.last_start = {
            "timestamp": _now_timestamp(),
            "status": status,
            "latency": latency,
            "error": error,
        }
    log_extra = {"event": "camera_start", "status": status, "latency_seconds": latency}
    if not success:
        logger.error("Failed to start kiosk camera", extra={**log_extra, "error": error})
        _append_alert(
            "camera_start_failure",
            "error",
            "Failed to start kiosk camera",
            {"error": error or "unknown", "latency": latency},
        )
        return

    logger.info("Kiosk camera started", extra=log_extra)
    threshold = get_threshold("camera_start")
    if latency is not None and latency > threshold:
        message = f"Camera start latency {latency:.3f}s exceeded threshold {threshold:.3f}s"
        logger.warning(message, extra={**log_extra, "threshold": threshold})
        _append_alert(
            "camera_start_latency",
            "warning",
            message,
            {"latency": latency, "threshold": threshold},
        )


def record_camera_stop(success: bool, *, error: Optional[str] = None) -> None:
    status = "success" if success else "failure"
    CAMERA_STOP_COUNTER.labels(status=status).inc()
    with _STATE_LOCK:
        _STATE.running = False
        CAMERA_RUNNING_GAUGE.set(0)
        if not success:
            _STATE.last_error = error
        _STATE.last_stop = {"timestamp": _now_timestamp(), "status": status, "error": error}
    if success:
        logger.info("Kiosk camera stopped", extra={"event": "camera_stop", "status": status})
    else:
        logger.error(
            "Kiosk camera failed to stop cleanly",
            extra={"event": "camera_stop", "status": status, "error": error},
        )
        _append_alert("camera_stop_failure", "error", "Camera failed to stop", {"error": error})


def record_frame_drop() -> None:
    FRAME_DROP_COUNTER.inc()
    logger.debug("Camera returned no frame", extra={"event": "frame_drop"})


def record_frame_delay(delay: float, capture_time: Optional[float] = None) -> None:
    """Track inter-frame delay and raise an alert when the camera stalls."""

    FRAME_DELAY_HISTOGRAM.observe(max(0.0, delay))
    with _STATE_LOCK:
        _STATE.last_frame_delay = delay
        _STATE.last_frame_timestamp = capture_time or _now_timestamp()
    threshold = get_threshold("frame_delay")
    if delay > threshold:
        message = f"Frame delay {delay:.3f}s exceeded threshold {threshold:.3f}s"
        logger.warning(
            message,
            extra={"event": "frame_delay", "delay_seconds": delay, "threshold": threshold},
        )
        _append_alert("frame_delay", "warning", message, {"delay": delay, "threshold": threshold})


def observe_stage_duration(
    stage: str, duration: float, *, threshold_key: Optional[str] = None
) -> None:
    """Record stage durations and emit alerts for slow executions."""

    STAGE_DURATION_HISTOGRAM.labels(stage=stage).observe(max(0.0, duration))
    with _STATE_LOCK:
        _STATE.stage_durations[stage] = duration
    if not threshold_key:
        return
    threshold = get_threshold(threshold_key)
    if duration > threshold:
        logger.warning(
            "Recognition stage '%s' exceeded threshold",
            stage,
            extra={
                "event": "stage_duration",
                "stage": stage,
                "duration_seconds": duration,
                "threshold": threshold,
            },
        )
        _append_alert(
            "stage_duration",
            "warning",
            f"Stage '{stage}' duration {duration:.3f}s exceeded {threshold:.3f}s",
            {"stage": stage, "duration": duration, "threshold": threshold},
        )


def record_identification_outcome(outcome: str) -> None:
    if outcome not in OUTCOMES:
        raise ValueError(f"Unknown identification outcome: {outcome}")
    IDENTIFICATION_OUTCOME_COUNTER.labels(outcome=outcome).inc()
    with _STATE_LOCK:
        _STATE.last_outcome = outcome


def get_health_snapshot() -> Dict[str, Any]:
    """Return a serialisable snapshot of camera health and alert history."""

    with _STATE_LOCK:
        last_start = dict(_STATE.last_start) if _STATE.last_start else None
        if last_start:
            last_start["timestamp"] = _format_timestamp(last_start["timestamp"])
        last_stop = dict(_STATE.last_stop) if _STATE.last_stop else None
        if last_stop:
            last_stop["timestamp"] = _format_timestamp(last_stop["timestamp"])
        camera = {
            "running": _STATE.running,
            "last_start": last_start,
            "last_stop": last_stop,
            "last_error": _STATE.last_error,
        }
        frames = {
            "last_frame_timestamp": _format_timestamp(_STATE.last_frame_timestamp),
            "last_frame_delay": _STATE.last_frame_delay,
        }
        stages = {
            stage: {"last_duration": duration} for stage, duration in _STATE.stage_durations.items()
        }
        last_outcome = _STATE.last_outcome
        alerts = list(_ALERTS)

    outcomes = {
        outcome: _metric_value("recognition_identification_outcome_total", {"outcome": outcome})
        for outcome in OUTCOMES
    }
    metrics = {
        "camera_start": {
            "success": _metric_value("kiosk_camera_start_total", {"status": "success"}),
            "failure": _metric_value("kiosk_camera_start_total", {"status": "failure"}),
        },
        "frame_drop_total": _metric_value("kiosk_frame_drop_total"),
        "outcomes": outcomes,
    }
    return {
        "camera": camera,
        "frames": frames,
        "stages": stages,
        "last_outcome": last_outcome,
        "alerts": alerts,
        "metrics": metrics,
        "thresholds": get_alert_thresholds(),
    }


def export_metrics() -> bytes:
    return generate_latest(REGISTRY)


def prometheus_content_type() -> str:
    return CONTENT_TYPE_LATEST


__all__ = [
    "OUTCOMES",
    "export_metrics",
    "get_alert_thresholds",
    "get_health_snapshot",
    "get_threshold",
    "observe_stage_duration",
    "prometheus_content_type",
    "record_camera_start",
    "record_camera_stop",
    "record_frame_delay",
    "record_frame_drop",
    "record_identification_outcome",
    "reset_for_tests",
]
