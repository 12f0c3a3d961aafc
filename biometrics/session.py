"""The kiosk recognition loop.

A :class:`RecognitionSession` owns everything one camera session needs: the
tenant's descriptor store, the identification engine, the attendance recorder
and the visitor debounce. The loop runs single-threaded; each cycle reads a
frame, classifies it and acts on the outcome before the next cycle starts, so
two attendance decisions for the same employee can never overlap.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from timekeeping.decisions import AttendanceDecision, AttendanceRecorder
from timekeeping.exceptions import AttendancePersistenceError

from .camera import FrameSource
from .config import RecognitionConfig
from .descriptor_store import DescriptorStore
from .detection import FaceDetector, LandmarkTracker
from .exceptions import VisitorCaptureError
from .identification import IdentificationEngine
from .liveness import LivenessAnalyzer
from .results import (
    IdentificationResult,
    MultipleFaces,
    NoFace,
    NotEnrolled,
    RejectionReason,
    SpoofRejected,
    TooClose,
    TooFar,
    Unverified,
    Verified,
)
from .visitors import VisitorTracker

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    NO_FACE = "no_face"
    DETECTING = "detecting"
    REJECTED = "rejected"
    OVERRIDE_REQUESTED = "override_requested"
    NO_MATCH = "no_match"
    VISITOR_CAPTURED = "visitor_captured"
    VERIFIED = "verified"
    ERROR = "error"


REJECTION_MESSAGES = {
    RejectionReason.TOO_CLOSE: "Move back from the camera.",
    RejectionReason.TOO_FAR: "Move closer to the camera.",
    RejectionReason.MULTIPLE_FACES_DETECTED: "Only one person allowed in frame.",
    RejectionReason.NO_BLINK_DETECTED: "Please blink naturally.",
    RejectionReason.NO_HEAD_MOVEMENT: "Please turn your head slightly.",
    RejectionReason.NOT_ENROLLED: "This employee has no enrolled face.",
}


@dataclass(frozen=True)
class SessionFeedback:
    status: SessionStatus
    message: str = ""
    employee_id: Optional[str] = None
    decision: Optional[AttendanceDecision] = None
    reason: Optional[RejectionReason] = None


class CancellationToken:
    """Handle used to stop :meth:`RecognitionSession.run` from another context."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class RecognitionSession:
    def __init__(
        self,
        tenant_id: str,
        frame_source: FrameSource,
        *,
        detector: FaceDetector,
        tracker: LandmarkTracker,
        config: Optional[RecognitionConfig] = None,
        store: Optional[DescriptorStore] = None,
        recorder: Optional[AttendanceRecorder] = None,
        visitor_tracker: Optional[VisitorTracker] = None,
        on_feedback: Optional[Callable[[SessionFeedback], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.tenant_id = str(tenant_id)
        self.frame_source = frame_source
        self.config = config or RecognitionConfig.from_settings()
        self.store = store or DescriptorStore(self.config.matching.descriptor_length)
        self.engine = IdentificationEngine(
            detector,
            LivenessAnalyzer(tracker, self.config.liveness, sleep=sleep),
            self.store,
            self.config,
        )
        self.recorder = recorder or AttendanceRecorder(self.tenant_id)
        self.visitors = visitor_tracker or VisitorTracker(
            self.tenant_id, self.config.session.visitor_match_threshold
        )
        self.on_feedback = on_feedback
        self._sleep = sleep

        self.locked_employee: Optional[str] = None
        self._no_face_frames = 0
        self._liveness_failures = 0
        self._started = False

    # -- lifecycle -----------------------------------------------------

    def start(self) -> None:
        if self._started:
            return
        self.store.init(self.tenant_id)
        self._started = True
        logger.info(
            "Recognition session started",
            extra={
                "event": "session_start",
                "tenant_id": self.tenant_id,
                "enrolled": len(self.store),
            },
        )

    def stop(self) -> None:
        if not self._started:
            return
        self.store.clear()
        self.visitors.reset()
        self.locked_employee = None
        self._no_face_frames = 0
        self._liveness_failures = 0
        self._started = False
        logger.info(
            "Recognition session stopped",
            extra={"event": "session_stop", "tenant_id": self.tenant_id},
        )

    def reset_lock(self) -> None:
        """Re-arm identification for the next employee."""

        self.locked_employee = None

    def run(
        self, token: Optional[CancellationToken] = None, *, max_cycles: Optional[int] = None
    ) -> int:
        """Run identification cycles until cancelled; returns the number of cycles.

        A cycle that fails unexpectedly is logged and reported as an ``error``
        feedback; the loop carries on with the next frame.
        """

        token = token or CancellationToken()
        self.start()
        cycles = 0
        try:
            while not token.cancelled:
                if max_cycles is not None and cycles >= max_cycles:
                    break
                if cycles:
                    self._sleep(self.config.session.cycle_interval_seconds)
                    if token.cancelled:
                        break
                try:
                    self.step()
                except Exception:
                    logger.exception(
                        "Recognition cycle failed",
                        extra={
                            "event": "recognition_cycle",
                            "status": "failure",
                            "tenant_id": self.tenant_id,
                        },
                    )
                    self._emit(
                        SessionFeedback(
                            status=SessionStatus.ERROR,
                            message="Recognition failed. Retrying.",
                        )
                    )
                cycles += 1
        finally:
            self.stop()
        return cycles

    # -- cycle ---------------------------------------------------------

    def step(self) -> SessionFeedback:
        """Perform one identification cycle and act on its outcome."""

        self.start()
        feedback = self._handle(self.engine.identify(self.frame_source))
        self._emit(feedback)
        return feedback

    def confirm_override(self, employee_id: str) -> SessionFeedback:
        """Operator-confirmed attendance after repeated liveness failures.

        The live face must still verify against the claimed employee's own
        descriptor before anything is recorded.
        """

        self.start()
        result = self.engine.verify_face(self.frame_source, employee_id)
        if isinstance(result, Verified):
            self._liveness_failures = 0
            self.locked_employee = result.employee_id
            feedback = self._record_attendance(result)
        else:
            feedback = SessionFeedback(
                status=SessionStatus.REJECTED,
                message="Face did not verify against the claimed employee.",
                employee_id=str(employee_id),
                reason=result.reason,
            )
        self._emit(feedback)
        return feedback

    def _emit(self, feedback: SessionFeedback) -> None:
        if self.on_feedback is not None:
            self.on_feedback(feedback)

    def _face_lost(self) -> None:
        self.locked_employee = None
        self.visitors.reset()
        self._liveness_failures = 0

    def _handle(self, result: IdentificationResult) -> SessionFeedback:
        if isinstance(result, NoFace):
            self._no_face_frames += 1
            if self._no_face_frames > self.config.session.face_lost_frames:
                self._face_lost()
            return SessionFeedback(status=SessionStatus.NO_FACE, reason=result.reason)

        self._no_face_frames = 0

        if isinstance(result, (TooClose, TooFar, MultipleFaces, NotEnrolled)):
            return SessionFeedback(
                status=SessionStatus.REJECTED,
                message=REJECTION_MESSAGES[result.reason],
                reason=result.reason,
            )
        if isinstance(result, SpoofRejected):
            return self._handle_spoof(result)
        if isinstance(result, Unverified):
            return self._handle_unverified(result)
        if isinstance(result, Verified):
            if self.locked_employee is not None:
                return SessionFeedback(
                    status=SessionStatus.DETECTING,
                    message="Attendance already recorded.",
                    employee_id=self.locked_employee,
                )
            self._liveness_failures = 0
            self.locked_employee = result.employee_id
            return self._record_attendance(result)
        raise TypeError(f"Unhandled identification result: {result!r}")

    def _handle_spoof(self, result: SpoofRejected) -> SessionFeedback:
        self._liveness_failures += 1
        if self._liveness_failures >= self.config.session.liveness_override_after:
            logger.warning(
                "Repeated liveness failures; manual override requested",
                extra={
                    "event": "liveness_override",
                    "tenant_id": self.tenant_id,
                    "failures": self._liveness_failures,
                    "reason": result.reason.value,
                },
            )
            return SessionFeedback(
                status=SessionStatus.OVERRIDE_REQUESTED,
                message="Liveness could not be confirmed. Ask an operator to confirm attendance.",
                reason=result.reason,
            )
        return SessionFeedback(
            status=SessionStatus.REJECTED,
            message=REJECTION_MESSAGES.get(result.reason, "Liveness check failed."),
            reason=result.reason,
        )

    def _handle_unverified(self, result: Unverified) -> SessionFeedback:
        try:
            capture = self.visitors.record(result.embedding, result.frame)
        except VisitorCaptureError:
            logger.exception(
                "Visitor capture failed", extra={"event": "visitor_capture", "status": "failure"}
            )
            return SessionFeedback(
                status=SessionStatus.ERROR,
                message="Could not save the visitor capture.",
                reason=result.reason,
            )
        if capture is None:
            return SessionFeedback(status=SessionStatus.NO_MATCH, reason=result.reason)
        return SessionFeedback(
            status=SessionStatus.VISITOR_CAPTURED,
            message="Visitor captured.",
            reason=result.reason,
        )

    def _record_attendance(self, result: Verified) -> SessionFeedback:
        try:
            decision = self.recorder.record(result.employee_id, face_confidence=result.confidence)
        except AttendancePersistenceError:
            # Re-arm so the employee is not locked out; the next cycle retries.
            self.locked_employee = None
            logger.exception(
                "Attendance write failed",
                extra={
                    "event": "attendance_record",
                    "status": "failure",
                    "tenant_id": self.tenant_id,
                    "employee_id": result.employee_id,
                },
            )
            return SessionFeedback(
                status=SessionStatus.ERROR,
                message="Attendance could not be saved. Please try again.",
                employee_id=result.employee_id,
            )
        return SessionFeedback(
            status=SessionStatus.VERIFIED,
            message=f"Clocked {decision.entry.value}.",
            employee_id=result.employee_id,
            decision=decision,
        )


__all__ = [
    "CancellationToken",
    "RecognitionSession",
    "SessionFeedback",
    "SessionStatus",
]
