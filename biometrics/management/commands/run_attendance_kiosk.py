"""Run the face attendance kiosk against a local camera."""

from __future__ import annotations

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from biometrics.camera import WebcamFrameSource
from biometrics.detection import DeepFaceDetector, MediaPipeLandmarkTracker
from biometrics.exceptions import BiometricsError
from biometrics.session import (
    CancellationToken,
    RecognitionSession,
    SessionFeedback,
    SessionStatus,
)


class Command(BaseCommand):
    help = (
        "Start the attendance kiosk loop: identify faces from the camera, record "
        "clock-in/clock-out events for verified employees and capture visitors."
    )

    def add_arguments(self, parser):
        parser.add_argument("--tenant", required=True, help="Tenant whose employees are scanned.")
        parser.add_argument(
            "--camera",
            default=None,
            help="Camera index or stream URL (defaults to RECOGNITION_CAMERA_SOURCE).",
        )
        parser.add_argument(
            "--max-cycles",
            type=int,
            default=None,
            help="Stop after this many identification cycles.",
        )

    def _report(self, feedback: SessionFeedback) -> None:
        if feedback.status in (SessionStatus.NO_FACE, SessionStatus.NO_MATCH):
            return
        line = f"[{feedback.status.value}] {feedback.message}".rstrip()
        if feedback.employee_id:
            line = f"{line} ({feedback.employee_id})"
        if feedback.status == SessionStatus.VERIFIED:
            self.stdout.write(self.style.SUCCESS(line))
        elif feedback.status in (SessionStatus.ERROR, SessionStatus.OVERRIDE_REQUESTED):
            self.stderr.write(self.style.ERROR(line))
        else:
            self.stdout.write(line)

    def handle(self, *args, **options):
        camera = options["camera"]
        if camera is None:
            camera = getattr(settings, "RECOGNITION_CAMERA_SOURCE", 0)
        if isinstance(camera, str) and camera.isdigit():
            camera = int(camera)

        token = CancellationToken()
        tracker = MediaPipeLandmarkTracker()
        try:
            with WebcamFrameSource(src=camera) as frame_source:
                session = RecognitionSession(
                    options["tenant"],
                    frame_source,
                    detector=DeepFaceDetector(),
                    tracker=tracker,
                    on_feedback=self._report,
                )
                self.stdout.write(self.style.NOTICE("Kiosk running; press Ctrl+C to stop."))
                try:
                    cycles = session.run(token, max_cycles=options["max_cycles"])
                except KeyboardInterrupt:
                    token.cancel()
                    cycles = None
        except BiometricsError as exc:
            raise CommandError(str(exc)) from exc
        finally:
            tracker.close()

        if cycles is None:
            self.stdout.write(self.style.SUCCESS("Kiosk stopped."))
        else:
            self.stdout.write(self.style.SUCCESS(f"Kiosk stopped after {cycles} cycles."))
