"""Enroll an employee's face from the kiosk camera."""

from __future__ import annotations

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from biometrics.camera import WebcamFrameSource
from biometrics.config import RecognitionConfig
from biometrics.descriptor_store import DescriptorStore
from biometrics.detection import DeepFaceDetector
from biometrics.enrollment import EnrollmentWorkflow
from biometrics.exceptions import BiometricsError, EnrollmentError


class Command(BaseCommand):
    help = (
        "Capture several samples of an employee's face and store their average as "
        "the employee's descriptor, replacing any earlier enrollment."
    )

    def add_arguments(self, parser):
        parser.add_argument("--tenant", required=True)
        parser.add_argument("--employee", required=True, help="Employee identifier to enroll.")
        parser.add_argument(
            "--camera",
            default=None,
            help="Camera index or stream URL (defaults to RECOGNITION_CAMERA_SOURCE).",
        )

    def handle(self, *args, **options):
        camera = options["camera"]
        if camera is None:
            camera = getattr(settings, "RECOGNITION_CAMERA_SOURCE", 0)
        if isinstance(camera, str) and camera.isdigit():
            camera = int(camera)

        config = RecognitionConfig.from_settings()
        store = DescriptorStore(config.matching.descriptor_length)
        store.init(options["tenant"])
        workflow = EnrollmentWorkflow(DeepFaceDetector(), store, config.enrollment)

        self.stdout.write("Look at the camera and hold still...")
        try:
            with WebcamFrameSource(src=camera) as frame_source:
                outcome = workflow.enroll(options["employee"], frame_source)
        except EnrollmentError as exc:
            raise CommandError(f"{exc} Please try again.") from exc
        except BiometricsError as exc:
            raise CommandError(str(exc)) from exc
        finally:
            store.clear()

        self.stdout.write(
            self.style.SUCCESS(
                f"Enrolled {outcome.employee_id} from {outcome.captures} of "
                f"{outcome.attempts} captures."
            )
        )
