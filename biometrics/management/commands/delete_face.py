"""Remove an employee's enrolled face descriptor."""

from django.core.management.base import BaseCommand, CommandError

from biometrics.config import RecognitionConfig
from biometrics.descriptor_store import DescriptorStore
from biometrics.exceptions import DescriptorStoreError


class Command(BaseCommand):
    help = "Delete the face enrollment of an employee."

    def add_arguments(self, parser):
        parser.add_argument("--tenant", required=True)
        parser.add_argument("--employee", required=True)

    def handle(self, *args, **options):
        store = DescriptorStore(RecognitionConfig.from_settings().matching.descriptor_length)
        try:
            store.init(options["tenant"])
            deleted = store.delete(options["employee"])
        except DescriptorStoreError as exc:
            raise CommandError(str(exc)) from exc
        finally:
            store.clear()

        if not deleted:
            raise CommandError(f"No face enrollment found for {options['employee']}.")
        self.stdout.write(self.style.SUCCESS(f"Deleted face enrollment for {options['employee']}."))
