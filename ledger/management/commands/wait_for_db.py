import time

from django.core.management.base import BaseCommand, CommandError
from django.db import connections
from django.db.utils import OperationalError


class Command(BaseCommand):
    help = "Waits for the database to accept connections before workers start"

    def add_arguments(self, parser):
        parser.add_argument(
            "--timeout",
            type=int,
            default=60,
            help="Seconds to wait before giving up (default: 60).",
        )
        parser.add_argument(
            "--interval",
            type=float,
            default=1.0,
            help="Seconds between attempts (default: 1).",
        )
        parser.add_argument("--database", default="default")

    def handle(self, *args, **options):
        alias = options["database"]
        deadline = time.monotonic() + options["timeout"]

        self.stdout.write(f"Waiting for database '{alias}'...")
        while True:
            try:
                connections[alias].ensure_connection()
                break
            except OperationalError:
                if time.monotonic() >= deadline:
                    raise CommandError(
                        f"Database '{alias}' unavailable after {options['timeout']}s."
                    )
                self.stdout.write(
                    self.style.WARNING(
                        f"Database unavailable, retrying in {options['interval']}s..."
                    )
                )
                time.sleep(options["interval"])

        self.stdout.write(self.style.SUCCESS("Database available!"))
