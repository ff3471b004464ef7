from __future__ import annotations

from django.core.management.base import BaseCommand

from promotions.services import delete_expired_promotions


class Command(BaseCommand):
    help = "Delete active promotions whose end date is before the start of today."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Only print how many promotions would be deleted; do not change DB.",
        )

    def handle(self, *args, **options):
        dry_run: bool = bool(options.get("dry_run"))
        count = delete_expired_promotions(dry_run=dry_run)
        if dry_run:
            self.stdout.write(self.style.WARNING(f"dry-run: would delete expired promotions: {count}"))
            return
        self.stdout.write(self.style.SUCCESS(f"Deleted expired promotions: {count}"))
