# cf_core/resources/management/commands/seed_resources.py
from django.core.management.base import BaseCommand

from cf_core.resources.seeding import seed_pool
from cf_core.resources.store import get_record_store


class Command(BaseCommand):
    help = "Seed nurses, doctors and beds into the configured record store (CAREFLOW_DATA_MODE)."

    def add_arguments(self, parser):
        parser.add_argument("--nurses", type=int, default=20)
        parser.add_argument("--doctors", type=int, default=15)
        parser.add_argument("--beds", type=int, default=50)
        parser.add_argument("--reset", action="store_true", help="Delete existing resources first.")

    def handle(self, *args, **options):
        store = get_record_store()
        count = seed_pool(
            store,
            nurses=options["nurses"],
            doctors=options["doctors"],
            beds=options["beds"],
            reset=options["reset"],
        )
        self.stdout.write(self.style.SUCCESS(f"Seeded {count} resources into the {store.mode} store."))
