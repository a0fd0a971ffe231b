# claims/management/commands/seed_campaign.py
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from claims.models import Campaign


class Command(BaseCommand):
    help = "Create the default campaign if no campaign exists yet."

    def add_arguments(self, parser):
        parser.add_argument("--name", default="Student Night")
        parser.add_argument("--free-item", default="Free Shot")
        parser.add_argument("--hours", type=int, default=6, help="How long the campaign runs from now.")

    def handle(self, *args, **options):
        existing = Campaign.objects.order_by("id").first()
        if existing:
            self.stdout.write(f"Campaign already present: #{existing.id} {existing.name}")
            return

        now = timezone.now()
        campaign = Campaign.objects.create(
            name=options["name"],
            free_item=options["free_item"],
            start_time=now - timedelta(hours=1),
            end_time=now + timedelta(hours=options["hours"]),
        )
        self.stdout.write(self.style.SUCCESS(f"Created campaign #{campaign.id} {campaign.name}"))
