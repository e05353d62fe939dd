from django.core.management.base import BaseCommand

from crm.services.offers import expire_past_offers


class Command(BaseCommand):
    help = "Mark offers whose end date has passed as expired."

    def handle(self, *args, **options):
        count = expire_past_offers()
        self.stdout.write(self.style.SUCCESS(f"Expired {count} offers"))
