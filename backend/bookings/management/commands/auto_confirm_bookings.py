from django.core.management.base import BaseCommand

from services.booking_lifecycle import auto_confirm_overdue_bookings


class Command(BaseCommand):
    help = "Confirm overdue completion requests on the client's behalf and settle the bookings."

    def handle(self, *args, **options):
        completed = auto_confirm_overdue_bookings()

        self.stdout.write(
            self.style.SUCCESS(f"Auto-confirmed {completed} booking(s).")
        )
