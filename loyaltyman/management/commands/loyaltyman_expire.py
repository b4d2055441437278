"""Management command to run the expiry sweep."""

from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_datetime

from loyaltyman.exceptions import LoyaltyError
from loyaltyman.services.expiry import ExpiryService


class Command(BaseCommand):
    help = "Expire earned points, redemptions and awarded rewards past their expiry date"

    def add_arguments(self, parser):
        parser.add_argument(
            "--member",
            default=None,
            help="Expire points for this member id only",
        )
        parser.add_argument(
            "--at",
            default=None,
            help="Run as of this ISO datetime instead of now",
        )
        parser.add_argument(
            "--points-only",
            action="store_true",
            help="Skip redemptions and awarded rewards",
        )

    def handle(self, *args, **options):
        at = None
        if options["at"]:
            at = parse_datetime(options["at"])
            if at is None:
                raise CommandError(f"Invalid --at value: {options['at']}")

        try:
            summary = ExpiryService.run(
                at=at,
                member_code=options["member"],
                include_rewards=not options["points_only"],
            )
        except LoyaltyError as e:
            raise CommandError(e.message) from e

        self.stdout.write(
            self.style.SUCCESS(
                f"Expired {summary.points_expired} points from "
                f"{summary.transactions_expired} earnings, "
                f"{summary.redemptions_expired} redemptions and "
                f"{summary.rewards_expired} earned rewards."
            )
        )
