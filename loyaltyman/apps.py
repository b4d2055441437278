from django.apps import AppConfig


class LoyaltymanConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "loyaltyman"
    verbose_name = "Loyaltyman - Loyalty Program"

    def ready(self):
        # Connect notification receivers to the public signals
        from loyaltyman import notifications  # noqa: F401
