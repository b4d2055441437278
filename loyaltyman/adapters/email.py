"""Email NotificationBackend adapter (Django mail framework)."""

from django.core.mail import send_mail
from django.template.loader import render_to_string

from loyaltyman.conf import loyaltyman_settings
from loyaltyman.protocols.notifications import Notification


class EmailNotificationBackend:
    """
    Adapter that implements NotificationBackend with django.core.mail.

    Templates (override them in the host project):
        loyaltyman/email/<template_kind>_subject.txt
        loyaltyman/email/<template_kind>_body.txt
    """

    template_dir = "loyaltyman/email"

    def send(self, notification: Notification) -> None:
        context = {
            "member_code": notification.member_code,
            **notification.payload,
        }
        subject = render_to_string(
            f"{self.template_dir}/{notification.template_kind}_subject.txt", context
        )
        body = render_to_string(
            f"{self.template_dir}/{notification.template_kind}_body.txt", context
        )
        send_mail(
            subject=" ".join(subject.split()),
            message=body,
            from_email=loyaltyman_settings.DEFAULT_FROM_EMAIL or None,
            recipient_list=[notification.recipient_address],
        )
