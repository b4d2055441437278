"""Post-commit signal emission."""

import logging

from django.db import transaction

from loyaltyman.models import Member

logger = logging.getLogger(__name__)


def send_on_commit(signal, member: Member, **kwargs) -> None:
    """
    Send `signal` once the current database transaction commits.

    Nothing is sent if the transaction rolls back. Receiver errors are
    logged, never raised.
    """

    def _send():
        for receiver, response in signal.send_robust(sender=Member, member=member, **kwargs):
            if isinstance(response, Exception):
                logger.error(
                    "Receiver %r failed for member %s",
                    receiver,
                    member.code,
                    exc_info=response,
                )

    transaction.on_commit(_send)
