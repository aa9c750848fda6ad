# LarpManager - https://larpmanager.com
# Copyright (C) 2025 Scanagatta Mauro
#
# This file is part of LarpManager and is dual-licensed:
#
# 1. Under the terms of the GNU Affero General Public License (AGPL) version 3,
#    as published by the Free Software Foundation. You may use, modify, and
#    distribute this file under those terms.
#
# 2. Under a commercial license, allowing use in closed-source or proprietary
#    environments without the obligations of the AGPL.
#
# If you have obtained this file under the AGPL, and you make it available over
# a network, you must also make the complete source code available under the same license.
#
# For more information or to purchase a commercial license, contact:
# commercial@larpmanager.com
#
# SPDX-License-Identifier: AGPL-3.0-or-later OR Proprietary
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Protocol

from django.conf import settings as conf_settings
from django.core.mail import EmailMultiAlternatives
from django.dispatch import Signal, receiver
from django.utils.translation import gettext as _

from eventcommerce.accounting.base import format_amount

logger = logging.getLogger(__name__)

batch_target_met = Signal()

batch_collection_approved = Signal()


@dataclass(frozen=True)
class BatchNotification:
    event_id: int
    cohort_id: int
    collected_amount: Decimal
    target_amount: Decimal
    registered_count: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class Notifier(Protocol):
    def target_met(self, notification: BatchNotification) -> None: ...

    def collection_approved(self, notification: BatchNotification) -> None: ...


class SignalNotifier:
    """Fire and forget dispatch of batch collection transitions through Django signals.

    Called once the database transaction is committed: a failing receiver is
    logged and never propagates to the caller.
    """

    def _dispatch(self, signal: Signal, notification: BatchNotification) -> None:
        for receiver_func, response in signal.send_robust(sender=self.__class__, notification=notification):
            if isinstance(response, Exception):
                logger.error(
                    "Notification receiver %s failed for event %s cohort %s: %s",
                    getattr(receiver_func, "__name__", receiver_func),
                    notification.event_id,
                    notification.cohort_id,
                    response,
                    exc_info=response,
                )

    def target_met(self, notification: BatchNotification) -> None:
        self._dispatch(batch_target_met, notification)

    def collection_approved(self, notification: BatchNotification) -> None:
        self._dispatch(batch_collection_approved, notification)


def send_approver_mail(subject: str, body: str) -> int:
    """Mail the configured approvers, returning the number of messages sent."""
    recipients = list(getattr(conf_settings, "EVENTCOMMERCE_APPROVER_EMAILS", []))
    if not recipients:
        logger.debug("No approver emails configured, skipping: %s", subject)
        return 0

    logger.info("Sending email to: %s", recipients)
    logger.info("Subject: %s", subject)
    logger.debug("Body: %s", body)

    email = EmailMultiAlternatives(subject, body, conf_settings.DEFAULT_FROM_EMAIL, recipients)
    return email.send()


@receiver(batch_target_met)
def notify_target_met(sender, notification: BatchNotification, **kwargs) -> None:
    subject = _("Batch collection target reached")
    body = _(
        "The batch collection of cohort %(cohort)s for event %(event)s collected %(collected)s "
        "out of a target of %(target)s and is waiting for approval.",
    ) % {
        "cohort": notification.cohort_id,
        "event": notification.event_id,
        "collected": format_amount(notification.collected_amount),
        "target": format_amount(notification.target_amount),
    }
    send_approver_mail(subject, body)


@receiver(batch_collection_approved)
def notify_collection_approved(sender, notification: BatchNotification, **kwargs) -> None:
    subject = _("Batch collection approved")
    body = _(
        "The batch collection of cohort %(cohort)s for event %(event)s was approved: "
        "%(count)d members have been registered.",
    ) % {
        "cohort": notification.cohort_id,
        "event": notification.event_id,
        "count": notification.registered_count,
    }
    send_approver_mail(subject, body)
