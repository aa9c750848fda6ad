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
"""Cohort pooled funding of event registrations.

A batch collection ties one cohort to one event. Cohort administrators pay
into it; once the collected amount reaches the target an approver can
approve it, which registers every active cohort member at once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from functools import partial
from typing import TYPE_CHECKING, Any

from django.core.cache import cache as default_cache
from django.db import IntegrityError, transaction
from django.db.models import F, Sum
from django.utils import timezone
from django.utils.translation import gettext as _

from eventcommerce.accounting.base import PaymentConfirmation, quantize_amount
from eventcommerce.cache.batch import clear_batch_collection_cache, get_collection_status, get_event_collections
from eventcommerce.cache.batch import get_registration_mode as get_cached_registration_mode
from eventcommerce.mail.batch import BatchNotification, Notifier, SignalNotifier
from eventcommerce.models.batch import BatchAdminPayment, BatchCollection, BatchCollectionStatus, BatchPaymentStatus
from eventcommerce.models.cohort import Cohort
from eventcommerce.models.event import Event, EventStatus
from eventcommerce.models.registration import PaymentStatus, Registration, RegistrationMode, RegistrationStatus
from eventcommerce.utils.cohort import CohortProvider, ModelCohortProvider
from eventcommerce.utils.exceptions import (
    ConsistencyViolation,
    FieldError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from eventcommerce.utils.registration import get_confirmed_count

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser
    from django.core.cache.backends.base import BaseCache

logger = logging.getLogger(__name__)

BULK_REGISTRATION_NOTE = "Auto-registered via batch collection approval"


@dataclass(frozen=True)
class ApprovalResult:
    collection: BatchCollection
    registered_count: int
    skipped_count: int
    total_members: int


class BatchCollectionCoordinator:
    """Drives the lifecycle of batch collections.

    Args:
        cache: Cache holding registration modes and collection statuses
        cohorts: Provider of cohort members, administrators and approvers
        notifier: Receives target met and approval notifications after commit
        using: Database alias

    """

    def __init__(
        self,
        cache: BaseCache | None = None,
        cohorts: CohortProvider | None = None,
        notifier: Notifier | None = None,
        using: str = "default",
    ) -> None:
        self.cache = cache or default_cache
        self.cohorts = cohorts or ModelCohortProvider(using)
        self.notifier = notifier or SignalNotifier()
        self.using = using

    def _clear_cache(self, event_id: int, cohort_id: int) -> None:
        """Invalidate now, and again once the transaction commits."""
        clear_batch_collection_cache(event_id, cohort_id, self.cache)
        transaction.on_commit(
            partial(clear_batch_collection_cache, event_id, cohort_id, self.cache),
            using=self.using,
        )

    def _get_collection(self, collection: BatchCollection | int, *, lock: bool = False) -> BatchCollection:
        pk = collection if isinstance(collection, int) else collection.pk
        que = BatchCollection.objects.using(self.using)
        if lock:
            que = que.select_for_update()
        try:
            return que.get(pk=pk)
        except BatchCollection.DoesNotExist as err:
            raise NotFoundError(_("Batch collection not found")) from err

    @staticmethod
    def _notification(collection: BatchCollection, registered_count: int = 0) -> BatchNotification:
        return BatchNotification(
            event_id=collection.event_id,
            cohort_id=collection.cohort_id,
            collected_amount=quantize_amount(collection.collected_amount),
            target_amount=quantize_amount(collection.target_amount),
            registered_count=registered_count,
        )

    def create_collection(
        self,
        event: Event,
        cohort: Cohort,
        target_amount: Decimal,
        created_by: AbstractBaseUser | None = None,
        description: str = "",
        now: datetime | None = None,
    ) -> BatchCollection:
        """Open a batch collection of a cohort for an event.

        Raises:
            ValidationError: If the target is not positive
            StateConflictError: If the event is not open, its registrations are
                closed, a collection already exists or the cohort has no administrators

        """
        now = now or timezone.now()
        target_amount = quantize_amount(target_amount)
        if target_amount <= 0:
            raise ValidationError([FieldError(None, "target_amount", _("Target amount must be positive"))])

        if event.status not in EventStatus.get_open_statuses():
            raise StateConflictError(_("Cannot create batch collection for unpublished event"))

        if event.registration_end and now > event.registration_end:
            raise StateConflictError(_("Registration period has ended"))

        if BatchCollection.objects.using(self.using).filter(event_id=event.pk, cohort_id=cohort.pk).exists():
            raise StateConflictError(_("Batch collection already exists for this event and cohort"))

        if not self.cohorts.active_admin_ids(cohort.pk):
            raise StateConflictError(_("No active batch admins found for cohort %(cohort)s") % {"cohort": cohort})

        try:
            with transaction.atomic(using=self.using):
                collection = BatchCollection(
                    event=event,
                    cohort=cohort,
                    target_amount=target_amount,
                    description=description or f"Batch {cohort} collection for {event}",
                    created_by=created_by,
                )
                collection.save(using=self.using)
                self._clear_cache(event.pk, cohort.pk)
        except IntegrityError as err:
            raise StateConflictError(_("Batch collection already exists for this event and cohort")) from err

        logger.info(
            "Batch collection %s created: event %s cohort %s target %s",
            collection.pk,
            event.pk,
            cohort.pk,
            target_amount,
        )
        return collection

    def record_payment(self, collection: BatchCollection | int, payment: PaymentConfirmation) -> BatchAdminPayment:
        """Record a completed administrator payment towards a collection.

        The payment insert and the collected amount increment share one
        transaction holding the collection row lock; the target met flag is
        flipped with a compare-and-set so the crossing is detected exactly once.

        Raises:
            StateConflictError: If the collection is not active, the payer is not
                a cohort administrator or the transaction was already recorded

        """
        try:
            with transaction.atomic(using=self.using):
                locked = self._get_collection(collection, lock=True)
                if locked.status != BatchCollectionStatus.ACTIVE:
                    raise StateConflictError(_("Batch collection is not active"))

                if not self.cohorts.is_cohort_admin(payment.payer_id, locked.cohort_id):
                    raise StateConflictError(_("User is not authorized as batch admin for this cohort"))

                admin_payment = BatchAdminPayment(
                    collection=locked,
                    paid_by_id=payment.payer_id,
                    amount=payment.amount,
                    transaction_id=payment.transaction_id,
                    payment_status=BatchPaymentStatus.COMPLETED,
                )
                admin_payment.save(using=self.using)

                que = BatchCollection.objects.using(self.using).filter(pk=locked.pk)
                que.update(collected_amount=F("collected_amount") + payment.amount, updated=timezone.now())
                locked.refresh_from_db(using=self.using)

                crossed = False
                if locked.collected_amount >= locked.target_amount:
                    crossed = bool(que.filter(is_target_met=False).update(is_target_met=True))

                self._clear_cache(locked.event_id, locked.cohort_id)
                if crossed:
                    logger.info("Batch collection %s met its target of %s", locked.pk, locked.target_amount)
                    self.handle_target_met(locked.pk)
        except IntegrityError as err:
            raise StateConflictError(_("Payment transaction already recorded")) from err

        logger.info(
            "Batch payment %s of %s by user %s on collection %s, collected %s",
            payment.transaction_id,
            payment.amount,
            payment.payer_id,
            locked.pk,
            locked.collected_amount,
        )
        return admin_payment

    def handle_target_met(self, collection: BatchCollection | int, now: datetime | None = None) -> bool:
        """Send the target met notification of a collection, at most once.

        The notification slot is claimed with a compare-and-set on
        ``target_met_notified_at``; the dispatch runs after commit.

        Returns:
            True if this call claimed the notification

        """
        pk = collection if isinstance(collection, int) else collection.pk
        now = now or timezone.now()
        with transaction.atomic(using=self.using):
            claimed = (
                BatchCollection.objects.using(self.using)
                .filter(pk=pk, is_target_met=True, is_approved=False, target_met_notified_at__isnull=True)
                .update(target_met_notified_at=now)
            )
            if not claimed:
                return False

            notification = self._notification(self._get_collection(pk))
            transaction.on_commit(partial(self.notifier.target_met, notification), using=self.using)

        logger.info("Target met notification queued for collection %s", pk)
        return True

    def approve(self, collection: BatchCollection | int, approved_by: AbstractBaseUser) -> ApprovalResult:
        """Approve a funded collection and register every active cohort member.

        The approval flag flip and the bulk registration are a single
        transaction: either every eligible member is registered together with
        the approval, or nothing changes. Members already registered are skipped.

        Raises:
            StateConflictError: If the approver is not authorized, the target is not
                met, the collection was already approved or the event lacks capacity

        """
        if not self.cohorts.is_approver(approved_by.pk):
            raise StateConflictError(_("User is not authorized to approve batch collections"))

        now = timezone.now()
        with transaction.atomic(using=self.using):
            current = self._get_collection(collection)
            event = Event.objects.using(self.using).select_for_update().get(pk=current.event_id)
            locked = self._get_collection(current.pk, lock=True)

            if locked.status == BatchCollectionStatus.CANCELLED:
                raise StateConflictError(_("Batch collection is cancelled"))
            if not locked.is_target_met:
                raise StateConflictError(_("Cannot approve collection - target amount not met"))

            flipped = (
                BatchCollection.objects.using(self.using)
                .filter(pk=locked.pk, is_approved=False, is_target_met=True)
                .update(
                    is_approved=True,
                    approved_by=approved_by,
                    approved_at=now,
                    status=BatchCollectionStatus.COMPLETED,
                    updated=now,
                )
            )
            if not flipped:
                raise StateConflictError(_("Collection already approved"))

            member_ids = self.cohorts.active_member_ids(locked.cohort_id)
            registered = set(
                Registration.objects.using(self.using)
                .filter(event_id=event.pk, user_id__in=member_ids)
                .values_list("user_id", flat=True),
            )
            to_register = [user_id for user_id in member_ids if user_id not in registered]

            if not event.is_unlimited():
                confirmed = get_confirmed_count(event, self.using)
                if confirmed + len(to_register) > event.capacity:
                    raise StateConflictError(
                        _("Event capacity exceeded: %(count)d members to register, %(free)d seats left")
                        % {"count": len(to_register), "free": max(0, event.capacity - confirmed)},
                    )

            fee = quantize_amount(event.registration_fee)
            Registration.objects.using(self.using).bulk_create(
                [
                    Registration(
                        event_id=event.pk,
                        user_id=user_id,
                        status=RegistrationStatus.CONFIRMED,
                        payment_status=PaymentStatus.COMPLETED,
                        mode=RegistrationMode.BATCH_AUTO_REGISTERED,
                        registration_fee_paid=fee,
                        total_amount=fee,
                        notes=BULK_REGISTRATION_NOTE,
                    )
                    for user_id in to_register
                ],
            )

            locked.refresh_from_db(using=self.using)
            self._clear_cache(locked.event_id, locked.cohort_id)
            notification = self._notification(locked, len(to_register))
            transaction.on_commit(partial(self.notifier.collection_approved, notification), using=self.using)

        logger.info(
            "Batch collection %s approved by %s: %s members registered, %s skipped",
            locked.pk,
            approved_by.pk,
            len(to_register),
            len(registered),
        )
        return ApprovalResult(locked, len(to_register), len(registered), len(member_ids))

    def cancel_collection(self, collection: BatchCollection | int, cancelled_by: AbstractBaseUser) -> BatchCollection:
        """Abort an active collection. Recorded payments are kept."""
        with transaction.atomic(using=self.using):
            locked = self._get_collection(collection, lock=True)
            if not self.cohorts.is_cohort_admin(cancelled_by.pk, locked.cohort_id):
                raise StateConflictError(_("User is not authorized to cancel this batch collection"))
            if locked.status != BatchCollectionStatus.ACTIVE:
                raise StateConflictError(_("Only active batch collections can be cancelled"))

            locked.status = BatchCollectionStatus.CANCELLED
            locked.save(using=self.using, update_fields=["status", "updated"])
            self._clear_cache(locked.event_id, locked.cohort_id)

        logger.info("Batch collection %s cancelled by %s", locked.pk, cancelled_by.pk)
        return locked

    def get_registration_mode(self, event: Event, user: AbstractBaseUser) -> str:
        """Return how a prospective registrant joins the event, see ``RegistrationMode``."""
        cohort_id = self.cohorts.cohort_of(user.pk)
        return get_cached_registration_mode(event.pk, cohort_id, cache_handle=self.cache, using=self.using)

    def collection_status(self, event: Event, cohort: Cohort) -> dict[str, Any] | None:
        return get_collection_status(event.pk, cohort.pk, cache_handle=self.cache, using=self.using)

    def event_collections(self, event: Event) -> list[dict[str, Any]]:
        return get_event_collections(event.pk, cache_handle=self.cache, using=self.using)

    def verify_collected_amount(self, collection: BatchCollection | int) -> None:
        """Check the collected amount against the completed payments of the collection.

        Raises:
            ConsistencyViolation: If the aggregate or the target flag disagree with the payments

        """
        collection = self._get_collection(collection)
        paid = BatchAdminPayment.objects.using(self.using).filter(
            collection_id=collection.pk,
            payment_status=BatchPaymentStatus.COMPLETED,
        )
        total = quantize_amount(paid.aggregate(total=Sum("amount"))["total"])
        collected = quantize_amount(collection.collected_amount)
        if total != collected:
            msg = f"batch collection {collection.pk}: collected {collected} but completed payments sum to {total}"
            raise ConsistencyViolation(msg)

        if collection.is_target_met != (collected >= quantize_amount(collection.target_amount)):
            msg = f"batch collection {collection.pk}: target flag {collection.is_target_met} with {collected} collected"
            raise ConsistencyViolation(msg)
