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
from functools import partial
from typing import TYPE_CHECKING, Any

from django.conf import settings as conf_settings
from django.core.cache import cache as default_cache
from django.db import transaction

from eventcommerce.models.batch import BatchAdminPayment, BatchCollection, BatchCollectionStatus, BatchPaymentStatus
from eventcommerce.models.cohort import CohortMembership
from eventcommerce.models.registration import RegistrationMode

if TYPE_CHECKING:
    from django.core.cache.backends.base import BaseCache

logger = logging.getLogger(__name__)


def registration_mode_key(event_id: int, cohort_id: int) -> str:
    return f"batch_registration_mode_{event_id}_{cohort_id}"


def collection_status_key(event_id: int, cohort_id: int) -> str:
    return f"batch_collection_status_{event_id}_{cohort_id}"


def event_collections_key(event_id: int) -> str:
    return f"event_batch_collections_{event_id}"


def clear_batch_collection_cache(event_id: int, cohort_id: int, cache_handle: BaseCache | None = None) -> None:
    """Drop every cached value derived from the collection of a cohort for an event."""
    cache_handle = cache_handle or default_cache
    cache_handle.delete_many(
        [
            registration_mode_key(event_id, cohort_id),
            collection_status_key(event_id, cohort_id),
            event_collections_key(event_id),
        ],
    )
    logger.debug("Cleared batch collection cache for event %s cohort %s", event_id, cohort_id)


def update_registration_mode(event_id: int, cohort_id: int | None, using: str = "default") -> str:
    """Derive the registration mode of a cohort for an event from the store.

    Args:
        event_id: Event id
        cohort_id: Cohort of the prospective registrant, None when the user has none
        using: Database alias

    Returns:
        A ``RegistrationMode`` value

    """
    if cohort_id is None:
        return RegistrationMode.INDIVIDUAL

    collection = BatchCollection.objects.using(using).filter(event_id=event_id, cohort_id=cohort_id).first()
    if not collection:
        return RegistrationMode.INDIVIDUAL

    if collection.is_approved and collection.is_target_met:
        return RegistrationMode.BATCH_AUTO_REGISTERED

    if collection.status == BatchCollectionStatus.ACTIVE:
        return RegistrationMode.BATCH_PENDING

    return RegistrationMode.INDIVIDUAL


def get_registration_mode(
    event_id: int,
    cohort_id: int | None,
    *,
    cache_handle: BaseCache | None = None,
    using: str = "default",
    reset_cache: bool = False,
) -> str:
    """Get the registration mode of a cohort for an event, with caching support."""
    if cohort_id is None:
        return RegistrationMode.INDIVIDUAL

    cache_handle = cache_handle or default_cache
    cache_key = registration_mode_key(event_id, cohort_id)

    mode = None if reset_cache else cache_handle.get(cache_key)
    if mode is None:
        mode = str(update_registration_mode(event_id, cohort_id, using))
        timeout = getattr(conf_settings, "EVENTCOMMERCE_REGISTRATION_MODE_TIMEOUT", 60 * 10)
        cache_handle.set(cache_key, mode, timeout=timeout)

    return mode


def active_member_count(cohort_id: int, using: str = "default") -> int:
    return (
        CohortMembership.objects.using(using).filter(cohort_id=cohort_id, is_active=True, user__is_active=True).count()
    )


def collection_as_dict(collection: BatchCollection, using: str = "default") -> dict[str, Any]:
    """Serialize a collection with its progress and completed payments."""
    payments = list(
        collection.payments.using(using)
        .filter(payment_status=BatchPaymentStatus.COMPLETED)
        .order_by("-payment_date")
        .values("id", "paid_by_id", "amount", "transaction_id", "payment_date"),
    )
    return {
        "id": collection.id,
        "event_id": collection.event_id,
        "cohort_id": collection.cohort_id,
        "description": collection.description,
        "target_amount": collection.target_amount,
        "collected_amount": collection.collected_amount,
        "remaining_amount": collection.remaining_amount(),
        "progress_percentage": collection.progress_percentage(),
        "is_target_met": collection.is_target_met,
        "is_approved": collection.is_approved,
        "approved_by_id": collection.approved_by_id,
        "approved_at": collection.approved_at,
        "status": collection.status,
        "payments": payments,
        "payment_count": len(payments),
    }


def update_collection_status(event_id: int, cohort_id: int, using: str = "default") -> dict[str, Any] | None:
    """Build the status of the collection of a cohort for an event, None if there is none."""
    collection = BatchCollection.objects.using(using).filter(event_id=event_id, cohort_id=cohort_id).first()
    if not collection:
        return None

    status = collection_as_dict(collection, using)
    status["member_count"] = active_member_count(cohort_id, using)
    status["can_register"] = collection.is_approved and collection.is_target_met
    return status


def get_collection_status(
    event_id: int,
    cohort_id: int,
    *,
    cache_handle: BaseCache | None = None,
    using: str = "default",
    reset_cache: bool = False,
) -> dict[str, Any] | None:
    """Get the collection status of a cohort for an event, with caching support.

    Missing collections are not cached, so a new one shows up at once.
    """
    cache_handle = cache_handle or default_cache
    cache_key = collection_status_key(event_id, cohort_id)

    status = None if reset_cache else cache_handle.get(cache_key)
    if status is None:
        status = update_collection_status(event_id, cohort_id, using)
        if status is not None:
            timeout = getattr(conf_settings, "EVENTCOMMERCE_COLLECTION_STATUS_TIMEOUT", 60 * 15)
            cache_handle.set(cache_key, status, timeout=timeout)

    return status


def get_event_collections(
    event_id: int,
    *,
    cache_handle: BaseCache | None = None,
    using: str = "default",
    reset_cache: bool = False,
) -> list[dict[str, Any]]:
    """Get every collection of an event with its progress, newest cohorts first."""
    cache_handle = cache_handle or default_cache
    cache_key = event_collections_key(event_id)

    collections = None if reset_cache else cache_handle.get(cache_key)
    if collections is None:
        que = BatchCollection.objects.using(using).filter(event_id=event_id).select_related("cohort")
        collections = [collection_as_dict(el, using) for el in que.order_by("-cohort__year", "-created")]
        timeout = getattr(conf_settings, "EVENTCOMMERCE_COLLECTION_STATUS_TIMEOUT", 60 * 15)
        cache_handle.set(cache_key, collections, timeout=timeout)

    return collections


def on_batch_collection_change(instance: BatchCollection) -> None:
    """Clear the cached views of a saved or deleted collection, now and after commit."""
    clear_batch_collection_cache(instance.event_id, instance.cohort_id)
    transaction.on_commit(partial(clear_batch_collection_cache, instance.event_id, instance.cohort_id))


def on_batch_payment_change(instance: BatchAdminPayment) -> None:
    collection = BatchCollection.objects.filter(pk=instance.collection_id).first()
    if collection:
        on_batch_collection_change(collection)
