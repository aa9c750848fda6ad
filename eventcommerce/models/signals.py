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
import logging

from django.db.models.signals import post_delete, post_save, pre_save
from django.dispatch import receiver

from eventcommerce.accounting.registration import process_registration_pre_save
from eventcommerce.cache.batch import on_batch_collection_change, on_batch_payment_change
from eventcommerce.models.batch import BatchAdminPayment, BatchCollection
from eventcommerce.models.registration import Registration

log = logging.getLogger(__name__)


# Registration signals
@receiver(pre_save, sender=Registration)
def pre_save_registration(sender, instance, **kwargs):
    process_registration_pre_save(instance)


# BatchCollection signals
@receiver(post_save, sender=BatchCollection)
def post_save_batch_collection(sender, instance, **kwargs):
    on_batch_collection_change(instance)


@receiver(post_delete, sender=BatchCollection)
def post_delete_batch_collection(sender, instance, **kwargs):
    on_batch_collection_change(instance)


# BatchAdminPayment signals
@receiver(post_save, sender=BatchAdminPayment)
def post_save_batch_payment(sender, instance, **kwargs):
    on_batch_payment_change(instance)


@receiver(post_delete, sender=BatchAdminPayment)
def post_delete_batch_payment(sender, instance, **kwargs):
    on_batch_payment_change(instance)
