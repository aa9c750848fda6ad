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
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from django.db import transaction
from django.db.models import F, Sum
from django.utils.translation import gettext as _

from eventcommerce.accounting.base import PaymentConfirmation, check_payment_covers, quantize_amount
from eventcommerce.models.event import Event
from eventcommerce.models.merchandise import CartOrder, MerchandiseItem, StockStatus
from eventcommerce.models.registration import Registration, RegistrationStatus
from eventcommerce.utils.deadlines import can_modify, check_can_modify
from eventcommerce.utils.exceptions import FieldError, NotFoundError, StateConflictError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockCheck:
    available: bool
    reason: str = ""
    stock_status: str = StockStatus.UNLIMITED


@dataclass(frozen=True)
class CheckoutCheck:
    allowed: bool
    reasons: list[str] = field(default_factory=list)
    summary: dict[str, Any] | None = None

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons)


def validate_stock(item: MerchandiseItem, quantity: int, selected_size: str = "") -> StockCheck:
    """Check whether an item can be ordered in the given quantity and size.

    Args:
        item: Merchandise item
        quantity: Requested quantity
        selected_size: Requested size, must be one of the item sizes when it has any

    Returns:
        StockCheck with the first blocking reason and the current stock status

    """
    stock_status = item.get_stock_status(quantity)

    if not item.is_active:
        return StockCheck(False, _("Merchandise item is inactive"), stock_status)

    if item.has_sizes():
        if not selected_size:
            return StockCheck(False, _("Size selection is required for this item"), stock_status)
        if selected_size not in item.sizes:
            return StockCheck(False, _("Selected size is not available"), stock_status)

    if stock_status == StockStatus.INSUFFICIENT:
        return StockCheck(
            False,
            _("Insufficient stock. Only %(count)d items available") % {"count": item.stock_quantity},
            stock_status,
        )

    return StockCheck(True, "", stock_status)


def _check_cart_allowed(registration: Registration, event: Event, now: datetime | None) -> None:
    if not event.has_merchandise:
        raise StateConflictError(_("Merchandise not available for this event"))
    if registration.status != RegistrationStatus.CONFIRMED:
        raise StateConflictError(_("Registration must be confirmed to purchase merchandise"))
    check_can_modify(registration, event, now)


def _raise_stock_error(check: StockCheck) -> None:
    raise ValidationError([FieldError(None, "quantity", check.reason)], reason=check.reason)


def _other_lines_quantity(registration_id: int, item_id: int, exclude_pk: int | None, using: str) -> int:
    """Quantity of the item already held by the other cart lines of the registration."""
    que = CartOrder.objects.using(using).filter(registration_id=registration_id, item_id=item_id)
    if exclude_pk:
        que = que.exclude(pk=exclude_pk)
    return que.aggregate(total=Sum("quantity"))["total"] or 0


def add_to_cart(
    registration: Registration,
    item: MerchandiseItem,
    quantity: int = 1,
    selected_size: str = "",
    *,
    using: str = "default",
    now: datetime | None = None,
) -> CartOrder:
    """Put an item in the cart of a registration, merging with an existing line of the same size.

    Raises:
        ValidationError: If the quantity, size or stock is not valid
        StateConflictError: If the registration cannot buy merchandise right now

    """
    if quantity < 1:
        raise ValidationError([FieldError(None, "quantity", _("Quantity must be at least 1"))])

    if item.event_id != registration.event_id:
        raise NotFoundError(_("Merchandise item not found for this event"))

    event = Event.objects.using(using).get(pk=registration.event_id)
    selected_size = selected_size or ""

    with transaction.atomic(using=using):
        locked = Registration.objects.using(using).select_for_update().get(pk=registration.pk)
        _check_cart_allowed(locked, event, now)
        item = MerchandiseItem.objects.using(using).get(pk=item.pk)

        line = (
            CartOrder.objects.using(using)
            .select_for_update()
            .filter(registration=locked, item=item, selected_size=selected_size)
            .first()
        )
        new_quantity = quantity + (line.quantity if line else 0)
        # stock is shared by every size of the item
        held = _other_lines_quantity(locked.pk, item.pk, line.pk if line else None, using)

        check = validate_stock(item, new_quantity + held, selected_size)
        if not check.available:
            _raise_stock_error(check)

        unit_price = quantize_amount(item.price)
        if not line:
            line = CartOrder(registration=locked, item=item, selected_size=selected_size)
        line.quantity = new_quantity
        line.unit_price = unit_price
        line.total_price = quantize_amount(unit_price * new_quantity)
        line.save(using=using)

    logger.info("Cart of registration %s: %s x%s", registration.pk, item.pk, new_quantity)
    return line


def _get_cart_line(cart_order: CartOrder | int, using: str) -> CartOrder:
    pk = cart_order if isinstance(cart_order, int) else cart_order.pk
    try:
        return CartOrder.objects.using(using).select_related("item", "registration").get(pk=pk)
    except CartOrder.DoesNotExist as err:
        raise NotFoundError(_("Cart item not found")) from err


def update_cart_quantity(
    cart_order: CartOrder | int,
    quantity: int,
    *,
    using: str = "default",
    now: datetime | None = None,
) -> CartOrder | None:
    """Change the quantity of a cart line; zero removes the line.

    Returns:
        The updated line, or None when it was removed

    """
    if quantity < 0:
        raise ValidationError([FieldError(None, "quantity", _("Quantity cannot be negative"))])

    line = _get_cart_line(cart_order, using)
    if quantity == 0:
        remove_from_cart(line, using=using, now=now)
        return None

    event = Event.objects.using(using).get(pk=line.registration.event_id)
    with transaction.atomic(using=using):
        locked = Registration.objects.using(using).select_for_update().get(pk=line.registration_id)
        _check_cart_allowed(locked, event, now)
        held = _other_lines_quantity(locked.pk, line.item_id, line.pk, using)

        check = validate_stock(line.item, quantity + held, line.selected_size)
        if not check.available:
            _raise_stock_error(check)

        line.quantity = quantity
        line.unit_price = quantize_amount(line.item.price)
        line.total_price = quantize_amount(line.unit_price * quantity)
        line.save(using=using, update_fields=["quantity", "unit_price", "total_price", "updated"])

    return line


def remove_from_cart(cart_order: CartOrder | int, *, using: str = "default", now: datetime | None = None) -> None:
    line = _get_cart_line(cart_order, using)
    check_can_modify(line.registration, now=now)
    line.delete(using=using)
    logger.info("Removed cart line %s from registration %s", line.pk, line.registration_id)


def cart_summary(registration: Registration, using: str = "default") -> dict[str, Any]:
    """Build the cart of a registration, flagging lines that can no longer be bought.

    Returns:
        Dictionary with the lines, item count, cart total and the stock issues found

    """
    lines = []
    issues = []
    total = Decimal("0.00")
    items_count = 0

    que = CartOrder.objects.using(using).filter(registration_id=registration.pk).select_related("item")
    cart_lines = list(que.order_by("created", "id"))

    item_quantities = defaultdict(int)
    for line in cart_lines:
        item_quantities[line.item_id] += line.quantity

    for line in cart_lines:
        item = line.item
        # lines of the same item share its stock
        stock_status = item.get_stock_status(item_quantities[item.pk])
        issue = ""
        if not item.is_active:
            issue = _("%(name)s is no longer available") % {"name": item.name}
        elif item.has_sizes() and line.selected_size not in item.sizes:
            issue = _("Size %(size)s of %(name)s is no longer available") % {
                "size": line.selected_size or "-",
                "name": item.name,
            }
        elif stock_status == StockStatus.INSUFFICIENT:
            issue = _("Insufficient stock for %(name)s. Available: %(count)d") % {
                "name": item.name,
                "count": item.stock_quantity,
            }

        if issue and issue not in issues:
            issues.append(issue)

        total += quantize_amount(line.total_price)
        items_count += line.quantity
        lines.append(
            {
                "id": line.pk,
                "item_id": item.pk,
                "name": item.name,
                "selected_size": line.selected_size,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "total_price": line.total_price,
                "stock_status": stock_status,
                "issue": issue,
            },
        )

    return {
        "lines": lines,
        "items_count": items_count,
        "total": quantize_amount(total),
        "issues": issues,
        "has_issues": bool(issues),
    }


def validate_checkout(registration: Registration, using: str = "default", now: datetime | None = None) -> CheckoutCheck:
    """Collect every reason blocking the checkout of a registration cart."""
    event = Event.objects.using(using).get(pk=registration.event_id)
    reasons = []

    if not event.has_merchandise:
        reasons.append(_("Merchandise not available for this event"))

    if registration.status != RegistrationStatus.CONFIRMED:
        reasons.append(_("Registration must be confirmed to purchase merchandise"))

    modification = can_modify(registration, event, now)
    if not modification.allowed:
        reasons.append(modification.reason)

    summary = cart_summary(registration, using)
    if not summary["lines"]:
        reasons.append(_("Cart is empty"))
    reasons.extend(summary["issues"])

    return CheckoutCheck(not reasons, reasons, summary)


def checkout(
    registration: Registration,
    payment: PaymentConfirmation | None = None,
    *,
    using: str = "default",
    now: datetime | None = None,
) -> Registration:
    """Finalize the cart of a registration.

    Under row locks on the registration and the items the checkout is
    validated again, finite stock is decremented, the cart total is added to
    the merchandise total of the registration and the cart lines are removed.

    Args:
        registration: Registration checking out
        payment: Completed payment covering the cart total
        using: Database alias
        now: Current time, defaults to ``timezone.now()``

    Returns:
        The updated Registration

    Raises:
        StateConflictError: With every blocking reason, or if the payment does not cover the cart

    """
    with transaction.atomic(using=using):
        locked = Registration.objects.using(using).select_for_update().get(pk=registration.pk)

        item_ids = CartOrder.objects.using(using).filter(registration=locked).values_list("item_id", flat=True)
        # lock items in a stable order
        list(MerchandiseItem.objects.using(using).select_for_update().filter(pk__in=list(item_ids)).order_by("pk"))

        check = validate_checkout(locked, using, now)
        if not check.allowed:
            logger.info("Checkout refused for registration %s: %s", locked.pk, check.reason)
            raise StateConflictError(check.reason)

        cart_total = check.summary["total"]
        check_payment_covers(payment, cart_total)

        ordered = defaultdict(int)
        names = {}
        for line in check.summary["lines"]:
            if line["stock_status"] == StockStatus.UNLIMITED:
                continue
            ordered[line["item_id"]] += line["quantity"]
            names[line["item_id"]] = line["name"]

        for item_id, quantity in sorted(ordered.items()):
            updated = (
                MerchandiseItem.objects.using(using)
                .filter(pk=item_id, stock_quantity__gte=quantity)
                .update(stock_quantity=F("stock_quantity") - quantity)
            )
            if not updated:
                raise StateConflictError(_("Insufficient stock for %(name)s") % {"name": names[item_id]})

        locked.merchandise_total = quantize_amount(locked.merchandise_total) + cart_total
        locked.recompute_total()
        locked.save(using=using, update_fields=["merchandise_total", "total_amount", "updated"])

        CartOrder.objects.using(using).filter(registration=locked).delete()

    logger.info(
        "Checkout of registration %s: %s items for %s (%s)",
        locked.pk,
        check.summary["items_count"],
        cart_total,
        payment.transaction_id if payment else "-",
    )
    return locked


def order_summary(registration: Registration, using: str = "default") -> dict[str, Any]:
    """Return the basket view of a registration: open cart plus merchandise already paid."""
    summary = cart_summary(registration, using)
    check = validate_checkout(registration, using)
    summary["merchandise_total"] = quantize_amount(registration.merchandise_total)
    summary["can_checkout"] = check.allowed
    summary["blocking_reasons"] = check.reasons
    return summary
