"""
Billing / Discount Apportionment

Line items of order cards, bills and contact-lens orders. Each item keeps
amount = rate * qty - discount_amount, and discount_percent relative to its
own pre-discount total. A bill-level discount is spread over the items in
proportion to their totals.

Rejected discount input is reported through DiscountOutcome.message and
leaves the items unchanged; nothing here raises.
"""

import logging
from typing import Any, List, Optional, Sequence, Type

from optirx.config import settings
from optirx.models.schema import DiscountOutcome, LineItem, PaymentSummary
from optirx.utils import to_float, round2

log = logging.getLogger(__name__)

ESTIMATE_GROSS = "gross"  # order card: sum of rate * qty
ESTIMATE_NET = "net"  # contact lens: sum of item amounts
ESTIMATE_POLICIES = (ESTIMATE_GROSS, ESTIMATE_NET)

DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_FIXED = "fixed"
DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)


def _copy(items: Sequence[LineItem]) -> List[LineItem]:
    return [item.model_copy() for item in items]


def renumber_items(items: Sequence[LineItem]) -> List[LineItem]:
    return [item.model_copy(update={"si": i + 1}) for i, item in enumerate(items)]


def add_line_item(
    items: Sequence[LineItem],
    item_name: str,
    rate: float,
    qty: float = 1,
    item_code: str = "",
    tax_percent: float = 0.0,
    unit: str = "PCS",
    item_cls: Type[LineItem] = LineItem,
    **extra: Any,
) -> List[LineItem]:
    new_item = item_cls(
        si=len(items) + 1,
        item_code=item_code,
        item_name=item_name,
        unit=unit,
        tax_percent=tax_percent,
        rate=rate,
        qty=qty,
        amount=round2(rate * qty),
        **extra,
    )
    return _copy(items) + [new_item]


def _with_discount(item: LineItem, discount: float, percent: Optional[float] = None) -> LineItem:
    total = item.total
    if percent is None:
        percent = discount / total * 100 if total > 0 else 0.0
    return item.model_copy(update={
        "discount_amount": round2(discount),
        "discount_percent": round2(percent),
        "amount": round2(total - discount),
    })


def update_line_item(
    items: Sequence[LineItem],
    index: int,
    rate: Optional[float] = None,
    qty: Optional[float] = None,
) -> List[LineItem]:
    """Edit rate and/or qty; the discount amount stays, capped at the new total."""
    out = _copy(items)
    if not 0 <= index < len(out):
        log.warning(f"Line item index {index} out of range ({len(out)} items)")
        return out
    update = {}
    if rate is not None:
        update["rate"] = rate
    if qty is not None:
        update["qty"] = qty
    item = out[index].model_copy(update=update)
    total = item.total
    discount = min(item.discount_amount, total) if total > 0 else 0.0
    out[index] = _with_discount(item, discount)
    return out


def delete_line_item(items: Sequence[LineItem], index: int) -> List[LineItem]:
    if not 0 <= index < len(items):
        log.warning(f"Line item index {index} out of range ({len(items)} items)")
        return _copy(items)
    return renumber_items([item for i, item in enumerate(items) if i != index])


def apply_global_discount(items: Sequence[LineItem], value: Any, discount_type: str = "percentage") -> DiscountOutcome:
    """
    Spread one discount over all items in proportion to their rate * qty.

    percentage: discount = total * value / 100
    fixed:      discount = min(value, total)
    Either way the discount never exceeds the pre-discount total.
    """
    if discount_type not in DISCOUNT_TYPES:
        log.warning(f"Discount rejected: unknown discount type {discount_type!r}")
        return DiscountOutcome(applied=False, items=_copy(items),
                               message=f"Unknown discount type '{discount_type}'")

    discount_value = to_float(value)
    if discount_value is None or discount_value <= 0:
        log.warning(f"Discount rejected: invalid value {value!r}")
        return DiscountOutcome(applied=False, items=_copy(items),
                               message="Please enter a valid discount value (greater than 0)")

    total_before = sum(item.total for item in items)
    if total_before <= 0:
        log.warning("Discount rejected: no pre-discount total")
        return DiscountOutcome(applied=False, items=_copy(items), message="No items to apply discount to")

    if discount_type == DISCOUNT_PERCENTAGE:
        discount = total_before * discount_value / 100
    else:
        discount = discount_value
    discount = min(discount, total_before)

    updated: List[LineItem] = []
    for item in items:
        item_total = item.total
        item_discount = discount * (item_total / total_before) if item_total > 0 else 0.0
        updated.append(_with_discount(item, item_discount))

    if discount_type == DISCOUNT_PERCENTAGE:
        message = f"Successfully applied {discount_value:g}% discount"
    else:
        message = f"Successfully applied {discount_value:.2f} discount"
    log.info(f"{message} across {len(updated)} item(s); total {total_before:.2f} -> {total_before - discount:.2f}")

    return DiscountOutcome(
        applied=True,
        items=updated,
        message=message,
        discount_amount=round2(discount),
        payment_estimate=round2(total_before - discount),
    )


def apply_item_discount(items: Sequence[LineItem], index: int, value: Any, discount_type: str = "percentage") -> List[LineItem]:
    """Direct edit of one item's discount; the complementary field is recomputed."""
    out = _copy(items)
    if discount_type not in DISCOUNT_TYPES:
        log.warning(f"Item discount ignored: unknown discount type {discount_type!r}")
        return out
    if not 0 <= index < len(out):
        log.warning(f"Line item index {index} out of range ({len(out)} items)")
        return out
    item = out[index]
    total = item.total
    if total <= 0:
        return out

    numeric = to_float(value) or 0.0
    if discount_type == DISCOUNT_PERCENTAGE:
        percent = min(100.0, max(0.0, numeric))
        out[index] = _with_discount(item, total * percent / 100, percent)
    else:
        out[index] = _with_discount(item, min(total, max(0.0, numeric)))
    return out


def total_advance(cash: Any = "", cc_upi: Any = "", cheque: Any = "", cash2: Any = "") -> float:
    """Advance received across payment modes (cash, card/UPI, cheque, second cash)."""
    return round2(sum(to_float(v) or 0.0 for v in (cash, cc_upi, cheque, cash2)))


def summarize_payment(items: Sequence[LineItem], advance: Any = 0, policy: Optional[str] = None) -> PaymentSummary:
    """
    Estimate, scheme amount (sum of item discounts) and balance.

    gross: estimate = sum(rate * qty); balance = estimate - sch_amt - advance
    net:   estimate = sum(amount);     balance = estimate - advance
    """
    policy = policy or settings.estimate_policy
    if policy not in ESTIMATE_POLICIES:
        log.warning(f"Unknown estimate policy '{policy}', using '{ESTIMATE_GROSS}'")
        policy = ESTIMATE_GROSS

    adv = to_float(advance) or 0.0
    sch_amt = sum(item.discount_amount or 0.0 for item in items)
    if policy == ESTIMATE_GROSS:
        estimate = sum(item.total for item in items)
        balance = estimate - sch_amt - adv
    else:
        estimate = sum(item.amount for item in items)
        balance = estimate - adv

    return PaymentSummary(
        payment_estimate=round2(estimate),
        sch_amt=round2(sch_amt),
        advance=round2(adv),
        balance=round2(balance),
        policy=policy,
    )
