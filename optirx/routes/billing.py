"""
Billing API Routes

Stateless: every call carries the current item list and gets the updated
list back.
"""

from fastapi import APIRouter

from optirx.models.api import (
    AddItemRequest,
    DeleteItemRequest,
    GlobalDiscountRequest,
    ItemDiscountRequest,
    ItemsResponse,
    SummaryRequest,
    UpdateItemRequest,
)
from optirx.models.schema import ContactLensItem, DiscountOutcome, LineItem, PaymentSummary
from optirx.services.billing import (
    add_line_item,
    apply_global_discount,
    apply_item_discount,
    delete_line_item,
    summarize_payment,
    total_advance,
    update_line_item,
)
from optirx.utils import is_blank

router = APIRouter()


@router.post("/items/add", response_model=ItemsResponse)
async def add_item(request: AddItemRequest) -> ItemsResponse:
    extra = request.contact_lens.model_dump(exclude_unset=True) if request.contact_lens else {}
    items = add_line_item(
        request.items,
        request.item_name,
        request.rate,
        qty=request.qty,
        item_code=request.item_code,
        tax_percent=request.tax_percent,
        unit=request.unit,
        item_cls=ContactLensItem if request.contact_lens is not None else LineItem,
        **extra,
    )
    return ItemsResponse(items=items)


@router.post("/items/update", response_model=ItemsResponse)
async def update_item(request: UpdateItemRequest) -> ItemsResponse:
    return ItemsResponse(items=update_line_item(request.items, request.index, rate=request.rate, qty=request.qty))


@router.post("/items/delete", response_model=ItemsResponse)
async def delete_item(request: DeleteItemRequest) -> ItemsResponse:
    return ItemsResponse(items=delete_line_item(request.items, request.index))


@router.post("/apply-discount", response_model=DiscountOutcome)
async def apply_discount(request: GlobalDiscountRequest) -> DiscountOutcome:
    """Bill-level discount; a rejected value comes back with applied=false and a message."""
    return apply_global_discount(request.items, request.value, request.discount_type)


@router.post("/item-discount", response_model=ItemsResponse)
async def item_discount(request: ItemDiscountRequest) -> ItemsResponse:
    return ItemsResponse(items=apply_item_discount(request.items, request.index, request.value, request.discount_type))


@router.post("/summary", response_model=PaymentSummary)
async def summary(request: SummaryRequest) -> PaymentSummary:
    modes = (request.cash, request.cc_upi, request.cheque, request.cash2)
    if any(not is_blank(m) for m in modes):
        advance = total_advance(*modes)
    else:
        advance = request.advance
    return summarize_payment(request.items, advance, request.policy)
