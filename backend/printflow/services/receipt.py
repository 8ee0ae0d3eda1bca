from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from printflow.models.order import CustomerInfo, OrderDraft
from printflow.services.errors import TransitionError
from printflow.utils.formatting import format_binding, format_print_color


class ReceiptData(BaseModel):
    order_number: str
    order_date: str
    customer: Optional[CustomerInfo] = None
    file_name: str
    page_count: int
    color_pages: int
    monochrome_pages: int
    print_color: str
    binding: str
    campus_delivery: bool
    base_cost: Decimal
    binding_cost: Decimal
    subtotal: Decimal
    delivery_fee: Decimal
    total_amount: Decimal


def generate_receipt_data(draft: OrderDraft, issued_at: datetime = None) -> ReceiptData:
    """Receipt for a submitted draft.

    Amounts come from the breakdown the customer reviewed; the total is the one
    frozen at submission, not a fresh calculation.
    """
    if draft.submission is None or draft.price_breakdown is None:
        raise TransitionError("A receipt is only available for a submitted order")

    issued_at = issued_at or datetime.now()
    amounts = draft.price_breakdown.rounded()
    color_pages = draft.color_pages or 0
    monochrome_pages = draft.monochrome_pages if draft.monochrome_pages is not None else draft.page_count - color_pages

    return ReceiptData(
        order_number=draft.submission.order_number,
        order_date=f"{issued_at.strftime('%d %b %Y')} at {issued_at.strftime('%H:%M')}",
        customer=draft.customer_info,
        file_name=draft.file_name or "Unknown Document",
        page_count=draft.page_count,
        color_pages=color_pages,
        monochrome_pages=monochrome_pages,
        print_color=format_print_color(draft.print_color),
        binding=format_binding(draft.binding),
        campus_delivery=draft.campus_delivery,
        base_cost=amounts["baseCost"],
        binding_cost=amounts["bindingCost"],
        subtotal=amounts["baseCost"] + amounts["bindingCost"],
        delivery_fee=amounts["deliveryCost"],
        total_amount=draft.submission.total_cost,
    )
