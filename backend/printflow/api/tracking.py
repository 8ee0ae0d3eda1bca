import logging

from fastapi import APIRouter, Depends

from printflow.api.deps import get_client, to_http
from printflow.services.api_client import PrintShopClient
from printflow.services.errors import PrintFlowError
from printflow.utils.formatting import format_binding, format_currency, format_date, format_print_color

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/orders/{order_number}")
def track_order(order_number: str, client: PrintShopClient = Depends(get_client)):
    try:
        order = client.get_order(order_number)
    except PrintFlowError as e:
        raise to_http(e)
    logger.info("Tracked order_number=%s status=%s", order.order_number, order.order_status.value)
    return {
        "order": order.model_dump(mode="json", by_alias=True),
        "display": {
            "totalPrice": format_currency(order.total_price),
            "createdAt": format_date(order.created_at),
            "updatedAt": format_date(order.updated_at),
            "binding": format_binding(order.binding),
            "printColor": format_print_color(order.print_color),
        },
    }


@router.get("/payments/{reference}")
def payment_status(reference: str, client: PrintShopClient = Depends(get_client)):
    """Read-only status check, used when the customer returns from the payment page."""
    try:
        result = client.check_payment_status(reference)
    except PrintFlowError as e:
        raise to_http(e)
    return result.model_dump(mode="json", by_alias=True)
