import logging
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Union

import requests
from pydantic import ValidationError as PydanticValidationError

from printflow.config import PRINTSHOP_API_RETRIES, PRINTSHOP_API_TIMEOUT, PRINTSHOP_API_URL
from printflow.models.order import (
    CENT,
    Order,
    OrderStats,
    OrderStatus,
    PaymentStatusResult,
    PriceBreakdown,
    PrintColor,
    SplitPricing,
    Submission,
    UniformPricing,
    UploadedDocument,
)
from printflow.services.errors import (
    BackendError,
    OrderNotFoundError,
    PaymentError,
    PricingUnavailableError,
    SubmissionError,
    UploadError,
)

logger = logging.getLogger(__name__)


class PrintShopClient:
    """Client for the print-shop REST backend.

    Reads (GET) are retried with a linear back-off; writes are sent once so a
    flaky network never produces a duplicate order.
    """

    def __init__(self, base_url: str = None, timeout: float = None, max_retries: int = None, backoff: float = 0.5):
        self.base_url = (base_url or PRINTSHOP_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else PRINTSHOP_API_TIMEOUT
        self.max_retries = max(1, max_retries if max_retries is not None else PRINTSHOP_API_RETRIES)
        self.backoff = backoff
        logger.debug("PrintShopClient initialized with base_url=%s max_retries=%s", self.base_url, self.max_retries)

    def _request(self, method: str, path: str, retry: bool = False, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        attempts = self.max_retries if retry else 1
        for attempt in range(1, attempts + 1):
            try:
                logger.debug("%s attempt=%s url=%s", method, attempt, url)
                resp = requests.request(method, url, timeout=self.timeout, **kwargs)
            except requests.RequestException as e:
                logger.warning("Attempt %s %s url=%s failed: %s", attempt, method, url, e)
                if attempt < attempts:
                    time.sleep(self.backoff * attempt)
                    continue
                raise BackendError(f"Could not reach the print shop service: {e}") from e
            return self._decode(resp)

    def _decode(self, resp: requests.Response) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"data": data}

        if resp.status_code >= 400:
            message = data.get("message") or data.get("error") or f"HTTP {resp.status_code}"
            logger.warning("Print shop service returned status=%s: %s", resp.status_code, message)
            raise BackendError(message, status_code=resp.status_code)
        if data.get("success") is False:
            message = data.get("message") or data.get("error") or "Request was not successful"
            raise BackendError(message, status_code=resp.status_code)
        return data

    # --- ordering flow ---

    def upload_document(self, filename: str, content: bytes, content_type: str) -> UploadedDocument:
        try:
            data = self._request("POST", "/upload-pdf", files={"file": (filename, content, content_type)})
            doc = UploadedDocument.model_validate(data)
        except BackendError as e:
            raise UploadError(e.message) from e
        except PydanticValidationError as e:
            logger.error("Unexpected upload response: %s", e)
            raise UploadError("The print shop service returned an unreadable upload result") from e
        logger.info("Uploaded document file_id=%s pages=%s", doc.file_id, doc.page_count)
        return doc

    def confirm_price(self, pricing: Union[UniformPricing, SplitPricing]) -> PriceBreakdown:
        if isinstance(pricing, SplitPricing):
            # A split is only priced for color printing.
            payload = {
                "colorPages": pricing.color_pages,
                "monochromePages": pricing.monochrome_pages,
                "printColor": PrintColor.COLORED.value,
            }
        else:
            payload = {"pageCount": pricing.page_count, "printColor": pricing.print_color.value}
        payload.update({"binding": pricing.binding.value, "campusDelivery": pricing.campus_delivery})

        try:
            data = self._request("POST", "/calculate-price", json=payload)
        except BackendError as e:
            raise PricingUnavailableError(e.message, status_code=e.status_code) from e
        return _parse_breakdown(data)

    def submit_order(self, snapshot: Dict[str, Any]) -> Submission:
        try:
            data = self._request("POST", "/submit-order", json=snapshot)
            submission = Submission(
                order_number=data["orderNumber"],
                payment_reference=data["paymentReference"],
                payment_url=data["paymentUrl"],
                total_cost=Decimal(str(snapshot["totalPrice"])).quantize(CENT, rounding=ROUND_HALF_UP),
            )
        except BackendError as e:
            raise SubmissionError(e.message) from e
        except (KeyError, PydanticValidationError) as e:
            logger.error("Unexpected submit-order response: %s", e)
            raise SubmissionError("The print shop service did not return an order number") from e
        logger.info("Order accepted order_number=%s reference=%s", submission.order_number, submission.payment_reference)
        return submission

    def check_payment_status(self, reference: str) -> PaymentStatusResult:
        try:
            data = self._request("GET", f"/payment/verify/{reference}", retry=True)
            return PaymentStatusResult.model_validate(data)
        except BackendError as e:
            raise PaymentError(e.message) from e
        except PydanticValidationError as e:
            logger.error("Unexpected payment status response: %s", e)
            raise PaymentError("Error checking payment status. Please try again.") from e

    def get_order(self, order_number: str) -> Order:
        try:
            data = self._request("GET", f"/orders/{order_number}", retry=True)
        except BackendError as e:
            if e.status_code == 404:
                raise OrderNotFoundError(f"Order {order_number} not found", status_code=404) from e
            raise
        if not data.get("order"):
            raise OrderNotFoundError(f"Order {order_number} not found", status_code=404)
        return Order.model_validate(data["order"])

    # --- admin ---

    def list_orders(self, limit: Optional[int] = None) -> List[Order]:
        params = {"limit": limit} if limit else None
        data = self._request("GET", "/admin/orders", retry=True, params=params)
        return [Order.model_validate(o) for o in data.get("orders") or []]

    def get_stats(self) -> OrderStats:
        data = self._request("GET", "/admin/orders/stats", retry=True)
        return OrderStats.model_validate(data.get("stats") or {})

    def pending_prints(self) -> List[Order]:
        data = self._request("GET", "/admin/pending-prints", retry=True)
        return [Order.model_validate(o) for o in data.get("orders") or []]

    def update_order_status(self, order_number: str, status: OrderStatus) -> None:
        self._request("PUT", f"/admin/orders/{order_number}/status", json={"status": status.value})
        logger.info("Order status updated order_number=%s status=%s", order_number, status.value)


def _parse_breakdown(data: Dict[str, Any]) -> PriceBreakdown:
    """Server amounts are floats; compare them at minor-unit precision."""
    try:
        parts = [Decimal(str(data[k])).quantize(CENT, rounding=ROUND_HALF_UP) for k in ("baseCost", "bindingCost", "deliveryCost", "totalCost")]
    except (KeyError, ArithmeticError, ValueError) as e:
        raise PricingUnavailableError(f"Unreadable price confirmation: {e}") from e
    base, binding, delivery, total = parts
    if base + binding + delivery != total:
        raise PricingUnavailableError(f"Server total {total} does not match its components")
    return PriceBreakdown.from_parts(base, binding, delivery)
