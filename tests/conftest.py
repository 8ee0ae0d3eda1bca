from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest

from printflow.models.order import (
    BindingMethod,
    Order,
    OrderStats,
    PaymentState,
    PaymentStatusResult,
    PriceBreakdown,
    Submission,
    UploadedDocument,
)
from printflow.services.assembly import OrderAssembly
from printflow.services.errors import OrderNotFoundError
from printflow.services.pricing import PriceEngine, PriceTable

PDF_BYTES = b"%PDF-1.4\n%fake document\n"

VALID_CUSTOMER = {
    "name": "Ama Mensah",
    "email": "ama.mensah@st.campus.edu.gh",
    "phone": "024 123 4567",
    "course": "Computer Science",
    "class": "Level 300",
}


class FakePrintShop:
    """Stands in for PrintShopClient; records calls and replays canned answers."""

    def __init__(self):
        self.document = UploadedDocument(
            file_id="file-123",
            file_name="thesis.pdf",
            page_count=10,
            color_pages=3,
            monochrome_pages=7,
            size_bytes=len(PDF_BYTES),
        )
        self.server_breakdown: Optional[PriceBreakdown] = None
        self.submit_error: Optional[Exception] = None
        self.payment_results: List[Any] = []
        self.orders: List[Order] = []
        self.stats = OrderStats()
        self.submitted: List[Dict[str, Any]] = []
        self.payment_checks: List[str] = []
        self.status_updates: List[tuple] = []
        self.on_submit = None
        self._order_seq = 0

    def upload_document(self, filename, content, content_type):
        return self.document.model_copy(update={"file_name": filename})

    def confirm_price(self, pricing):
        return self.server_breakdown

    def submit_order(self, snapshot):
        self.submitted.append(snapshot)
        if self.on_submit:
            self.on_submit()
        if self.submit_error:
            raise self.submit_error
        self._order_seq += 1
        return Submission(
            order_number=f"PRN-{self._order_seq:04d}",
            payment_reference=f"ref-{self._order_seq}",
            payment_url=f"https://pay.example.test/ref-{self._order_seq}",
            total_cost=Decimal(str(snapshot["totalPrice"])),
        )

    def check_payment_status(self, reference):
        self.payment_checks.append(reference)
        result = self.payment_results.pop(0) if self.payment_results else PaymentState.PENDING
        if isinstance(result, Exception):
            raise result
        return PaymentStatusResult(status=result, message=f"Payment {result.value}")

    def get_order(self, order_number):
        for o in self.orders:
            if o.order_number == order_number:
                return o
        raise OrderNotFoundError(f"Order {order_number} not found", status_code=404)

    def list_orders(self, limit=None):
        return list(self.orders)

    def get_stats(self):
        return self.stats

    def pending_prints(self):
        return list(self.orders)

    def update_order_status(self, order_number, status):
        self.status_updates.append((order_number, status))


@pytest.fixture
def table():
    return PriceTable(
        monochrome_rate=Decimal("1"),
        colored_rate=Decimal("2"),
        binding_rates={
            BindingMethod.NONE: Decimal("0"),
            BindingMethod.COMB: Decimal("5"),
            BindingMethod.SLIDE: Decimal("7"),
            BindingMethod.TAPE: Decimal("3"),
        },
        delivery_rate=Decimal("2"),
    )


@pytest.fixture
def engine(table):
    return PriceEngine(table)


@pytest.fixture
def shop():
    return FakePrintShop()


@pytest.fixture
def released():
    return []


@pytest.fixture
def assembly(engine, shop, released):
    return OrderAssembly(engine, shop, on_release=released.append)


@pytest.fixture
def customer():
    return dict(VALID_CUSTOMER)


@pytest.fixture
def pdf_bytes():
    return PDF_BYTES


@pytest.fixture
def in_review(assembly):
    assembly.upload_document("thesis.pdf", PDF_BYTES, "application/pdf")
    assembly.proceed_to_user_info()
    assembly.submit_customer_info(VALID_CUSTOMER)
    return assembly


@pytest.fixture
def in_payment(in_review):
    in_review.confirm_order()
    return in_review

