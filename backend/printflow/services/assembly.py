import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

from printflow.models.order import (
    BindingMethod,
    OrderDraft,
    OrderStep,
    PaymentState,
    PaymentStatusResult,
    PrintColor,
    UploadedDocument,
)
from printflow.services.api_client import PrintShopClient
from printflow.services.errors import (
    InvalidQuantityError,
    PaymentError,
    PricingUnavailableError,
    SubmissionError,
    TransitionError,
    TransitionInProgressError,
    UploadError,
)
from printflow.services.pricing import PriceEngine
from printflow.services.receipt import ReceiptData, generate_receipt_data
from printflow.services.validation import CustomerInfoValidator, validate_document_file
from printflow.utils.formatting import format_currency

logger = logging.getLogger(__name__)

# Steps in which the priced options may still change.
EDITABLE_STEPS = (OrderStep.UPLOAD, OrderStep.USER_INFO)

BACKWARD = {
    OrderStep.USER_INFO: OrderStep.UPLOAD,
    OrderStep.REVIEW: OrderStep.USER_INFO,
}


class OrderAssembly:
    """Step sequencer for one customer's order.

    upload -> user_info -> review -> payment -> confirmation, with guarded
    transitions, backward moves before payment and an explicit reset. One
    transition at a time: a call made while another is still talking to the
    print shop service is refused with TransitionInProgressError.
    """

    def __init__(self, engine: PriceEngine, client: PrintShopClient, on_release: Callable[[OrderDraft], None] = None):
        self.engine = engine
        self.client = client
        self.on_release = on_release
        self.validator = CustomerInfoValidator()
        self.step = OrderStep.UPLOAD
        self.draft = OrderDraft()
        self._lock = threading.Lock()

    @contextmanager
    def _transition(self, name: str, *allowed: OrderStep) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise TransitionInProgressError(f"Cannot {name} while another step is in progress")
        try:
            if allowed and self.step not in allowed:
                raise TransitionError(f"Cannot {name} from the {self.step.value} step")
            yield
        finally:
            self._lock.release()

    def _move(self, target: OrderStep) -> None:
        logger.info("Order step %s -> %s", self.step.value, target.value)
        self.step = target

    def _priced(self, candidate: OrderDraft) -> OrderDraft:
        # Replace the breakdown whole so its parts never drift apart.
        candidate.price_breakdown = self.engine.compute_breakdown(candidate.pricing_input())
        return candidate

    def _require_unsubmitted(self, action: str) -> None:
        # A submitted order keeps its price; only payment or a new order can follow.
        if self.draft.submission is not None:
            raise TransitionError(
                f"Cannot {action}: order {self.draft.submission.order_number} is already submitted"
            )

    # --- upload & options ---

    def upload_document(self, filename: str, content: bytes, content_type: str) -> OrderDraft:
        with self._transition("upload a document", OrderStep.UPLOAD):
            problem = validate_document_file(filename, content_type, len(content))
            if problem:
                raise UploadError(problem)
            doc = self.client.upload_document(filename, content, content_type)
            self._load(doc)
        return self.draft

    def load_document(self, doc: UploadedDocument) -> OrderDraft:
        with self._transition("load a document", OrderStep.UPLOAD):
            self._load(doc)
        return self.draft

    def _load(self, doc: UploadedDocument) -> None:
        if doc.page_count <= 0:
            raise InvalidQuantityError("page_count", "The document has no pages")
        has_split = doc.color_pages is not None and doc.monochrome_pages is not None
        if has_split and (doc.color_pages < 0 or doc.monochrome_pages < 0):
            raise InvalidQuantityError(
                "color_pages" if doc.color_pages < 0 else "monochrome_pages",
                "Page counts must not be negative",
            )
        if has_split and doc.color_pages + doc.monochrome_pages != doc.page_count:
            raise InvalidQuantityError(
                "page_count",
                f"{doc.color_pages} color + {doc.monochrome_pages} monochrome pages do not add up to {doc.page_count}",
            )

        candidate = self.draft.model_copy(update={
            "file_id": doc.file_id,
            "file_name": doc.file_name,
            "page_count": doc.page_count,
            "color_pages": doc.color_pages if has_split else None,
            "monochrome_pages": doc.monochrome_pages if has_split else None,
            "size_bytes": doc.size_bytes,
        })
        # Price first so a bad document leaves the draft untouched.
        previous, self.draft = self.draft, self._priced(candidate)
        if previous.file_id and previous.file_id != doc.file_id and self.on_release:
            self.on_release(previous)
        logger.info("Loaded document file_id=%s pages=%s split=%s", doc.file_id, doc.page_count, has_split)

    def set_options(
        self,
        print_color: Optional[PrintColor] = None,
        binding: Optional[BindingMethod] = None,
        campus_delivery: Optional[bool] = None,
    ) -> OrderDraft:
        with self._transition("change print options", *EDITABLE_STEPS):
            self._require_unsubmitted("change print options")
            update: Dict[str, Any] = {}
            if print_color is not None:
                update["print_color"] = PrintColor(print_color)
            if binding is not None:
                update["binding"] = BindingMethod(binding)
            if campus_delivery is not None:
                update["campus_delivery"] = bool(campus_delivery)
            candidate = self.draft.model_copy(update=update)
            if candidate.has_document:
                candidate = self._priced(candidate)
            self.draft = candidate
        return self.draft

    def confirm_price(self) -> bool:
        """Check the local breakdown with the print shop. Returns True when it was corrected."""
        with self._transition("confirm the price", OrderStep.UPLOAD, OrderStep.USER_INFO, OrderStep.REVIEW):
            self._require_unsubmitted("confirm the price")
            if self.draft.price_breakdown is None:
                raise TransitionError("Upload a document before confirming the price")
            try:
                server = self.client.confirm_price(self.draft.pricing_input())
            except PricingUnavailableError:
                logger.exception("Price confirmation failed; keeping local estimate")
                raise
            kept, corrected = self.engine.reconcile(self.draft.price_breakdown, server)
            self.draft.price_breakdown = kept
            return corrected

    # --- forward / backward ---

    def proceed_to_user_info(self) -> None:
        with self._transition("continue to your information", OrderStep.UPLOAD):
            if not self.draft.has_document or self.draft.price_breakdown is None:
                raise TransitionError("Upload a document and choose your options first")
            self._move(OrderStep.USER_INFO)

    def submit_customer_info(self, data: Mapping[str, Any]) -> OrderDraft:
        with self._transition("submit your information", OrderStep.USER_INFO):
            info = self.validator.validate(data)
            self.draft.customer_info = info
            self._move(OrderStep.REVIEW)
        return self.draft

    def back(self) -> OrderStep:
        with self._transition("go back", *BACKWARD.keys()):
            self._require_unsubmitted("go back")
            self._move(BACKWARD[self.step])
        return self.step

    # --- submission & payment ---

    def confirm_order(self):
        with self._transition("confirm the order", OrderStep.REVIEW):
            if self.draft.submission is not None:
                # Back from a cancelled payment: pay for the order already placed.
                logger.info("Resuming payment for order_number=%s", self.draft.submission.order_number)
                self._move(OrderStep.PAYMENT)
                return self.draft.submission
            if self.draft.customer_info is None or self.draft.price_breakdown is None:
                raise TransitionError("The order is incomplete")
            snapshot = self.draft.snapshot()
            try:
                submission = self.client.submit_order(snapshot)
            except SubmissionError:
                logger.exception("Order submission failed for file_id=%s", self.draft.file_id)
                raise
            self.draft.submission = submission
            self.draft.payment_failed = False
            self._move(OrderStep.PAYMENT)
            return submission

    def cancel_payment(self) -> None:
        with self._transition("cancel the payment", OrderStep.PAYMENT):
            self._move(OrderStep.REVIEW)

    def check_payment(self) -> PaymentStatusResult:
        with self._transition("check the payment", OrderStep.PAYMENT):
            if self.draft.payment_failed:
                raise PaymentError("This payment attempt failed. Please start a new order.")
            reference = self.draft.submission.payment_reference
            try:
                result = self.client.check_payment_status(reference)
            except PaymentError:
                logger.exception("Payment status check failed reference=%s", reference)
                raise

            if result.status == PaymentState.COMPLETED:
                self._move(OrderStep.CONFIRMATION)
            elif result.status == PaymentState.FAILED:
                logger.warning("Payment failed reference=%s: %s", reference, result.message)
                self.draft.payment_failed = True
            return result

    # --- lifecycle ---

    def reset(self) -> None:
        with self._transition("start a new order"):
            previous = self.draft
            self.draft = OrderDraft()
            self._move(OrderStep.UPLOAD)
        if previous.file_id and self.on_release:
            self.on_release(previous)

    def receipt(self, issued_at: datetime = None) -> ReceiptData:
        if self.step != OrderStep.CONFIRMATION:
            raise TransitionError("A receipt is available once payment is confirmed")
        return generate_receipt_data(self.draft, issued_at)

    def view(self) -> Dict[str, Any]:
        draft = self.draft
        breakdown = draft.price_breakdown
        return {
            "step": self.step.value,
            "editable": self.step in EDITABLE_STEPS,
            "draft": draft.model_dump(mode="json", by_alias=True, exclude={"submission"}),
            "price": {k: format_currency(v) for k, v in breakdown.rounded().items()} if breakdown else None,
            "order": {
                "orderNumber": draft.submission.order_number,
                "paymentReference": draft.submission.payment_reference,
                "paymentUrl": draft.submission.payment_url,
                "totalCost": format_currency(draft.submission.total_cost),
            } if draft.submission else None,
        }


class SessionStore:
    """In-memory ordering sessions, one OrderAssembly per customer."""

    def __init__(self, factory: Callable[[], OrderAssembly]):
        self.factory = factory
        self._lock = threading.Lock()
        self._sessions: Dict[str, OrderAssembly] = {}

    def create(self) -> str:
        session_id = str(uuid.uuid4())
        with self._lock:
            self._sessions[session_id] = self.factory()
        logger.info("Created ordering session %s", session_id)
        return session_id

    def get(self, session_id: str) -> OrderAssembly:
        with self._lock:
            return self._sessions[session_id]

    def discard(self, session_id: str) -> None:
        with self._lock:
            assembly = self._sessions.pop(session_id, None)
        if assembly is not None:
            assembly.reset()
            logger.info("Discarded ordering session %s", session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
