from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

CENT = Decimal("0.01")


class PrintColor(str, Enum):
    MONOCHROME = "monochrome"
    COLORED = "colored"


class BindingMethod(str, Enum):
    NONE = "none"
    COMB = "comb"
    SLIDE = "slide"
    TAPE = "tape"


class OrderStep(str, Enum):
    UPLOAD = "upload"
    USER_INFO = "user_info"
    REVIEW = "review"
    PAYMENT = "payment"
    CONFIRMATION = "confirmation"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class WireModel(BaseModel):
    """Models exchanged with the print-shop backend use camelCase on the wire."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PriceBreakdown(WireModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    base_cost: Decimal = Field(alias="baseCost")
    binding_cost: Decimal = Field(alias="bindingCost")
    delivery_cost: Decimal = Field(alias="deliveryCost")
    total_cost: Decimal = Field(alias="totalCost")

    @model_validator(mode="after")
    def _total_is_sum(self):
        if self.total_cost != self.base_cost + self.binding_cost + self.delivery_cost:
            raise ValueError("total_cost must equal base_cost + binding_cost + delivery_cost")
        return self

    @classmethod
    def from_parts(cls, base_cost: Decimal, binding_cost: Decimal, delivery_cost: Decimal) -> "PriceBreakdown":
        return cls(
            base_cost=base_cost,
            binding_cost=binding_cost,
            delivery_cost=delivery_cost,
            total_cost=base_cost + binding_cost + delivery_cost,
        )

    def rounded(self) -> Dict[str, Decimal]:
        """Minor-unit values for display and submission."""
        return {
            "baseCost": self.base_cost.quantize(CENT, rounding=ROUND_HALF_UP),
            "bindingCost": self.binding_cost.quantize(CENT, rounding=ROUND_HALF_UP),
            "deliveryCost": self.delivery_cost.quantize(CENT, rounding=ROUND_HALF_UP),
            "totalCost": self.total_cost.quantize(CENT, rounding=ROUND_HALF_UP),
        }


class UniformPricing(BaseModel):
    """Every page priced at the rate of one color mode."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mode: Literal["uniform"] = "uniform"
    page_count: int = Field(alias="pageCount")
    print_color: PrintColor = Field(alias="printColor")
    binding: BindingMethod = BindingMethod.NONE
    campus_delivery: bool = Field(default=False, alias="campusDelivery")


class SplitPricing(BaseModel):
    """Color and monochrome pages priced separately."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mode: Literal["split"] = "split"
    color_pages: int = Field(alias="colorPages")
    monochrome_pages: int = Field(alias="monochromePages")
    binding: BindingMethod = BindingMethod.NONE
    campus_delivery: bool = Field(default=False, alias="campusDelivery")


PricingInput = Annotated[Union[UniformPricing, SplitPricing], Field(discriminator="mode")]


class CustomerInfo(WireModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    course: str = ""
    class_: str = Field(default="", alias="class")


class UploadedDocument(WireModel):
    file_id: str = Field(alias="fileId")
    file_name: str = Field(alias="originalName")
    page_count: int = Field(alias="pageCount")
    color_pages: Optional[int] = Field(default=None, alias="colorPages")
    monochrome_pages: Optional[int] = Field(default=None, alias="monochromePages")
    size_bytes: Optional[int] = Field(default=None, alias="size")


class Submission(WireModel):
    """Backend acceptance of a draft. The total is the price the customer committed to."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    order_number: str = Field(alias="orderNumber")
    payment_reference: str = Field(alias="paymentReference")
    payment_url: str = Field(alias="paymentUrl")
    total_cost: Decimal = Field(alias="totalCost")


class PaymentStatusResult(WireModel):
    status: PaymentState
    message: str = ""
    order_number: Optional[str] = Field(default=None, alias="orderNumber")


class OrderDraft(BaseModel):
    file_id: Optional[str] = None
    file_name: Optional[str] = None
    page_count: int = 0
    color_pages: Optional[int] = None
    monochrome_pages: Optional[int] = None
    size_bytes: Optional[int] = None
    print_color: PrintColor = PrintColor.MONOCHROME
    binding: BindingMethod = BindingMethod.NONE
    campus_delivery: bool = False
    price_breakdown: Optional[PriceBreakdown] = None
    customer_info: Optional[CustomerInfo] = None
    submission: Optional[Submission] = None
    payment_failed: bool = False

    @property
    def has_document(self) -> bool:
        return bool(self.file_id) and self.page_count > 0

    @property
    def has_split(self) -> bool:
        return self.color_pages is not None and self.monochrome_pages is not None

    def pricing_input(self) -> Union[UniformPricing, SplitPricing]:
        # A tracked split only matters for color printing; monochrome prints every page in black.
        if self.has_split and self.print_color == PrintColor.COLORED:
            return SplitPricing(
                color_pages=self.color_pages,
                monochrome_pages=self.monochrome_pages,
                binding=self.binding,
                campus_delivery=self.campus_delivery,
            )
        return UniformPricing(
            page_count=self.page_count,
            print_color=self.print_color,
            binding=self.binding,
            campus_delivery=self.campus_delivery,
        )

    def snapshot(self) -> Dict[str, Any]:
        """Payload accepted by the backend's submit-order endpoint."""
        total = self.price_breakdown.total_cost.quantize(CENT, rounding=ROUND_HALF_UP) if self.price_breakdown else Decimal("0.00")
        payload: Dict[str, Any] = {
            "fileId": self.file_id or "",
            "fileName": self.file_name or "",
            "pageCount": self.page_count,
            "colorPages": self.color_pages,
            "monochromePages": self.monochrome_pages,
            "printColor": self.print_color.value,
            "binding": self.binding.value,
            "campusDelivery": self.campus_delivery,
            "totalPrice": float(total),
        }
        if self.customer_info is not None:
            payload["userInfo"] = self.customer_info.model_dump(by_alias=True)
        return payload


class Payment(WireModel):
    reference: Optional[str] = None
    status: PaymentState = PaymentState.PENDING
    method: Optional[str] = None
    date: Optional[datetime] = None


class Order(WireModel):
    """Order as returned by the backend's order lookup and admin listings."""

    id: Optional[int] = None
    order_number: str
    file_id: Optional[str] = None
    file_name: str = ""
    page_count: int = 0
    color_pages: Optional[int] = None
    monochrome_pages: Optional[int] = None
    print_color: PrintColor = PrintColor.MONOCHROME
    binding: BindingMethod = BindingMethod.NONE
    campus_delivery: bool = False
    total_price: Decimal = Decimal("0")
    order_status: OrderStatus = OrderStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user_info: Optional[CustomerInfo] = Field(default=None, alias="userInfo")
    payment: Optional[Payment] = None


class StatusCount(WireModel):
    order_status: OrderStatus
    count: int


class DailyCount(WireModel):
    date: str
    count: int


class OrderStats(WireModel):
    status_counts: List[StatusCount] = Field(default_factory=list, alias="statusCounts")
    daily_counts: List[DailyCount] = Field(default_factory=list, alias="dailyCounts")
    total_revenue: Decimal = Field(default=Decimal("0"), alias="totalRevenue")
    today_orders: int = Field(default=0, alias="todayOrders")


class DashboardStats(WireModel):
    today_orders: int = Field(alias="todayOrders")
    pending_prints: int = Field(alias="pendingPrints")
    completed_orders: int = Field(alias="completedOrders")
    total_revenue: Decimal = Field(alias="totalRevenue")
    recent_orders: List[Order] = Field(default_factory=list, alias="recentOrders")
    daily_order_counts: List[DailyCount] = Field(default_factory=list, alias="dailyOrderCounts")


class OrderFilters(WireModel):
    status: str = "all"
    date_range: str = Field(default="all", alias="dateRange")
    search: str = ""


class OrderSorting(WireModel):
    field: str = "created_at"
    direction: Literal["asc", "desc"] = "desc"
