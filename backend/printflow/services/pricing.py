import logging
from decimal import Decimal
from typing import Dict, Tuple, Union

from pydantic import BaseModel, ConfigDict, TypeAdapter, model_validator

from printflow.models.order import (
    BindingMethod,
    PriceBreakdown,
    PricingInput,
    PrintColor,
    SplitPricing,
    UniformPricing,
)
from printflow.services.errors import ConfigurationError, InvalidQuantityError

logger = logging.getLogger(__name__)

PRICING_INPUT = TypeAdapter(PricingInput)


class PriceTable(BaseModel):
    """Per-unit prices of the print shop, in the shop's currency."""

    # Non-finite rates reach _check_rates and fail as ConfigurationError.
    model_config = ConfigDict(frozen=True, allow_inf_nan=True)

    monochrome_rate: Decimal
    colored_rate: Decimal
    binding_rates: Dict[BindingMethod, Decimal]
    delivery_rate: Decimal

    @model_validator(mode="after")
    def _check_rates(self):
        rates = {
            "monochrome_rate": self.monochrome_rate,
            "colored_rate": self.colored_rate,
            "delivery_rate": self.delivery_rate,
        }
        rates.update({f"binding_rates[{m.value}]": r for m, r in self.binding_rates.items()})
        for name, rate in rates.items():
            if not rate.is_finite() or rate < 0:
                raise ConfigurationError(f"{name} must be a finite non-negative amount, got {rate}")

        missing = [m.value for m in BindingMethod if m not in self.binding_rates]
        if missing:
            raise ConfigurationError(f"no binding rate configured for: {', '.join(missing)}")
        if self.binding_rates[BindingMethod.NONE] != 0:
            raise ConfigurationError("binding_rates[none] must be 0")
        return self

    @classmethod
    def default(cls) -> "PriceTable":
        return cls(
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

    def rate_for(self, print_color: PrintColor) -> Decimal:
        if print_color == PrintColor.MONOCHROME:
            return self.monochrome_rate
        if print_color == PrintColor.COLORED:
            return self.colored_rate
        raise ConfigurationError(f"unknown print color: {print_color!r}")


def _check_count(field: str, value) -> int:
    # bool is an int subclass; True pages is never meant
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuantityError(field, f"{field} must be a whole number of pages, got {value!r}")
    if value < 0:
        raise InvalidQuantityError(field, f"{field} must not be negative, got {value}")
    return value


class PriceEngine:
    """Rule-based pricing engine.

    Turns a page composition, a binding method and a delivery option into a
    PriceBreakdown. Amounts stay exact Decimals; rounding to the currency's
    minor unit is left to display and submission.
    """

    def __init__(self, table: PriceTable):
        self.table = table

    def price_per_page(self, print_color: PrintColor) -> Decimal:
        return self.table.rate_for(print_color)

    def binding_price(self, binding: BindingMethod) -> Decimal:
        if binding == BindingMethod.NONE:
            return self.table.binding_rates[BindingMethod.NONE]
        elif binding == BindingMethod.COMB:
            return self.table.binding_rates[BindingMethod.COMB]
        elif binding == BindingMethod.SLIDE:
            return self.table.binding_rates[BindingMethod.SLIDE]
        elif binding == BindingMethod.TAPE:
            return self.table.binding_rates[BindingMethod.TAPE]
        raise ConfigurationError(f"unknown binding method: {binding!r}")

    def delivery_price(self) -> Decimal:
        return self.table.delivery_rate

    def _base_cost(self, pricing: Union[UniformPricing, SplitPricing]) -> Decimal:
        if isinstance(pricing, UniformPricing):
            pages = _check_count("page_count", pricing.page_count)
            return pages * self.price_per_page(pricing.print_color)
        if isinstance(pricing, SplitPricing):
            color = _check_count("color_pages", pricing.color_pages)
            mono = _check_count("monochrome_pages", pricing.monochrome_pages)
            return color * self.table.colored_rate + mono * self.table.monochrome_rate
        raise ConfigurationError(f"unsupported pricing input: {type(pricing).__name__}")

    def compute_breakdown(self, pricing: Union[UniformPricing, SplitPricing]) -> PriceBreakdown:
        base = self._base_cost(pricing)
        binding = self.binding_price(pricing.binding)
        delivery = self.delivery_price() if pricing.campus_delivery else Decimal("0")
        breakdown = PriceBreakdown.from_parts(base, binding, delivery)
        logger.debug("Computed breakdown mode=%s => %s", pricing.mode, breakdown.total_cost)
        return breakdown

    def calculate_total(self, pricing: Union[UniformPricing, SplitPricing]) -> Decimal:
        return self.compute_breakdown(pricing).total_cost

    def reconcile(self, local: PriceBreakdown, server: PriceBreakdown) -> Tuple[PriceBreakdown, bool]:
        """Server-confirmed breakdown wins over the local estimate.

        Returns the breakdown to keep and whether the local one was corrected.
        """
        if local.rounded() == server.rounded():
            return local, False
        logger.warning(
            "Local price %s disagrees with server price %s; using server value",
            local.rounded(), server.rounded(),
        )
        return server, True
