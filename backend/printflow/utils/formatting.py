from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from printflow.config import CURRENCY_CODE
from printflow.models.order import CENT, BindingMethod, PrintColor


def format_currency(amount: Union[Decimal, int, float, None], currency: str = CURRENCY_CODE) -> str:
    """Format an amount as e.g. "GHC 10.00"."""
    value = Decimal(str(amount if amount is not None else 0))
    return f"{currency} {value.quantize(CENT, rounding=ROUND_HALF_UP)}"


def format_date(value: Optional[datetime]) -> str:
    """Fixed en-US style, e.g. "Oct 19, 2026, 05:37 PM"."""
    if value is None:
        return "N/A"
    return value.strftime("%b %d, %Y, %I:%M %p")


def format_binding(binding: BindingMethod) -> str:
    if binding == BindingMethod.NONE:
        return "No Binding"
    return f"{binding.value.capitalize()} Binding"


def format_print_color(print_color: PrintColor) -> str:
    return "Monochrome" if print_color == PrintColor.MONOCHROME else "Colored"
