import logging
import os
from decimal import Decimal, InvalidOperation
from typing import List

from printflow.models.order import BindingMethod
from printflow.services.errors import ConfigurationError
from printflow.services.pricing import PriceTable

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

PRINTSHOP_API_URL = os.getenv("PRINTSHOP_API_URL", "http://localhost:5000/api")
PRINTSHOP_API_TIMEOUT = float(os.getenv("PRINTSHOP_API_TIMEOUT", "10"))
PRINTSHOP_API_RETRIES = int(os.getenv("PRINTSHOP_API_RETRIES", "3"))

CURRENCY_CODE = os.getenv("CURRENCY_CODE", "GHC")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))

CORS_ORIGINS: List[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:80").split(",")
    if o.strip()
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = None) -> None:
    logging.basicConfig(level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO), format=LOG_FORMAT)


def _env_amount(name: str, default: str) -> Decimal:
    raw = os.getenv(name, default)
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ConfigurationError(f"{name} is not a valid amount: {raw!r}")
    if not amount.is_finite():
        raise ConfigurationError(f"{name} must be a finite amount, got {raw!r}")
    return amount


def load_price_table() -> PriceTable:
    """Price table from PRICE_* environment overrides, defaulting to the published rates."""
    defaults = PriceTable.default()
    return PriceTable(
        monochrome_rate=_env_amount("PRICE_MONOCHROME", str(defaults.monochrome_rate)),
        colored_rate=_env_amount("PRICE_COLORED", str(defaults.colored_rate)),
        binding_rates={
            BindingMethod.NONE: Decimal("0"),
            BindingMethod.COMB: _env_amount("PRICE_BINDING_COMB", str(defaults.binding_rates[BindingMethod.COMB])),
            BindingMethod.SLIDE: _env_amount("PRICE_BINDING_SLIDE", str(defaults.binding_rates[BindingMethod.SLIDE])),
            BindingMethod.TAPE: _env_amount("PRICE_BINDING_TAPE", str(defaults.binding_rates[BindingMethod.TAPE])),
        },
        delivery_rate=_env_amount("PRICE_DELIVERY", str(defaults.delivery_rate)),
    )
