import logging
from functools import lru_cache

from fastapi import Depends, HTTPException

from printflow.config import load_price_table
from printflow.models.order import OrderDraft
from printflow.services.api_client import PrintShopClient
from printflow.services.assembly import OrderAssembly, SessionStore
from printflow.services.errors import (
    BackendError,
    ConfigurationError,
    OrderNotFoundError,
    PaymentError,
    PrintFlowError,
    SubmissionError,
    TransitionError,
    UploadError,
    ValidationError,
)
from printflow.services.pricing import PriceEngine

logger = logging.getLogger(__name__)


@lru_cache()
def get_engine() -> PriceEngine:
    return PriceEngine(load_price_table())


@lru_cache()
def get_client() -> PrintShopClient:
    return PrintShopClient()


def _release(draft: OrderDraft) -> None:
    logger.debug("Released document file_id=%s", draft.file_id)


@lru_cache()
def get_store() -> SessionStore:
    return SessionStore(lambda: OrderAssembly(get_engine(), get_client(), on_release=_release))


def get_assembly(session_id: str, store: SessionStore = Depends(get_store)) -> OrderAssembly:
    try:
        return store.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Ordering session not found")


def to_http(e: PrintFlowError) -> HTTPException:
    """Map a flow error to the response the UI shows; the session keeps its step."""
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail={"message": e.message, "fields": e.field_errors})
    if isinstance(e, UploadError):
        return HTTPException(status_code=400, detail={"message": e.message})
    if isinstance(e, TransitionError):
        return HTTPException(status_code=409, detail={"message": e.message})
    if isinstance(e, OrderNotFoundError):
        return HTTPException(status_code=404, detail={"message": e.message})
    if isinstance(e, (SubmissionError, PaymentError, BackendError)):
        return HTTPException(status_code=502, detail={"message": e.message})
    if isinstance(e, ConfigurationError):
        logger.error("Configuration error: %s", e.message)
    return HTTPException(status_code=500, detail={"message": "Internal configuration error"})
