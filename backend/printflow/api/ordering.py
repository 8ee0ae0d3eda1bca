import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from printflow.api.deps import get_assembly, get_engine, get_store, to_http
from printflow.models.order import BindingMethod, PrintColor
from printflow.services.assembly import OrderAssembly, SessionStore
from printflow.services.errors import PrintFlowError
from printflow.services.pricing import PRICING_INPUT, PriceEngine
from printflow.utils.formatting import format_currency

logger = logging.getLogger(__name__)
router = APIRouter()


class OptionsUpdate(BaseModel):
    print_color: Optional[PrintColor] = Field(default=None, alias="printColor")
    binding: Optional[BindingMethod] = None
    campus_delivery: Optional[bool] = Field(default=None, alias="campusDelivery")


class CustomerInfoIn(BaseModel):
    # Accept anything; the assembly reports missing or malformed fields one by one.
    name: Any = None
    email: Any = None
    phone: Any = None
    course: Any = None
    class_: Any = Field(default=None, alias="class")

    def as_mapping(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


@router.post("/quote")
def quote(payload: Dict[str, Any] = Body(...), engine: PriceEngine = Depends(get_engine)):
    """Stateless price estimate for the calculator widget."""
    try:
        pricing = PRICING_INPUT.validate_python(payload)
    except PydanticValidationError as e:
        raise HTTPException(status_code=422, detail={"message": "Invalid pricing input", "errors": [err["msg"] for err in e.errors()]})
    try:
        breakdown = engine.compute_breakdown(pricing)
    except PrintFlowError as e:
        raise to_http(e)
    return {
        "breakdown": breakdown.rounded(),
        "display": {k: format_currency(v) for k, v in breakdown.rounded().items()},
    }


@router.post("/sessions", status_code=201)
def create_session(store: SessionStore = Depends(get_store)):
    session_id = store.create()
    return {"sessionId": session_id, **store.get(session_id).view()}


@router.get("/sessions/{session_id}")
def get_session(assembly: OrderAssembly = Depends(get_assembly)):
    return assembly.view()


@router.delete("/sessions/{session_id}", status_code=204)
def discard_session(session_id: str, store: SessionStore = Depends(get_store)):
    store.discard(session_id)


@router.post("/sessions/{session_id}/document")
def upload_document(file: UploadFile = File(...), assembly: OrderAssembly = Depends(get_assembly)):
    logger.info("Received document upload file=%s content_type=%s", file.filename, file.content_type)
    content = file.file.read()
    try:
        assembly.upload_document(file.filename or "", content, file.content_type)
    except PrintFlowError as e:
        raise to_http(e)
    return assembly.view()


@router.put("/sessions/{session_id}/options")
def set_options(update: OptionsUpdate, assembly: OrderAssembly = Depends(get_assembly)):
    try:
        assembly.set_options(
            print_color=update.print_color,
            binding=update.binding,
            campus_delivery=update.campus_delivery,
        )
    except PrintFlowError as e:
        raise to_http(e)
    return assembly.view()


@router.post("/sessions/{session_id}/price/confirm")
def confirm_price(assembly: OrderAssembly = Depends(get_assembly)):
    try:
        corrected = assembly.confirm_price()
    except PrintFlowError as e:
        raise to_http(e)
    return {"corrected": corrected, **assembly.view()}


@router.post("/sessions/{session_id}/continue")
def proceed(assembly: OrderAssembly = Depends(get_assembly)):
    try:
        assembly.proceed_to_user_info()
    except PrintFlowError as e:
        raise to_http(e)
    return assembly.view()


@router.post("/sessions/{session_id}/customer")
def submit_customer_info(info: CustomerInfoIn, assembly: OrderAssembly = Depends(get_assembly)):
    try:
        assembly.submit_customer_info(info.as_mapping())
    except PrintFlowError as e:
        raise to_http(e)
    return assembly.view()


@router.post("/sessions/{session_id}/back")
def back(assembly: OrderAssembly = Depends(get_assembly)):
    try:
        assembly.back()
    except PrintFlowError as e:
        raise to_http(e)
    return assembly.view()


@router.post("/sessions/{session_id}/confirm")
def confirm_order(assembly: OrderAssembly = Depends(get_assembly)):
    try:
        assembly.confirm_order()
    except PrintFlowError as e:
        raise to_http(e)
    return assembly.view()


@router.post("/sessions/{session_id}/payment/cancel")
def cancel_payment(assembly: OrderAssembly = Depends(get_assembly)):
    try:
        assembly.cancel_payment()
    except PrintFlowError as e:
        raise to_http(e)
    return assembly.view()


@router.post("/sessions/{session_id}/payment/check")
def check_payment(assembly: OrderAssembly = Depends(get_assembly)):
    try:
        result = assembly.check_payment()
    except PrintFlowError as e:
        raise to_http(e)
    return {"payment": result.model_dump(mode="json", by_alias=True), **assembly.view()}


@router.post("/sessions/{session_id}/reset")
def reset(assembly: OrderAssembly = Depends(get_assembly)):
    try:
        assembly.reset()
    except PrintFlowError as e:
        raise to_http(e)
    return assembly.view()


@router.get("/sessions/{session_id}/receipt")
def receipt(assembly: OrderAssembly = Depends(get_assembly)):
    try:
        data = assembly.receipt()
    except PrintFlowError as e:
        raise to_http(e)
    return data.model_dump(mode="json", by_alias=True)
