"""
REST routes. Every response uses the {"success": bool, "data" | "error"} envelope.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, Request
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from errors import InvalidInput
from schemas import MAX_DESIGNS
from services import Services
from storage import ALLOWED_IMAGE_TYPES, MAX_FILE_SIZE, DesignFile

aari_router = APIRouter(prefix="/aari", tags=["aari"])
customer_router = APIRouter(prefix="/customer", tags=["customer"])
shop_router = APIRouter(prefix="/shop", tags=["shop"])
user_router = APIRouter(prefix="/user", tags=["user"])


def get_services(request: Request) -> Services:
    return request.app.state.services


async def read_design_files(uploads: List[Any]) -> List[DesignFile]:
    """Reject disallowed or oversized uploads before any business logic runs."""
    if len(uploads) > MAX_DESIGNS:
        raise InvalidInput(violations=[f"design: At most {MAX_DESIGNS} design files are allowed"])

    files: List[DesignFile] = []
    violations: List[str] = []
    for upload in uploads:
        # an empty file input still posts a nameless part
        if upload == "" or (isinstance(upload, UploadFile) and not upload.filename):
            continue
        if not isinstance(upload, UploadFile):
            violations.append("design: Must be an image file")
            continue
        name = upload.filename or "design"
        if upload.content_type not in ALLOWED_IMAGE_TYPES:
            violations.append(f"design: {name}: Only JPG, JPEG, and PNG images are allowed")
            continue
        if upload.size is not None and upload.size > MAX_FILE_SIZE:
            violations.append(f"design: {name}: File too large")
            continue
        data = await upload.read()
        if len(data) > MAX_FILE_SIZE:
            violations.append(f"design: {name}: File too large")
            continue
        files.append(DesignFile(filename=name, content_type=upload.content_type, data=data))

    if violations:
        raise InvalidInput(violations=violations)
    return files


# ---------- Aari ----------
@aari_router.post("/submitAariInput", status_code=201)
async def submit_aari_input(request: Request, services: Services = Depends(get_services)):
    form = await request.form()
    try:
        files = await read_design_files(form.getlist("design"))
        fields = {k: v for k, v in form.multi_items() if k != "design" and isinstance(v, str)}
    finally:
        await form.close()

    order_id = await run_in_threadpool(services.orders.submit_order, fields, files)
    return {"success": True, "message": "Aari input submitted successfully", "data": {"orderId": order_id}}


@aari_router.get("/getAariPending")
def get_aari_pending(page: int = 1, limit: int = 10, services: Services = Depends(get_services)):
    return {"success": True, "data": services.orders.list_pending(page, limit)}


@aari_router.get("/getAariCompleted")
def get_aari_completed(page: int = 1, limit: int = 10, services: Services = Depends(get_services)):
    return {"success": True, "data": services.orders.list_completed(page, limit)}


@aari_router.get("/getDesignUrl/{order_id}")
def get_design_url(order_id: str, services: Services = Depends(get_services)):
    return {"success": True, "data": {"designs": services.orders.get_design_urls(order_id)}}


@aari_router.get("/getAariOrder/{order_id}")
def get_aari_order(order_id: str, services: Services = Depends(get_services)):
    return {"success": True, "data": services.orders.get_order(order_id)}


@aari_router.put("/updateAariPendingStatus/{order_id}")
def update_aari_pending_status(
    order_id: str, payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
):
    order = services.orders.mark_completed(order_id, payload.get("workerPrice"))
    return {"success": True, "message": "Status and worker price updated successfully", "data": order}


@aari_router.put("/updateClientPriceByPhone/{phone_number}")
def update_client_price_by_phone(
    phone_number: str, payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
):
    order = services.orders.set_client_price({"phoneNumber": phone_number}, payload.get("clientPrice"))
    return {"success": True, "message": "Client price updated successfully", "data": order}


@aari_router.put("/updateClientPrice/{order_id}")
def update_client_price(
    order_id: str, payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)
):
    order = services.orders.set_client_price({"orderId": order_id}, payload.get("clientPrice"))
    return {"success": True, "message": "Client price updated successfully", "data": order}


@aari_router.delete("/deleteAariPendingOrder/{order_id}")
def delete_aari_pending_order(order_id: str, services: Services = Depends(get_services)):
    services.orders.delete_order(order_id)
    return {"success": True, "message": "Order deleted successfully"}


# ---------- Customers ----------
@customer_router.post("/submitCustomers", status_code=201)
def submit_customers(payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)):
    customer_id = services.customers.register_customer(payload)
    return {"success": True, "message": "Customer saved successfully", "data": {"customerId": customer_id}}


# ---------- Shop ----------
@shop_router.get("/getShopDetails")
def get_shop_details(services: Services = Depends(get_services)):
    return {"success": True, "data": services.shops.get_shop_details()}


# ---------- Users ----------
@user_router.post("/getUserDetails")
def get_user_details(payload: Dict[str, Any] = Body(...), services: Services = Depends(get_services)):
    return {"success": True, "data": services.users.get_user_details(payload.get("email"), payload.get("phone"))}


routers = [aari_router, customer_router, shop_router, user_router]
