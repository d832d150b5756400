from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from storefront import lifecycle, views
from storefront.deps import apply_once, get_principal, get_store
from storefront.models import ActingPrincipal
from storefront.order_state import OrderStatus, ReturnStatus

router = APIRouter(prefix="/admin", tags=["admin"])


class UpdateOrderStatusBody(BaseModel):
    status: OrderStatus = Field(..., description="Next order status; must be allowed from the current state")


class AssignDeliveryBody(BaseModel):
    employee_id: str = Field(..., min_length=1, description="Employee who will deliver the order")


class UpdateReturnStatusBody(BaseModel):
    return_status: ReturnStatus = Field(..., description="Next return status")


@router.get("/orders")
async def list_orders(
    principal: ActingPrincipal = Depends(get_principal),
    store=Depends(get_store),
) -> JSONResponse:
    """All orders, newest first, with the statuses the admin may pick next."""
    orders = await views.admin_orders(store, principal)
    return JSONResponse(
        status_code=200,
        content={"orders": [v.model_dump(mode="json") for v in orders]},
    )


@router.get("/employees")
async def list_employees(
    principal: ActingPrincipal = Depends(get_principal),
    store=Depends(get_store),
) -> JSONResponse:
    employees = await views.admin_employees(store, principal)
    return JSONResponse(
        status_code=200,
        content={"employees": [e.model_dump(mode="json") for e in employees]},
    )


@router.post("/orders/{order_id}/status")
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusBody,
    principal: ActingPrincipal = Depends(get_principal),
    store=Depends(get_store),
    idempotency_key: str | None = Header(default=None),
) -> JSONResponse:
    async def mutation() -> dict:
        order = await lifecycle.update_order_status(store, principal, order_id, body.status)
        return {"order": order.model_dump(mode="json")}

    return await apply_once(f"{principal.id}:order-status:{order_id}", idempotency_key, mutation)


@router.post("/orders/{order_id}/assign-delivery")
async def assign_delivery(
    order_id: str,
    body: AssignDeliveryBody,
    principal: ActingPrincipal = Depends(get_principal),
    store=Depends(get_store),
    idempotency_key: str | None = Header(default=None),
) -> JSONResponse:
    """Create the delivery and move the order to ASSIGNED_TO_DELIVERY, atomically."""
    async def mutation() -> dict:
        order, delivery = await lifecycle.assign_delivery(store, principal, order_id, body.employee_id)
        return {"order": order.model_dump(mode="json"), "delivery": delivery.model_dump(mode="json")}

    return await apply_once(f"{principal.id}:assign-delivery:{order_id}", idempotency_key, mutation)


@router.post("/orders/{order_id}/return-status")
async def update_return_status(
    order_id: str,
    body: UpdateReturnStatusBody,
    principal: ActingPrincipal = Depends(get_principal),
    store=Depends(get_store),
    idempotency_key: str | None = Header(default=None),
) -> JSONResponse:
    async def mutation() -> dict:
        order = await lifecycle.update_return_status(store, principal, order_id, body.return_status)
        return {"order": order.model_dump(mode="json")}

    return await apply_once(f"{principal.id}:return-status:{order_id}", idempotency_key, mutation)
