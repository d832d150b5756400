from datetime import datetime

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from storefront import lifecycle, views
from storefront.deps import apply_once, get_principal, get_store
from storefront.models import ActingPrincipal, Address, OrderItem
from storefront.order_state import OrderType, PaymentMethod, ReturnMethod

router = APIRouter(prefix="/customer", tags=["customer"])


class PlaceOrderBody(BaseModel):
    order_type: OrderType
    items: list[OrderItem] = Field(..., min_length=1)
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD
    address: Address | None = Field(default=None, description="Required for DELIVERY orders")
    pickup_time: datetime | None = Field(default=None, description="Optional, PICKUP orders only")


class RequestReturnBody(BaseModel):
    return_method: ReturnMethod
    return_reason: str = Field(..., min_length=1)


@router.post("/orders")
async def place_order(
    body: PlaceOrderBody,
    principal: ActingPrincipal = Depends(get_principal),
    store=Depends(get_store),
    idempotency_key: str | None = Header(default=None),
) -> JSONResponse:
    """Checkout. Payment is recorded, not captured."""
    async def mutation() -> dict:
        order = await lifecycle.place_order(
            store,
            principal,
            order_type=body.order_type,
            items=body.items,
            payment_method=body.payment_method,
            address=body.address,
            pickup_time=body.pickup_time,
        )
        return {"order": order.model_dump(mode="json")}

    return await apply_once(f"{principal.id}:place-order", idempotency_key, mutation)


@router.get("/orders")
async def order_history(
    principal: ActingPrincipal = Depends(get_principal),
    store=Depends(get_store),
) -> JSONResponse:
    orders = await views.customer_orders(store, principal)
    return JSONResponse(
        status_code=200,
        content={"orders": [v.model_dump(mode="json") for v in orders]},
    )


@router.post("/orders/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    principal: ActingPrincipal = Depends(get_principal),
    store=Depends(get_store),
    idempotency_key: str | None = Header(default=None),
) -> JSONResponse:
    async def mutation() -> dict:
        order = await lifecycle.cancel_order(store, principal, order_id)
        return {"order": order.model_dump(mode="json")}

    return await apply_once(f"{principal.id}:cancel:{order_id}", idempotency_key, mutation)


@router.post("/orders/{order_id}/return")
async def request_return(
    order_id: str,
    body: RequestReturnBody,
    principal: ActingPrincipal = Depends(get_principal),
    store=Depends(get_store),
    idempotency_key: str | None = Header(default=None),
) -> JSONResponse:
    """Open a return on a completed order."""
    async def mutation() -> dict:
        order = await lifecycle.request_return(store, principal, order_id, body.return_method, body.return_reason)
        return {"order": order.model_dump(mode="json")}

    return await apply_once(f"{principal.id}:return:{order_id}", idempotency_key, mutation)
