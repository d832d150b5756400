from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from storefront import lifecycle, views
from storefront.deps import apply_once, get_principal, get_store
from storefront.models import ActingPrincipal
from storefront.order_state import DeliveryStatus

router = APIRouter(prefix="/employee", tags=["employee"])


class UpdateDeliveryStatusBody(BaseModel):
    status: DeliveryStatus = Field(..., description="Next delivery status")


@router.get("/deliveries")
async def list_deliveries(
    principal: ActingPrincipal = Depends(get_principal),
    store=Depends(get_store),
) -> JSONResponse:
    deliveries = await views.employee_deliveries(store, principal)
    return JSONResponse(
        status_code=200,
        content={"deliveries": [v.model_dump(mode="json") for v in deliveries]},
    )


@router.get("/deliveries/completed")
async def list_completed_deliveries(
    principal: ActingPrincipal = Depends(get_principal),
    store=Depends(get_store),
) -> JSONResponse:
    """Delivered, failed and rejected deliveries, most recently updated first."""
    deliveries = await views.employee_deliveries(store, principal, completed=True)
    return JSONResponse(
        status_code=200,
        content={"deliveries": [v.model_dump(mode="json") for v in deliveries]},
    )


@router.post("/deliveries/{delivery_id}/status")
async def update_delivery_status(
    delivery_id: str,
    body: UpdateDeliveryStatusBody,
    principal: ActingPrincipal = Depends(get_principal),
    store=Depends(get_store),
    idempotency_key: str | None = Header(default=None),
) -> JSONResponse:
    async def mutation() -> dict:
        delivery = await lifecycle.update_delivery_status(store, principal, delivery_id, body.status)
        return {"delivery": delivery.model_dump(mode="json")}

    return await apply_once(f"{principal.id}:delivery-status:{delivery_id}", idempotency_key, mutation)
