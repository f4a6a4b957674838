"""
Orders API Endpoints
Order placement and updates from the floor (waiters, kitchen)

Orders belong to the open business day. Once the day is closed they can no
longer be modified and these endpoints answer 423 Locked.

Author: TM3
Date: 2026-10-19
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from qrpos.core.auth import TokenUser, require_staff
from qrpos.core.exceptions import DayClosedError, NotFoundError, StateError
from qrpos.domain.base import CamelModel
from qrpos.models.order import OrderStatus
from qrpos.services.order_service import OrderService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/orders", tags=["Orders"])


def get_order_service() -> OrderService:
    """FastAPI dependency; overridden in tests"""
    return OrderService()


# ============================================================================
# Request Models
# ============================================================================

class OrderItemRequest(CamelModel):
    product_id: int
    quantity: int = Field(..., ge=1)


class CreateOrderRequest(CamelModel):
    table_number: int = Field(..., ge=1)
    items: List[OrderItemRequest] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=500)


class UpdateStatusRequest(BaseModel):
    status: OrderStatus


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_order(
    request: CreateOrderRequest,
    user: TokenUser = Depends(require_staff),
    service: OrderService = Depends(get_order_service),
):
    """
    Place an order for a table

    Opens a new business day when none is open (first order after a close).
    """
    try:
        order = service.place_order(
            request.table_number,
            [(item.product_id, item.quantity) for item in request.items],
            created_by=user.id,
            notes=request.notes,
        )
        return {
            "success": True,
            "data": order.to_dict(),
            "message": "Order created"
        }
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except Exception as e:
        logger.error(f"Error creating order: {e}")
        raise HTTPException(status_code=500, detail="Failed to create order")


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: int,
    request: UpdateStatusRequest,
    user: TokenUser = Depends(require_staff),
    service: OrderService = Depends(get_order_service),
):
    """
    Move an order through the kitchen workflow

    Cancelling is only possible while pending or confirmed; delivered and
    cancelled orders are final (409).
    """
    try:
        order = service.update_status(order_id, request.status)
        return {
            "success": True,
            "data": order.to_dict(),
            "message": f"Order status updated to {request.status.value}"
        }
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except DayClosedError as e:
        raise HTTPException(status_code=status.HTTP_423_LOCKED, detail=e.message)
    except StateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except Exception as e:
        logger.error(f"Error updating order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update order")


@router.post("/{order_id}/payment")
async def settle_order_payment(
    order_id: int,
    user: TokenUser = Depends(require_staff),
    service: OrderService = Depends(get_order_service),
):
    """Mark the order's payment as settled"""
    try:
        order = service.settle_payment(order_id)
        return {
            "success": True,
            "data": order.to_dict(),
            "message": "Payment settled"
        }
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except DayClosedError as e:
        raise HTTPException(status_code=status.HTTP_423_LOCKED, detail=e.message)
    except Exception as e:
        logger.error(f"Error settling payment for order {order_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to settle payment")
