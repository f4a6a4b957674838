"""
Shifts API Endpoints
Staff clock-in / clock-out. Open shifts block the daily close.

Author: TM3
Date: 2026-10-19
"""
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel, Field

from qrpos.api.orders import get_order_service
from qrpos.core.auth import TokenUser, require_staff
from qrpos.core.exceptions import InsufficientPrivilegeError, NotFoundError, StateError
from qrpos.services.order_service import OrderService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/shifts", tags=["Shifts"])


class StartShiftRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


@router.post("/start", status_code=status.HTTP_201_CREATED)
async def start_shift(
    request: Optional[StartShiftRequest] = Body(None),
    user: TokenUser = Depends(require_staff),
    service: OrderService = Depends(get_order_service),
):
    """Start a shift for the authenticated user"""
    try:
        shift = service.start_shift(user.id, notes=request.notes if request else None)
        return {
            "success": True,
            "data": shift.to_dict(),
            "message": "Shift started"
        }
    except Exception as e:
        logger.error(f"Error starting shift for {user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to start shift")


@router.post("/{shift_id}/end")
async def end_shift(
    shift_id: int,
    user: TokenUser = Depends(require_staff),
    service: OrderService = Depends(get_order_service),
):
    """End an open shift (own shift, or any shift for managers)"""
    try:
        shift = service.end_shift(shift_id, user)
        return {
            "success": True,
            "data": shift.to_dict(),
            "message": "Shift ended"
        }
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except InsufficientPrivilegeError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    except StateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except Exception as e:
        logger.error(f"Error ending shift {shift_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to end shift")
