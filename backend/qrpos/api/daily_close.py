"""
Daily Close API Endpoints
End-of-day close for the POS: status, pre-close validation, close, reopen

Endpoints:
- GET  /api/daily-close/status    - Current day open/closed state
- POST /api/daily-close/validate  - Run the pre-close checks
- POST /api/daily-close/execute   - Close the business day
- POST /api/daily-close/reopen    - Reopen a closed day (administrators)
- POST /api/daily-close/open      - Explicitly open a business day
- GET  /api/daily-close/history   - Closed days with their statistics

Security:
- All endpoints require a bearer token with manager role or above
- Reopen additionally requires the admin role (checked by the service)

Author: TM3
Date: 2026-10-19
"""
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from qrpos.core.auth import TokenUser, require_manager
from qrpos.core.exceptions import InsufficientPrivilegeError, StateError, ValidationError
from qrpos.services.daily_close_service import DailyCloseService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/daily-close", tags=["Daily Close"])


def get_daily_close_service() -> DailyCloseService:
    """FastAPI dependency; overridden in tests"""
    return DailyCloseService()


# ============================================================================
# Request Models
# ============================================================================

class ExecuteCloseRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class ReopenRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)

    def cleaned_reason(self) -> Optional[str]:
        return self.reason.strip() if self.reason and self.reason.strip() else None


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/status")
async def get_close_status(
    user: TokenUser = Depends(require_manager),
    service: DailyCloseService = Depends(get_daily_close_service),
):
    """Whether the current business day is open or closed, and the last close date"""
    try:
        close_status = service.get_close_status()
        return {
            "success": True,
            "data": close_status.to_dict(),
            "message": "Close status retrieved successfully"
        }
    except Exception as e:
        logger.error(f"Error getting close status: {e}")
        raise HTTPException(status_code=500, detail="Failed to get close status")


@router.post("/validate")
async def validate_pre_close(
    user: TokenUser = Depends(require_manager),
    service: DailyCloseService = Depends(get_daily_close_service),
):
    """
    Run the pre-close checks

    Returns the four checks (pendingOrders, openShifts, pendingPayments,
    lowStock) and canClose. Low stock is reported but never blocks.
    """
    try:
        verdict = service.validate_pre_close()
        return {
            "success": True,
            "data": verdict.to_dict(),
            "message": "Pre-close validation completed"
        }
    except ValidationError as e:
        raise HTTPException(status_code=503, detail=e.message)
    except Exception as e:
        logger.error(f"Error in pre-close validation: {e}")
        raise HTTPException(status_code=500, detail="Failed to validate pre-close")


@router.post("/execute")
async def execute_daily_close(
    request: Optional[ExecuteCloseRequest] = Body(None),
    user: TokenUser = Depends(require_manager),
    service: DailyCloseService = Depends(get_daily_close_service),
):
    """
    Close the business day

    A refused close (blocking checks failed, stale validation, rolled back
    transaction) is returned as data with success=false and no state change.
    """
    try:
        result = service.execute_close(user, notes=request.notes if request else None)
        return {
            "success": True,
            "data": result.to_dict(),
            "message": result.message
        }
    except StateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=503, detail=e.message)
    except Exception as e:
        logger.error(f"Error executing daily close: {e}")
        raise HTTPException(status_code=500, detail="Failed to execute daily close")


@router.post("/reopen")
async def reopen_day(
    request: Optional[ReopenRequest] = Body(None),
    user: TokenUser = Depends(require_manager),
    service: DailyCloseService = Depends(get_daily_close_service),
):
    """Reopen the closed business day (emergencies only, administrators, reason required)"""
    reason = request.cleaned_reason() if request else None
    if reason is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Reason is required to reopen day")

    try:
        service.reopen_day(user, reason=reason)
        return {
            "success": True,
            "data": None,
            "message": "Day reopened successfully"
        }
    except InsufficientPrivilegeError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    except StateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except Exception as e:
        logger.error(f"Error reopening day: {e}")
        raise HTTPException(status_code=500, detail="Failed to reopen day")


@router.post("/open", status_code=status.HTTP_201_CREATED)
async def open_day(
    user: TokenUser = Depends(require_manager),
    service: DailyCloseService = Depends(get_daily_close_service),
):
    """Open a business day ahead of the first order"""
    try:
        day = service.open_day(user)
        return {
            "success": True,
            "data": day.to_dict(),
            "message": "Business day opened"
        }
    except StateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except Exception as e:
        logger.error(f"Error opening day: {e}")
        raise HTTPException(status_code=500, detail="Failed to open day")


@router.get("/history")
async def get_close_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: TokenUser = Depends(require_manager),
    service: DailyCloseService = Depends(get_daily_close_service),
):
    """Closed business days, most recent first"""
    try:
        days, total = service.get_close_history(page=page, limit=limit)
        return {
            "success": True,
            "data": [day.to_dict() for day in days],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": (total + limit - 1) // limit
            }
        }
    except Exception as e:
        logger.error(f"Error getting close history: {e}")
        raise HTTPException(status_code=500, detail="Failed to get close history")
