"""
Daily Close Domain Models

Status, pre-close validation verdict, close statistics and close result
as exchanged with the POS frontend (camelCase on the wire).

Author: TM3
Date: 2026-10-19
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import Field, computed_field, field_serializer

from qrpos.domain.base import CamelModel


# ============================================================================
# Validation checks
# ============================================================================

class CheckName(str, Enum):
    PENDING_ORDERS = "pending_orders"
    OPEN_SHIFTS = "open_shifts"
    PENDING_PAYMENTS = "pending_payments"
    LOW_STOCK = "low_stock"


class Severity(str, Enum):
    BLOCKING = "blocking"
    ADVISORY = "advisory"


@dataclass(frozen=True)
class CheckDefinition:
    name: CheckName
    severity: Severity


CHECK_DEFINITIONS: Tuple[CheckDefinition, ...] = (
    CheckDefinition(CheckName.PENDING_ORDERS, Severity.BLOCKING),
    CheckDefinition(CheckName.OPEN_SHIFTS, Severity.BLOCKING),
    CheckDefinition(CheckName.PENDING_PAYMENTS, Severity.BLOCKING),
    CheckDefinition(CheckName.LOW_STOCK, Severity.ADVISORY),
)

CHECK_SEVERITY: Dict[CheckName, Severity] = {d.name: d.severity for d in CHECK_DEFINITIONS}


class LowStockProduct(CamelModel):
    name: str = Field(..., description="Product name")
    current_stock: int = Field(..., description="Units on hand")
    min_stock: int = Field(..., description="Configured minimum")


class CheckResult(CamelModel):
    """Outcome of one pre-close check"""

    valid: bool
    count: int = Field(..., ge=0, description="Affected records")
    message: str
    # Only the low stock check lists products
    products: Optional[List[LowStockProduct]] = None


class ValidationChecks(CamelModel):
    pending_orders: CheckResult
    open_shifts: CheckResult
    pending_payments: CheckResult
    low_stock: CheckResult

    def results(self) -> List[Tuple[CheckName, CheckResult]]:
        return [(name, getattr(self, name.value)) for name in CheckName]


class ValidationVerdict(CamelModel):
    """
    Go/no-go verdict for the daily close.

    canClose only looks at checks whose definition is BLOCKING, so an
    advisory check (low stock) is reported without gating the close.
    """

    validations: ValidationChecks

    @computed_field(alias="canClose")
    @property
    def can_close(self) -> bool:
        return all(
            result.valid
            for name, result in self.validations.results()
            if CHECK_SEVERITY[name] is Severity.BLOCKING
        )

    def blocking_issues(self) -> List[str]:
        """Messages of the failed blocking checks, in definition order"""
        return [
            result.message
            for name, result in self.validations.results()
            if CHECK_SEVERITY[name] is Severity.BLOCKING and not result.valid
        ]


# ============================================================================
# Status, statistics, results
# ============================================================================

class CloseStatus(CamelModel):
    is_closed: bool
    last_close_date: Optional[datetime] = None
    can_close: bool
    reason: Optional[str] = None
    business_day_id: Optional[int] = None
    opened_at: Optional[datetime] = None
    closed_by: Optional[str] = None


class TopProduct(CamelModel):
    product_id: int
    name: str
    quantity: int


class CloseStatistics(CamelModel):
    total_sales: Decimal = Field(..., ge=0)
    total_orders: int = Field(..., ge=0)
    top_products: List[TopProduct] = Field(default_factory=list)

    @field_serializer("total_sales")
    def serialize_total_sales(self, value: Decimal) -> float:
        return float(value)


class CloseResult(CamelModel):
    success: bool
    message: str
    stats: Optional[CloseStatistics] = None


class BusinessDaySummary(CamelModel):
    """One business day as listed by history/open"""

    id: int
    opened_at: datetime
    opened_by: Optional[str] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None
    close_notes: Optional[str] = None
    backup_path: Optional[str] = None
    stats: Optional[CloseStatistics] = None

    @classmethod
    def from_record(cls, day) -> "BusinessDaySummary":
        """Build from a BusinessDay ORM row (statistics relationship loaded)"""
        stats = None
        if day.statistics is not None:
            stats = CloseStatistics(
                total_sales=day.statistics.total_sales,
                total_orders=day.statistics.total_orders,
                top_products=[TopProduct.model_validate(p) for p in day.statistics.top_products],
            )
        return cls(
            id=day.id,
            opened_at=day.opened_at,
            opened_by=day.opened_by,
            closed_at=day.closed_at,
            closed_by=day.closed_by,
            close_notes=day.close_notes,
            backup_path=day.backup_path,
            stats=stats,
        )
