"""
Domain Layer - Business Entities

Pydantic models exchanged between services, repositories and the API.

Author: TM3
Date: 2026-10-19
"""
from qrpos.domain.daily_close import (
    BusinessDaySummary,
    CheckName,
    CheckResult,
    CloseResult,
    CloseStatistics,
    CloseStatus,
    LowStockProduct,
    Severity,
    TopProduct,
    ValidationChecks,
    ValidationVerdict,
)
from qrpos.domain.order import Order, OrderItem, Shift

__all__ = [
    'BusinessDaySummary',
    'CheckName',
    'CheckResult',
    'CloseResult',
    'CloseStatistics',
    'CloseStatus',
    'LowStockProduct',
    'Severity',
    'TopProduct',
    'ValidationChecks',
    'ValidationVerdict',
    'Order',
    'OrderItem',
    'Shift',
]
