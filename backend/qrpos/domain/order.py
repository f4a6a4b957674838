"""
Order Domain Models

Read models for orders, order items and staff shifts, built from the
ORM rows returned by the repositories.

Author: TM3
Date: 2026-10-19
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_serializer

from qrpos.domain.base import CamelModel


class OrderItem(CamelModel):
    """
    Order Item domain model - a line of an order

    Fields:
        id: Internal order item ID
        product_id: Reference to product
        product_name: Product name at order time
        quantity: Units ordered
        unit_price: Price per unit at order time
        total: Line total
    """

    id: int = Field(..., description="Order item ID")
    product_id: int = Field(..., description="Product ID")
    product_name: str = Field(..., description="Product name at order time")
    quantity: int = Field(..., description="Quantity ordered", ge=1)
    unit_price: Decimal = Field(..., description="Price per unit", ge=0)
    total: Decimal = Field(..., description="Total for line item", ge=0)

    @field_serializer("unit_price", "total")
    def serialize_money(self, value: Decimal) -> float:
        return float(value)


class Order(CamelModel):
    """
    Order domain model - an order placed for a table

    Fields:
        id: Internal order ID
        business_day_id: Business day the order belongs to
        table_number: Table that placed the order
        total: Order total
        status: pending, confirmed, preparing, ready, delivered, cancelled
        payment_status: pending, settled, failed, refunded
        items: Order lines
    """

    id: int = Field(..., description="Internal order ID")
    business_day_id: int = Field(..., description="Business day ID")
    table_number: int = Field(..., description="Table number", ge=1)
    total: Decimal = Field(..., description="Total order amount", ge=0)
    status: str = Field(..., description="Order status")
    payment_status: str = Field(..., description="Payment status")
    notes: Optional[str] = Field(None, description="Order notes")
    created_by: Optional[str] = Field(None, description="Staff user who placed it")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    paid_at: Optional[datetime] = Field(None, description="Settlement timestamp")

    items: List[OrderItem] = Field(default_factory=list, description="Order items")

    @property
    def total_quantity(self) -> int:
        """Total quantity of all items"""
        return sum(item.quantity for item in self.items)

    @field_serializer("total")
    def serialize_total(self, value: Decimal) -> float:
        return float(value)


class Shift(CamelModel):
    """Staff shift; end_time is None while the shift is open"""

    id: int
    user_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.end_time is None
