"""
Product Repository - Data Access Layer for Products

Author: TM3
Date: 2026-10-19
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from qrpos.domain.daily_close import LowStockProduct
from qrpos.models.product import Product


class ProductRepository:
    """
    Repository for Product data access
    """

    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, product_id: int) -> Optional[Product]:
        return self.session.get(Product, product_id)

    def find_low_stock(self) -> List[LowStockProduct]:
        """
        Active products at or below their minimum stock

        Returns:
            Products ordered by name
        """
        stmt = (
            select(Product)
            .where(Product.is_active.is_(True), Product.current_stock <= Product.min_stock)
            .order_by(Product.name, Product.id)
        )
        return [
            LowStockProduct(
                name=product.name,
                current_stock=product.current_stock,
                min_stock=product.min_stock,
            )
            for product in self.session.scalars(stmt).all()
        ]
