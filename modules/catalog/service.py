"""
Catalog Module - Service Layer
================================
The product reads the cart and order pipeline depends on.
"""

from typing import Optional

from sqlalchemy.orm import Session

from common.exceptions import NotFoundError, ProductUnavailableError
from modules.catalog.models import Product


class CatalogService:

    def get_by_id(self, db: Session, product_id: int) -> Optional[Product]:
        """Any product row, soft-deleted ones included."""
        return db.query(Product).filter(Product.id == product_id).first()

    def get_orderable(self, db: Session, product_id: int) -> Product:
        """Product that may be put in a cart; raises otherwise."""
        product = self.get_by_id(db, product_id)
        if not product:
            raise NotFoundError(f"Product #{product_id} not found.")
        if not product.is_orderable:
            raise ProductUnavailableError(product.id, product.name)
        return product


# Singleton
catalog_service = CatalogService()
