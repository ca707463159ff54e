# product_repository.py
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from cartqueue.domain.cart.ports import ProductCatalog, ProductInfo
from ..errors import StoreError
from ..models import Product


class SqlProductCatalog(ProductCatalog):
    """Read-only view of the catalog's products table"""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def get_product(self, product_id: int) -> Optional[ProductInfo]:
        try:
            with self.session_factory() as session:
                product = session.execute(
                    select(Product).where(Product.id == product_id, Product.deleted_at.is_(None))
                ).scalar_one_or_none()
                if product is None:
                    return None
                return ProductInfo(
                    id=product.id,
                    name=product.name,
                    price=product.price,
                    stock=product.stock,
                )
        except SQLAlchemyError as e:
            raise StoreError(f"failed to fetch product {product_id}: {e}") from e
