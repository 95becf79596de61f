from sqlalchemy import CheckConstraint, Column, Integer, Numeric, String
from shared.config.database import Base

class Product(Base):
    __tablename__ = "products"
    # Stock may only move through conditional UPDATEs; the constraint is the last line if one ever doesn't
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    seller_id = Column(String, nullable=False, index=True)
    price = Column(Numeric(12, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
