import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Numeric, DateTime, JSON
from shared.config.database import Base


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    # On-hand quantity; only order finalization decrements it
    quantity = Column(Numeric(10, 2), nullable=False, default=0)
    unit = Column(String, nullable=False, default="piece")
    category = Column(String, nullable=True)
    branch_id = Column(String(36), nullable=True, index=True)
    size_prices = Column(JSON, nullable=True) # {"S": "100.00", "M": "150.00"}
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def unit_price_for(self, size=None):
        """Price snapshot for a line: the size price when that size is priced, else the base price."""
        if size and self.size_prices and self.size_prices.get(size) is not None:
            return self.size_prices[size]
        return self.price
