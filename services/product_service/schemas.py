from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0, decimal_places=2)
    quantity: Decimal = Field(default=Decimal("0"), decimal_places=2)
    unit: str = "piece"
    category: Optional[str] = None
    branch_id: Optional[str] = None
    size_prices: Optional[Dict[str, Decimal]] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ProductResponse(BaseModel):
    id: str
    name: str
    price: Decimal
    quantity: Decimal
    available_stock: Decimal
    out_of_stock: bool
    unit: str
    category: Optional[str] = None
    branch_id: Optional[str] = None
    size_prices: Optional[Dict[str, Decimal]] = None

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True
