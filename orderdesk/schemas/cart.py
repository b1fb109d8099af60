"""Cart schemas."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CartItemCreate(BaseModel):
    company_id: int = Field(gt=0)
    product_variant_id: int = Field(gt=0)
    size: str = Field(min_length=1, max_length=8)
    quantity: int = Field(default=1, gt=0)


class CartItemUpdate(BaseModel):
    quantity: int = Field(description="Zero or less removes the item.")


class CartItemRead(BaseModel):
    id: int
    company_id: int
    product_type_id: int
    product_variant_id: int
    size: str
    quantity: int

    model_config = ConfigDict(from_attributes=True)
