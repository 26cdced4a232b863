from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime


class ProductMapping(BaseModel):
    id: int
    sku: str
    name: str
    price: int  # cents
    quantity: int
    mirakl_sku: Optional[str] = None
    mirakl_offer_id: Optional[str] = None
    bestbuy_category_id: Optional[str] = None
    last_synced_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProductMappingList(BaseModel):
    products: List[ProductMapping]
    total: int


class ProductMappingUpdate(BaseModel):
    """Replaces both mapping fields, blank values clear them"""
    mirakl_sku: Optional[str] = None
    bestbuy_category_id: Optional[str] = None

    @field_validator("mirakl_sku", "bestbuy_category_id")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v


class BulkMappingItem(ProductMappingUpdate):
    id: int


class BulkMappingRequest(BaseModel):
    products: List[BulkMappingItem] = Field(default_factory=list)


class BulkMappingError(BaseModel):
    id: int
    error: str


class BulkMappingResult(BaseModel):
    success: bool = True
    updated: int
    total: int
    errors: List[BulkMappingError] = []


class MappingStats(BaseModel):
    total: int
    mapped: int
    unmapped: int
    synced: int
