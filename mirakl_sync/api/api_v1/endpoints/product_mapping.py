import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from mirakl_sync.db.database import get_db
from mirakl_sync.crud.product import product_crud
from mirakl_sync.schemas.product import (
    BulkMappingRequest,
    BulkMappingResult,
    MappingStats,
    ProductMapping,
    ProductMappingList,
    ProductMappingUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _mapping_list(products) -> ProductMappingList:
    return ProductMappingList(
        products=[ProductMapping.model_validate(p) for p in products],
        total=len(products),
    )


@router.get("/", response_model=ProductMappingList)
async def get_product_mappings(db: AsyncSession = Depends(get_db)):
    """Get all products with their marketplace mapping fields"""
    products = await product_crud.get_all(db)
    return _mapping_list(products)


@router.get("/unmapped", response_model=ProductMappingList)
async def get_unmapped_products(db: AsyncSession = Depends(get_db)):
    """Get products without a Mirakl SKU"""
    products = await product_crud.get_all(db, unmapped_only=True)
    return _mapping_list(products)


@router.get("/stats", response_model=MappingStats)
async def get_mapping_stats(db: AsyncSession = Depends(get_db)):
    return await product_crud.get_stats(db)


@router.post("/bulk", response_model=BulkMappingResult)
async def bulk_update_mappings(bulk_in: BulkMappingRequest, db: AsyncSession = Depends(get_db)):
    """Update many product mappings in one transaction"""
    if not bulk_in.products:
        raise HTTPException(status_code=400, detail="Invalid input: products array is required")

    logger.info(f"Bulk updating {len(bulk_in.products)} product mappings...")
    updated, errors = await product_crud.bulk_update_mapping(db, items=bulk_in.products)
    logger.info(f"Bulk update completed: {updated} products updated")

    return BulkMappingResult(updated=updated, total=len(bulk_in.products), errors=errors)


@router.put("/{product_id}", response_model=ProductMapping)
async def update_product_mapping(
    product_id: int,
    mapping_in: ProductMappingUpdate,
    db: AsyncSession = Depends(get_db)
):
    """Set the Mirakl SKU and Best Buy category of a product"""
    product = await product_crud.get(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    product = await product_crud.update_mapping(db, db_obj=product, obj_in=mapping_in)
    logger.info(f"Updated product mapping for ID {product_id}")
    return product


@router.delete("/{product_id}", response_model=ProductMapping)
async def clear_product_mapping(product_id: int, db: AsyncSession = Depends(get_db)):
    """Remove all marketplace mapping fields from a product"""
    product = await product_crud.get(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    product = await product_crud.clear_mapping(db, db_obj=product)
    logger.info(f"Cleared product mapping for ID {product_id}")
    return product
