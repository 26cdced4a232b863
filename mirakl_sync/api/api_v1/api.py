from fastapi import APIRouter

from mirakl_sync.api.api_v1.endpoints import marketplace, product_mapping

api_router = APIRouter()

api_router.include_router(marketplace.router, prefix="/marketplace", tags=["marketplace"])
api_router.include_router(product_mapping.router, prefix="/product-mapping", tags=["product-mapping"])
