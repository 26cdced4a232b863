from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import case, func, select, update

from mirakl_sync.crud.base import CRUDBase
from mirakl_sync.models.product import Product
from mirakl_sync.schemas.product import (
    BulkMappingError,
    BulkMappingItem,
    MappingStats,
    ProductMappingUpdate,
)


class ProductCRUD(CRUDBase[Product, ProductMappingUpdate]):
    async def get_all(self, db: AsyncSession, *, unmapped_only: bool = False) -> List[Product]:
        query = select(self.model)
        if unmapped_only:
            query = query.filter(Product.mirakl_sku.is_(None))
        result = await db.execute(query.order_by(Product.id))
        return result.scalars().all()

    async def get_syncable(self, db: AsyncSession) -> List[Product]:
        """Products mapped to a Mirakl SKU, in id order"""
        result = await db.execute(
            select(self.model).filter(Product.mirakl_sku.is_not(None)).order_by(Product.id)
        )
        return result.scalars().all()

    async def mark_synced(
        self,
        db: AsyncSession,
        *,
        ids: Iterable[int],
        synced_at: Optional[datetime] = None
    ) -> None:
        ids = list(ids)
        if not ids:
            return
        await db.execute(
            update(Product)
            .where(Product.id.in_(ids))
            .values(last_synced_at=synced_at or datetime.now(timezone.utc))
        )
        await db.commit()

    async def update_mapping(
        self,
        db: AsyncSession,
        *,
        db_obj: Product,
        obj_in: ProductMappingUpdate,
        commit: bool = True
    ) -> Product:
        # Both fields are always replaced, a missing value clears the mapping
        return await self.update(
            db,
            db_obj=db_obj,
            obj_in={
                "mirakl_sku": obj_in.mirakl_sku,
                "bestbuy_category_id": obj_in.bestbuy_category_id,
            },
            commit=commit,
        )

    async def bulk_update_mapping(
        self,
        db: AsyncSession,
        *,
        items: List[BulkMappingItem]
    ) -> Tuple[int, List[BulkMappingError]]:
        """Apply many mappings in a single transaction, unknown ids are reported back"""
        updated = 0
        errors = []
        for item in items:
            product = await self.get(db, item.id)
            if not product:
                errors.append(BulkMappingError(id=item.id, error="Product not found"))
                continue
            await self.update_mapping(db, db_obj=product, obj_in=item, commit=False)
            updated += 1

        await db.commit()
        return updated, errors

    async def clear_mapping(self, db: AsyncSession, *, db_obj: Product) -> Product:
        return await self.update(
            db,
            db_obj=db_obj,
            obj_in={
                "mirakl_sku": None,
                "mirakl_offer_id": None,
                "bestbuy_category_id": None,
                "last_synced_at": None,
            },
        )

    async def get_stats(self, db: AsyncSession) -> MappingStats:
        result = await db.execute(
            select(
                func.count(Product.id),
                func.count(Product.mirakl_sku),
                func.count(case((Product.last_synced_at.is_not(None), 1))),
            )
        )
        total, mapped, synced = result.one()
        return MappingStats(total=total, mapped=mapped, unmapped=total - mapped, synced=synced)


product_crud = ProductCRUD(Product)
