from datetime import datetime, timezone
from typing import Dict, List, Optional
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import and_, case, desc, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import selectinload

from mirakl_sync.crud.base import CRUDBase
from mirakl_sync.models.marketplace_order import MarketplaceOrder
from mirakl_sync.models.marketplace_shipment import MarketplaceShipment
from mirakl_sync.schemas.mirakl import MiraklOrder, OrderState, ShipmentResult

# Orders that still need a local action
PENDING_ORDER_STATES = [OrderState.WAITING_ACCEPTANCE.value, OrderState.SHIPPING.value]

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _dialect_insert(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    try:
        return _INSERT_BY_DIALECT[dialect]
    except KeyError:
        raise RuntimeError(f"Order upsert is not supported on the {dialect} dialect")


def _reconciled_state(excluded):
    """
    Remote state wins unless it would move a locally advanced order backwards:
    a shipped order ignores WAITING_ACCEPTANCE/SHIPPING, an accepted order
    ignores WAITING_ACCEPTANCE.
    """
    table = MarketplaceOrder.__table__
    return case(
        (
            and_(
                table.c.shipped_at.is_not(None),
                excluded.order_state.in_(PENDING_ORDER_STATES),
            ),
            table.c.order_state,
        ),
        (
            and_(
                table.c.accepted_at.is_not(None),
                excluded.order_state == OrderState.WAITING_ACCEPTANCE.value,
            ),
            table.c.order_state,
        ),
        else_=excluded.order_state,
    )


class MarketplaceOrderCRUD(CRUDBase[MarketplaceOrder, BaseModel]):
    async def get_by_mirakl_id(self, db: AsyncSession, mirakl_order_id: str) -> Optional[MarketplaceOrder]:
        query = select(self.model).filter(MarketplaceOrder.mirakl_order_id == mirakl_order_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def upsert_from_mirakl(self, db: AsyncSession, *, order: MiraklOrder, total_price: int) -> bool:
        """
        Insert or update one order keyed by its Mirakl order id.
        Returns True when the order already existed. Does not commit.
        """
        existing = await db.execute(
            select(MarketplaceOrder.id).filter(MarketplaceOrder.mirakl_order_id == order.order_id)
        )
        is_update = existing.scalar_one_or_none() is not None

        insert = _dialect_insert(db)
        stmt = insert(MarketplaceOrder).values(
            mirakl_order_id=order.order_id,
            order_state=order.order_state.value,
            customer_name=order.customer_name,
            shipping_address=order.shipping_address,
            order_lines=order.order_lines_json(),
            total_price=total_price,
            created_at=order.created_date or datetime.now(timezone.utc),
        )
        # accepted_at/shipped_at belong to local actions and are never overwritten
        stmt = stmt.on_conflict_do_update(
            index_elements=["mirakl_order_id"],
            set_={
                "order_state": _reconciled_state(stmt.excluded),
                "customer_name": stmt.excluded.customer_name,
                "shipping_address": stmt.excluded.shipping_address,
                "order_lines": stmt.excluded.order_lines,
                "total_price": stmt.excluded.total_price,
            },
        )
        await db.execute(stmt)
        return is_update

    async def get_all(
        self,
        db: AsyncSession,
        *,
        state: Optional[str] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[MarketplaceOrder]:
        query = select(self.model)
        if state:
            query = query.filter(MarketplaceOrder.order_state == state)
        query = query.order_by(desc(MarketplaceOrder.created_at), desc(MarketplaceOrder.id))
        query = query.offset(offset).limit(limit)
        result = await db.execute(query)
        return result.scalars().all()

    async def get_with_shipments(self, db: AsyncSession, id: int) -> Optional[MarketplaceOrder]:
        query = (
            select(self.model)
            .options(selectinload(MarketplaceOrder.shipments))
            .filter(MarketplaceOrder.id == id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def mark_accepted(self, db: AsyncSession, *, db_obj: MarketplaceOrder) -> MarketplaceOrder:
        return await self.update(
            db,
            db_obj=db_obj,
            obj_in={
                "order_state": OrderState.SHIPPING.value,
                "accepted_at": datetime.now(timezone.utc),
            },
        )

    async def mark_shipped(
        self,
        db: AsyncSession,
        *,
        db_obj: MarketplaceOrder,
        shipment: ShipmentResult
    ) -> MarketplaceShipment:
        """Record the shipment and move the order to SHIPPED in one commit"""
        shipped_at = datetime.now(timezone.utc)
        await self.update(
            db,
            db_obj=db_obj,
            obj_in={"order_state": OrderState.SHIPPED.value, "shipped_at": shipped_at},
            commit=False,
        )
        db_shipment = MarketplaceShipment(
            marketplace_order_id=db_obj.id,
            mirakl_shipment_id=shipment.shipment_id,
            tracking_number=shipment.tracking_number,
            carrier_code=shipment.carrier_code,
            shipped_at=shipped_at,
        )
        db.add(db_shipment)
        await db.commit()
        await db.refresh(db_shipment)
        return db_shipment

    async def count_pending(self, db: AsyncSession) -> int:
        result = await db.execute(
            select(func.count(MarketplaceOrder.id)).filter(
                MarketplaceOrder.order_state.in_(PENDING_ORDER_STATES)
            )
        )
        return result.scalar()

    async def counts_by_state(self, db: AsyncSession) -> Dict[str, int]:
        result = await db.execute(
            select(MarketplaceOrder.order_state, func.count(MarketplaceOrder.id))
            .group_by(MarketplaceOrder.order_state)
        )
        return {state: count for state, count in result.all()}


marketplace_order_crud = MarketplaceOrderCRUD(MarketplaceOrder)
