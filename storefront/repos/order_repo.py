# storefront/repos/order_repo.py
from datetime import datetime

from sqlalchemy import select, update, func
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.util import identity_key

from storefront.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def list_orders(
        self,
        customer_id: int | None = None,
        status: str | None = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[OrderModel], int]:
        conditions = []
        if customer_id is not None:
            conditions.append(OrderModel.customer_id == customer_id)
        if status:
            conditions.append(OrderModel.status == status)

        stmt = (
            select(OrderModel)
            .where(*conditions)
            .options(selectinload(OrderModel.items))
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset(offset)
            .limit(limit)
        )
        total = self.db.execute(
            select(func.count()).select_from(OrderModel).where(*conditions)
        ).scalar_one()
        return list(self.db.execute(stmt).scalars().all()), total

    def count_orders_since(self, since: datetime) -> int:
        stmt = select(func.count()).select_from(OrderModel).where(OrderModel.created_at >= since)
        return self.db.execute(stmt).scalar_one()

    def order_number_exists(self, order_number: str) -> bool:
        stmt = select(OrderModel.id).where(OrderModel.order_number == order_number)
        return self.db.execute(stmt).first() is not None

    def update_order_version(self, order_id: int, old_version: int, new_data: dict) -> int:
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        order = self.db.identity_map.get(identity_key(OrderModel, order_id))
        if order is not None:
            self.db.expire(order)
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
