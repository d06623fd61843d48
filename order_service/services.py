import logging
import re
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from order_service import models
from order_service.models import ORDER_TRANSITIONS, SHIPPING_TRANSITIONS, OrderStatus, ShippingStatus
from order_service.schemas import OrderCreate, ShippingCreate
from shared.errors import BadRequestError, ConflictError, InvalidStateTransition, NotFoundError
from shared.pagination import paginate

logger = logging.getLogger(__name__)

MONTH_REGEX = r'^(\d{4})-(0[1-9]|1[0-2])$'
SHIPPER_ROLE = "SHIPPER"


def month_range(month: str) -> Tuple[datetime, datetime]:
    """'2024-05' -> [2024-05-01, 2024-06-01)"""
    match = re.match(MONTH_REGEX, month)
    if not match:
        raise BadRequestError(f"Invalid month '{month}', expected YYYY-MM")
    year, mon = int(match.group(1)), int(match.group(2))
    start = datetime(year, mon, 1)
    end = datetime(year + 1, 1, 1) if mon == 12 else datetime(year, mon + 1, 1)
    return start, end


class OrderService:
    def __init__(self, db: Session):
        self.db = db

    def checkout(self, payload: OrderCreate) -> models.Order:
        if not payload.items:
            raise BadRequestError("Cart is empty")

        # Tổng tiền luôn tính lại ở server
        total = sum(item.price * item.quantity for item in payload.items)
        new_order = models.Order(
            user_id=payload.user_id,
            restaurant_id=payload.restaurant_id,
            total_price=total,
            status=OrderStatus.PENDING,
            payment_method=payload.payment_method,
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            delivery_address=payload.delivery_address,
            note=payload.note,
            items=[models.OrderItem(**item.model_dump()) for item in payload.items],
        )
        self.db.add(new_order)
        self.db.commit()
        self.db.refresh(new_order)
        logger.info("🛵 New order #%s for restaurant %s: %s items, total %.0f",
                    new_order.id, new_order.restaurant_id, len(payload.items), total)
        return new_order

    def list_orders(self, restaurant_id: Optional[str] = None, user_id: Optional[str] = None):
        query = self.db.query(models.Order).options(joinedload(models.Order.items))
        if restaurant_id:
            query = query.filter(models.Order.restaurant_id == restaurant_id)
        if user_id:
            query = query.filter(models.Order.user_id == user_id)
        return query.order_by(models.Order.created_at.desc(), models.Order.id.desc()).all()

    def find_one(self, order_id: int) -> models.Order:
        order = self.db.query(models.Order).options(joinedload(models.Order.items)) \
            .filter(models.Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")
        return order

    def update_status(self, order_id: int, status: OrderStatus) -> models.Order:
        order = self.find_one(order_id)
        if status == OrderStatus.DELIVERED:
            raise InvalidStateTransition(f"Order {order_id} is marked DELIVERED by its shipping record")
        if status not in ORDER_TRANSITIONS[order.status]:
            raise InvalidStateTransition(
                f"Cannot change order {order_id} from {order.status.value} to {status.value}"
            )
        order.status = status
        self.db.commit()
        self.db.refresh(order)
        return order

    def stats(self, restaurant_id: str, month: Optional[str] = None) -> dict:
        """Số đơn và doanh thu của một quán (bỏ qua đơn CANCELLED), lọc theo tháng nếu có."""
        query = self.db.query(
            func.count(models.Order.id),
            func.coalesce(func.sum(models.Order.total_price), 0),
        ).filter(
            models.Order.restaurant_id == restaurant_id,
            models.Order.status != OrderStatus.CANCELLED,
        )
        if month:
            start, end = month_range(month)
            query = query.filter(models.Order.created_at >= start, models.Order.created_at < end)

        count, revenue = query.one()
        return {"restaurant_id": restaurant_id, "month": month, "orderCount": count, "revenue": float(revenue)}


class ShippingService:
    def __init__(self, db: Session, users, notifier=None):
        self.db = db
        self.users = users
        self.notifier = notifier

    async def _check_shipper(self, shipper_id: str):
        user = await self.users.get_user(shipper_id)
        if not user:
            raise BadRequestError("Shipper not found")
        role = (user.get("role") or {}).get("name")
        if role != SHIPPER_ROLE:
            raise BadRequestError(f"User {shipper_id} is not a shipper")

    def find_one(self, shipping_id: str) -> models.ShippingDetail:
        shipping = self.db.query(models.ShippingDetail).filter(models.ShippingDetail.id == shipping_id).first()
        if not shipping:
            raise NotFoundError(f"Shipping detail with ID {shipping_id} not found")
        return shipping

    def find_by_order(self, order_id: int) -> models.ShippingDetail:
        shipping = self.db.query(models.ShippingDetail).filter(models.ShippingDetail.order_id == order_id).first()
        if not shipping:
            raise NotFoundError(f"No shipping detail for order {order_id}")
        return shipping

    def list_shipments(self, shipper_id: Optional[str] = None, status: Optional[ShippingStatus] = None,
                       page: int = 1, page_size: int = 10) -> dict:
        query = self.db.query(models.ShippingDetail)
        if shipper_id:
            query = query.filter(models.ShippingDetail.shipper_id == shipper_id)
        if status:
            query = query.filter(models.ShippingDetail.status == status)
        query = query.order_by(models.ShippingDetail.created_at, models.ShippingDetail.id)
        return paginate(query, page, page_size)

    async def create(self, payload: ShippingCreate) -> models.ShippingDetail:
        order = self.db.query(models.Order).filter(models.Order.id == payload.order_id).first()
        if not order:
            raise NotFoundError("Order not found")

        existing = self.db.query(models.ShippingDetail) \
            .filter(models.ShippingDetail.order_id == payload.order_id).first()
        if existing:
            raise ConflictError(f"Order {payload.order_id} already has a shipping record")

        if payload.shipper_id:
            await self._check_shipper(payload.shipper_id)

        shipping = models.ShippingDetail(
            order_id=payload.order_id, shipper_id=payload.shipper_id, status=ShippingStatus.PENDING
        )
        self.db.add(shipping)
        try:
            self.db.commit()
        except IntegrityError:
            # Request song song đã tạo trước
            self.db.rollback()
            raise ConflictError(f"Order {payload.order_id} already has a shipping record")
        self.db.refresh(shipping)
        return shipping

    async def assign_shipper(self, shipping_id: str, shipper_id: str) -> models.ShippingDetail:
        shipping = self.find_one(shipping_id)
        if not SHIPPING_TRANSITIONS[shipping.status]:
            raise InvalidStateTransition(f"Shipping {shipping_id} is already {shipping.status.value}")

        await self._check_shipper(shipper_id)
        shipping.shipper_id = shipper_id
        self.db.commit()
        self.db.refresh(shipping)
        return shipping

    async def update_status(self, shipping_id: str, status: ShippingStatus) -> models.ShippingDetail:
        shipping = self.find_one(shipping_id)
        current = shipping.status
        if status not in SHIPPING_TRANSITIONS[current]:
            raise InvalidStateTransition(
                f"Cannot change shipping {shipping_id} from {current.value} to {status.value}"
            )
        if status == ShippingStatus.SHIPPING and not shipping.shipper_id:
            raise BadRequestError("A shipper must be assigned before shipping")

        shipping.status = status
        if status == ShippingStatus.DELIVERED:
            shipping.order.status = OrderStatus.DELIVERED
        self.db.commit()
        self.db.refresh(shipping)
        logger.info("Shipping %s: %s -> %s", shipping.id, current.value, status.value)

        if self.notifier:
            await self.notifier.notify(
                shipping.order.user_id, f"Order #{shipping.order_id} shipping status: {status.value}"
            )
        return shipping
