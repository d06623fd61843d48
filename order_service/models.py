import datetime
import enum
import uuid

from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from order_service.database import Base


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PAID = "PAID"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# Đổi trạng thái đơn bằng tay. DELIVERED chỉ do ShippingService đặt khi giao xong
ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


class ShippingStatus(str, enum.Enum):
    PENDING = "PENDING"
    SHIPPING = "SHIPPING"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


# Trạng thái kế tiếp hợp lệ; DELIVERED / CANCELLED / RETURNED là trạng thái cuối
SHIPPING_TRANSITIONS = {
    ShippingStatus.PENDING: {ShippingStatus.SHIPPING, ShippingStatus.CANCELLED, ShippingStatus.RETURNED},
    ShippingStatus.SHIPPING: {ShippingStatus.DELIVERED, ShippingStatus.CANCELLED, ShippingStatus.RETURNED},
    ShippingStatus.DELIVERED: set(),
    ShippingStatus.CANCELLED: set(),
    ShippingStatus.RETURNED: set(),
}


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(28), index=True)  # ID của User bên user_service
    restaurant_id = Column(String(36), index=True)  # ID quán bên restaurant_service

    total_price = Column(Float)
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False)
    payment_method = Column(String(20), default="COD")  # COD hoặc BANKING

    customer_name = Column(String(100))
    customer_phone = Column(String(20))
    delivery_address = Column(String(255))
    note = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    shipping = relationship("ShippingDetail", back_populates="order", uselist=False)


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"))

    food_id = Column(Integer)
    food_name = Column(String(100))
    image_url = Column(String(500), nullable=True)

    price = Column(Float)
    quantity = Column(Integer)

    order = relationship("Order", back_populates="items")


class ShippingDetail(Base):
    __tablename__ = "shipping_details"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    status = Column(Enum(ShippingStatus), default=ShippingStatus.PENDING, nullable=False, index=True)

    # Shipper là một User bên user_service, có thể gán sau
    shipper_id = Column(String(28), index=True, nullable=True)

    # Mỗi đơn hàng chỉ có một bản ghi giao hàng
    order_id = Column(Integer, ForeignKey("orders.id"), unique=True, nullable=False)
    order = relationship("Order", back_populates="shipping", lazy="joined")

    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)
