from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from order_service.models import OrderStatus, ShippingStatus


# --- ĐƠN HÀNG ---
class OrderItemCreate(BaseModel):
    food_id: int
    food_name: str
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)
    image_url: Optional[str] = None


class OrderCreate(BaseModel):
    user_id: str
    restaurant_id: str
    items: List[OrderItemCreate]
    customer_name: str
    customer_phone: str
    delivery_address: str
    payment_method: str = "COD"  # COD hoặc BANKING
    note: Optional[str] = None


class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    food_id: int
    food_name: str
    quantity: int
    price: float
    image_url: Optional[str] = None


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    restaurant_id: str
    total_price: float
    status: OrderStatus
    payment_method: str
    created_at: Optional[datetime] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    delivery_address: Optional[str] = None
    note: Optional[str] = None
    items: List[OrderItemResponse] = []


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderStats(BaseModel):
    restaurant_id: str
    month: Optional[str] = None
    orderCount: int
    revenue: float


# --- GIAO HÀNG ---
class ShippingCreate(BaseModel):
    order_id: int
    shipper_id: Optional[str] = None


class ShipperAssign(BaseModel):
    shipper_id: str


class ShippingStatusUpdate(BaseModel):
    status: ShippingStatus


class ShippingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: ShippingStatus
    shipper_id: Optional[str] = None
    order_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ShippingPage(BaseModel):
    items: List[ShippingResponse]
    totalItems: int
    page: int
    pageSize: int
    totalPages: int
