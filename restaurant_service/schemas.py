from datetime import datetime, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from restaurant_service.models import RestaurantStatus


class AddressIn(BaseModel):
    street: str
    ward: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None


class RestaurantCreate(BaseModel):
    owner_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    phone: Optional[str] = None
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    # Địa chỉ dạng chuỗi (lưu vào street) và tọa độ client gửi lên
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class RestaurantUpdate(BaseModel):
    """Các trường được phép cập nhật. Trạng thái chỉ đổi qua approve/reject."""
    model_config = ConfigDict(extra="forbid")

    owner_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    phone: Optional[str] = None
    open_time: Optional[time] = None
    close_time: Optional[time] = None

    @field_validator("owner_id", "name")
    @classmethod
    def not_null(cls, v):
        # Cột bắt buộc: có thể bỏ qua nhưng không được gửi null
        if v is None:
            raise ValueError("must not be null")
        return v


class AddressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    street: Optional[str] = None
    ward: Optional[str] = None
    district: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class FoodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: float
    discount: int = 0
    image_url: Optional[str] = None
    restaurant_id: str


class RestaurantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    background_image: Optional[str] = None
    certificate_image: Optional[str] = None
    status: RestaurantStatus
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    owner_id: str
    address: Optional[AddressResponse] = None
    created_at: Optional[datetime] = None


class RestaurantDetail(RestaurantResponse):
    foods: List[FoodResponse] = []


class RestaurantPreview(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    address: Optional[AddressResponse] = None
    avatar: Optional[str] = None
    description: Optional[str] = None
    open_time: Optional[time] = None
    close_time: Optional[time] = None


class RestaurantPage(BaseModel):
    items: List[RestaurantResponse]
    totalItems: int
    page: int
    pageSize: int
    totalPages: int


class PreviewPage(BaseModel):
    items: List[RestaurantPreview]
    totalItems: int
    page: int
    pageSize: int
    totalPages: int


class OwnerStats(BaseModel):
    restaurant_id: str
    month: Optional[str] = None
    orderCount: int
    revenue: float


class FoodCreate(BaseModel):
    name: str
    price: float = Field(ge=0)
    discount: int = Field(0, ge=0, le=100)
