import datetime
import enum
import uuid

from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Integer, String, Text, Time
from sqlalchemy.orm import relationship

from restaurant_service.database import Base


class RestaurantStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    street = Column(String(255))
    ward = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)

    # Chỉ có giá trị khi geocoding thành công (hoặc client gửi lên)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    restaurant = relationship("Restaurant", back_populates="address", uselist=False)


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), index=True, nullable=False)
    description = Column(Text, nullable=True)
    phone = Column(String(20), nullable=True)

    avatar = Column(String(500), default="")
    background_image = Column(String(500), default="")
    certificate_image = Column(String(500), default="")

    status = Column(Enum(RestaurantStatus), default=RestaurantStatus.PENDING, nullable=False, index=True)
    open_time = Column(Time, nullable=True)
    close_time = Column(Time, nullable=True)

    # ID của User bên user_service
    owner_id = Column(String(28), index=True, nullable=False)

    address_id = Column(Integer, ForeignKey("addresses.id"), unique=True, nullable=True)
    address = relationship("Address", back_populates="restaurant", lazy="joined")

    foods = relationship("Food", back_populates="restaurant", cascade="all, delete-orphan")

    created_at = Column(DateTime, default=datetime.datetime.utcnow)


class Food(Base):
    __tablename__ = "foods"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), index=True)
    price = Column(Float)
    discount = Column(Integer, default=0)

    image_url = Column(String(500), nullable=True)

    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), index=True)
    restaurant = relationship("Restaurant", back_populates="foods")
