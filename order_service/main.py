from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from order_service.database import Base, engine, get_db
from order_service.models import ShippingStatus
from order_service.schemas import (
    OrderCreate, OrderResponse, OrderStats, OrderStatusUpdate, ShipperAssign, ShippingCreate,
    ShippingPage, ShippingResponse, ShippingStatusUpdate,
)
from order_service.services import OrderService, ShippingService
from shared import permissions
from shared.auth import require_permission
from shared.clients import Notifier, UserDirectory
from shared.errors import register_error_handlers
from shared.log import setup_logging
from shared.pagination import page_params

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)


def get_user_directory():
    return UserDirectory()


def get_notifier():
    return Notifier()


def get_order_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)


def get_shipping_service(db: Session = Depends(get_db), users=Depends(get_user_directory),
                         notifier=Depends(get_notifier)) -> ShippingService:
    return ShippingService(db, users, notifier=notifier)


def allow(permission: str):
    return Depends(require_permission(permission))


# ==========================================
# API ĐƠN HÀNG
# ==========================================
@app.post("/checkout", response_model=OrderResponse, dependencies=[allow(permissions.ORDER_WRITE)])
def create_order(payload: OrderCreate, service: OrderService = Depends(get_order_service)):
    return service.checkout(payload)


@app.get("/orders", response_model=List[OrderResponse], dependencies=[allow(permissions.ORDER_READ)])
def get_orders(restaurant_id: Optional[str] = None, user_id: Optional[str] = None,
               service: OrderService = Depends(get_order_service)):
    return service.list_orders(restaurant_id, user_id)


# INTERNAL API: Restaurant Service gọi để thống kê theo chủ quán
@app.get("/orders/stats", response_model=OrderStats)
def get_order_stats(restaurant_id: str, month: Optional[str] = Query(None),
                    service: OrderService = Depends(get_order_service)):
    return service.stats(restaurant_id, month)


@app.get("/orders/{order_id}", response_model=OrderResponse, dependencies=[allow(permissions.ORDER_READ)])
def get_order_detail(order_id: int, service: OrderService = Depends(get_order_service)):
    return service.find_one(order_id)


@app.put("/orders/{order_id}/status", response_model=OrderResponse, dependencies=[allow(permissions.ORDER_MANAGE)])
def update_order_status(order_id: int, payload: OrderStatusUpdate, service: OrderService = Depends(get_order_service)):
    return service.update_status(order_id, payload.status)


# ==========================================
# API GIAO HÀNG
# ==========================================
@app.post("/shipping", response_model=ShippingResponse, dependencies=[allow(permissions.SHIPPING_WRITE)])
async def create_shipping(payload: ShippingCreate, service: ShippingService = Depends(get_shipping_service)):
    return await service.create(payload)


@app.get("/shipping", response_model=ShippingPage, dependencies=[allow(permissions.SHIPPING_READ)])
def list_shipping(shipper_id: Optional[str] = None, status: Optional[ShippingStatus] = None,
                  paging: tuple = Depends(page_params), service: ShippingService = Depends(get_shipping_service)):
    page, page_size = paging
    return service.list_shipments(shipper_id, status, page, page_size)


@app.get("/shipping/order/{order_id}", response_model=ShippingResponse,
         dependencies=[allow(permissions.SHIPPING_READ)])
def get_shipping_by_order(order_id: int, service: ShippingService = Depends(get_shipping_service)):
    return service.find_by_order(order_id)


@app.get("/shipping/{shipping_id}", response_model=ShippingResponse, dependencies=[allow(permissions.SHIPPING_READ)])
def get_shipping(shipping_id: str, service: ShippingService = Depends(get_shipping_service)):
    return service.find_one(shipping_id)


@app.put("/shipping/{shipping_id}/shipper", response_model=ShippingResponse,
         dependencies=[allow(permissions.SHIPPING_WRITE)])
async def assign_shipper(shipping_id: str, payload: ShipperAssign,
                         service: ShippingService = Depends(get_shipping_service)):
    return await service.assign_shipper(shipping_id, payload.shipper_id)


@app.put("/shipping/{shipping_id}/status", response_model=ShippingResponse,
         dependencies=[allow(permissions.SHIPPING_WRITE)])
async def update_shipping_status(shipping_id: str, payload: ShippingStatusUpdate,
                                 service: ShippingService = Depends(get_shipping_service)):
    return await service.update_status(shipping_id, payload.status)
