import os
from contextlib import asynccontextmanager
from datetime import time
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, File, Form, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm import Session

from restaurant_service.clients import OrderStatsClient
from restaurant_service.database import Base, engine, get_db
from restaurant_service.geocoding import Geocoder
from restaurant_service.schemas import (
    FoodCreate, FoodResponse, OwnerStats, PreviewPage, RestaurantCreate, RestaurantDetail,
    RestaurantPage, RestaurantResponse, RestaurantUpdate,
)
from restaurant_service.services import RestaurantService
from restaurant_service.storage import LocalStorage, cleanup_files
from shared import permissions
from shared.auth import require_permission
from shared.clients import Notifier, UserDirectory
from shared.config import STATIC_DIR
from shared.errors import NotFoundError, register_error_handlers
from shared.log import setup_logging
from shared.pagination import page_params

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(lifespan=lifespan)

# CẤU HÌNH CORS (Để Frontend gọi được API)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

# THƯ MỤC CHỨA ẢNH UPLOAD
os.makedirs(STATIC_DIR, exist_ok=True)
app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")


# ==========================================
# DEPENDENCIES
# ==========================================
def get_storage():
    return LocalStorage()


def get_geocoder():
    return Geocoder()


def get_user_directory():
    return UserDirectory()


def get_order_stats():
    return OrderStatsClient()


def get_notifier():
    return Notifier()


def get_service(
    db: Session = Depends(get_db),
    users=Depends(get_user_directory),
    storage=Depends(get_storage),
    geocoder=Depends(get_geocoder),
    orders=Depends(get_order_stats),
    notifier=Depends(get_notifier),
) -> RestaurantService:
    return RestaurantService(db, users, storage, geocoder, orders=orders, notifier=notifier)


def allow(permission: str):
    return Depends(require_permission(permission))


def address_form(
    street: Optional[str] = Form(None),
    ward: Optional[str] = Form(None),
    district: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
) -> Optional[dict]:
    if not street:
        return None
    return {"street": street, "ward": ward, "district": district, "city": city}


# ==========================================
# API TẠO QUÁN & YÊU CẦU MỞ QUÁN
# ==========================================
@app.post("/restaurants", response_model=RestaurantResponse, dependencies=[allow(permissions.RESTAURANT_WRITE)])
async def create_restaurant(payload: RestaurantCreate, service: RestaurantService = Depends(get_service)):
    return await service.create(payload)


@app.post("/restaurants/requests", response_model=RestaurantResponse,
          dependencies=[allow(permissions.RESTAURANT_REQUEST)])
async def request_restaurant(payload: RestaurantCreate, service: RestaurantService = Depends(get_service)):
    return await service.request_restaurant(payload)


@app.post("/restaurants/requests/upload", response_model=RestaurantResponse,
          dependencies=[allow(permissions.RESTAURANT_REQUEST)])
async def request_restaurant_with_files(
    owner_id: Optional[str] = Form(None),
    name: str = Form(...),
    description: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    open_time: Optional[time] = Form(None),
    close_time: Optional[time] = Form(None),
    latitude: Optional[float] = Form(None),
    longitude: Optional[float] = Form(None),
    address: Optional[dict] = Depends(address_form),
    avatar: Optional[UploadFile] = File(None),
    background: Optional[UploadFile] = File(None),
    certificate: Optional[UploadFile] = File(None),
    service: RestaurantService = Depends(get_service),
):
    dto = RestaurantCreate(
        owner_id=owner_id, name=name, description=description, phone=phone,
        open_time=open_time, close_time=close_time, latitude=latitude, longitude=longitude,
    )
    return await service.request_restaurant_with_files(dto, address, avatar, background, certificate)


@app.get("/restaurants/requests", response_model=RestaurantPage,
         dependencies=[allow(permissions.RESTAURANT_APPROVE)])
def get_restaurant_requests(paging: tuple = Depends(page_params), service: RestaurantService = Depends(get_service)):
    return service.get_restaurant_requests(*paging)


@app.delete("/restaurants/requests/{restaurant_id}", dependencies=[allow(permissions.RESTAURANT_DELETE)])
def delete_restaurant_request(restaurant_id: str, background_tasks: BackgroundTasks,
                              service: RestaurantService = Depends(get_service)):
    stale = service.delete_restaurant_request(restaurant_id)
    background_tasks.add_task(cleanup_files, service.storage, stale)
    return {"message": "Deleted"}


@app.put("/restaurants/{restaurant_id}/approve", response_model=RestaurantResponse,
         dependencies=[allow(permissions.RESTAURANT_APPROVE)])
async def approve_restaurant(restaurant_id: str, service: RestaurantService = Depends(get_service)):
    return await service.approve_restaurant(restaurant_id)


@app.put("/restaurants/{restaurant_id}/reject", response_model=RestaurantResponse,
         dependencies=[allow(permissions.RESTAURANT_APPROVE)])
async def reject_restaurant(restaurant_id: str, service: RestaurantService = Depends(get_service)):
    return await service.reject_restaurant(restaurant_id)


# ==========================================
# API DANH SÁCH (PHÂN TRANG)
# ==========================================
@app.get("/restaurants", response_model=RestaurantPage, dependencies=[allow(permissions.RESTAURANT_READ)])
def find_all(paging: tuple = Depends(page_params), service: RestaurantService = Depends(get_service)):
    return service.find_all(*paging)


@app.get("/restaurants/approved", response_model=RestaurantPage)
def find_all_approved(paging: tuple = Depends(page_params), service: RestaurantService = Depends(get_service)):
    return service.find_all_approved(*paging)


@app.get("/restaurants/preview", response_model=PreviewPage)
def get_preview(paging: tuple = Depends(page_params), approved: bool = Query(False),
                service: RestaurantService = Depends(get_service)):
    page, page_size = paging
    return service.get_preview(page, page_size, approved_only=approved)


# ==========================================
# API THEO CHỦ QUÁN
# ==========================================
@app.get("/restaurants/owner/{owner_id}", response_model=RestaurantDetail,
         dependencies=[allow(permissions.RESTAURANT_READ)])
def find_by_owner(owner_id: str, service: RestaurantService = Depends(get_service)):
    restaurant = service.find_by_owner_id(owner_id)
    if not restaurant:
        # Cùng thông báo với phần thống kê
        raise NotFoundError("No restaurant found for this owner")
    return restaurant


@app.get("/restaurants/owner/{owner_id}/stats", response_model=OwnerStats,
         dependencies=[allow(permissions.RESTAURANT_READ)])
async def owner_stats(owner_id: str, month: Optional[str] = Query(None),
                      service: RestaurantService = Depends(get_service)):
    return await service.get_owner_stats(owner_id, month)


# ==========================================
# API CHI TIẾT / SỬA / XÓA QUÁN
# ==========================================
@app.get("/restaurants/{restaurant_id}", response_model=RestaurantDetail)
def find_one(restaurant_id: str, service: RestaurantService = Depends(get_service)):
    return service.find_one(restaurant_id)


@app.put("/restaurants/{restaurant_id}", response_model=RestaurantResponse,
         dependencies=[allow(permissions.RESTAURANT_WRITE)])
async def update_restaurant(restaurant_id: str, payload: RestaurantUpdate,
                            service: RestaurantService = Depends(get_service)):
    return await service.update(restaurant_id, payload)


@app.put("/restaurants/{restaurant_id}/upload", response_model=RestaurantResponse,
         dependencies=[allow(permissions.RESTAURANT_WRITE)])
async def update_restaurant_with_files(
    restaurant_id: str,
    background_tasks: BackgroundTasks,
    owner_id: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    open_time: Optional[time] = Form(None),
    close_time: Optional[time] = Form(None),
    address: Optional[dict] = Depends(address_form),
    avatar: Optional[UploadFile] = File(None),
    background: Optional[UploadFile] = File(None),
    certificate: Optional[UploadFile] = File(None),
    service: RestaurantService = Depends(get_service),
):
    fields = {
        "owner_id": owner_id, "name": name, "description": description, "phone": phone,
        "open_time": open_time, "close_time": close_time,
    }
    dto = RestaurantUpdate(**{k: v for k, v in fields.items() if v is not None})

    if address:
        restaurant, stale = await service.update_with_address_and_files(
            restaurant_id, dto, address, avatar, background, certificate
        )
    else:
        restaurant, stale = await service.update_with_files(restaurant_id, dto, avatar, background, certificate)

    # Xóa ảnh cũ sau khi trả response, lỗi không ảnh hưởng kết quả cập nhật
    background_tasks.add_task(cleanup_files, service.storage, stale)
    return restaurant


@app.delete("/restaurants/{restaurant_id}", dependencies=[allow(permissions.RESTAURANT_DELETE)])
def delete_restaurant(restaurant_id: str, background_tasks: BackgroundTasks,
                      service: RestaurantService = Depends(get_service)):
    stale = service.remove(restaurant_id)
    background_tasks.add_task(cleanup_files, service.storage, stale)
    return {"message": "Deleted"}


# ==========================================
# API MÓN ĂN
# ==========================================
@app.post("/restaurants/{restaurant_id}/foods", response_model=FoodResponse,
          dependencies=[allow(permissions.RESTAURANT_WRITE)])
async def add_food(
    restaurant_id: str,
    name: str = Form(...),
    price: float = Form(..., ge=0),
    discount: int = Form(0, ge=0, le=100),
    image: Optional[UploadFile] = File(None),
    service: RestaurantService = Depends(get_service),
):
    dto = FoodCreate(name=name, price=price, discount=discount)
    return await service.add_food(restaurant_id, dto, image)


@app.delete("/foods/{food_id}", dependencies=[allow(permissions.RESTAURANT_WRITE)])
def delete_food(food_id: int, background_tasks: BackgroundTasks, service: RestaurantService = Depends(get_service)):
    stale = service.remove_food(food_id)
    background_tasks.add_task(cleanup_files, service.storage, stale)
    return {"message": "Deleted"}
