import logging
from typing import List, Optional, Tuple

from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from restaurant_service import models
from restaurant_service.models import RestaurantStatus
from restaurant_service.schemas import FoodCreate, RestaurantCreate, RestaurantUpdate
from restaurant_service.storage import (
    AVATAR_FOLDER, BACKGROUND_FOLDER, CERTIFICATE_FOLDER, FOOD_FOLDER, cleanup_files,
)
from shared.errors import BadRequestError, InvalidStateTransition, NotFoundError
from shared.pagination import paginate

logger = logging.getLogger(__name__)

# (cột lưu URL, thư mục trên storage)
FILE_FIELDS = (
    ("avatar", AVATAR_FOLDER),
    ("background_image", BACKGROUND_FOLDER),
    ("certificate_image", CERTIFICATE_FOLDER),
)


def _files(avatar, background, certificate) -> dict:
    return {"avatar": avatar, "background_image": background, "certificate_image": certificate}


class RestaurantService:
    def __init__(self, db: Session, users, storage, geocoder, orders=None, notifier=None):
        self.db = db
        self.users = users
        self.storage = storage
        self.geocoder = geocoder
        self.orders = orders
        self.notifier = notifier

    # ==========================================
    # HELPERS
    # ==========================================
    async def _get_owner(self, owner_id: Optional[str]) -> dict:
        if not owner_id:
            raise BadRequestError("Owner ID is required")
        owner = await self.users.get_user(owner_id)
        if not owner:
            raise BadRequestError("Owner not found")
        return owner

    async def _resolve_coordinates(self, address: models.Address, address_data: dict):
        """Geocoding best-effort: lỗi hoặc không có kết quả thì để tọa độ trống."""
        label = f"{address_data.get('street')}, {address_data.get('city')}"
        try:
            coordinates = await self.geocoder.geocode(address_data)
        except Exception as e:
            logger.error("Geocoding failed for address %s: %s", label, e, exc_info=True)
            return

        if coordinates:
            address.latitude = coordinates["lat"]
            address.longitude = coordinates["lng"]
            logger.info("Geocoding successful for address: %s", label)
        else:
            logger.warning("Geocoding returned no results for address: %s", label)

    async def _upload_all(self, files: dict) -> dict:
        """Upload các file được gửi lên. Lỗi giữa chừng: dọn các file đã upload rồi raise."""
        uploaded = {}
        try:
            for field, folder in FILE_FIELDS:
                if files.get(field):
                    uploaded[field] = await self.storage.upload(files[field], folder)
        except Exception as e:
            logger.error("Error uploading files: %s", e)
            await cleanup_files(self.storage, uploaded.values())
            raise BadRequestError(f"File upload failed: {e}")
        return uploaded

    def _save(self, instance, error_prefix: str):
        try:
            self.db.add(instance)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise BadRequestError(f"{error_prefix}: {e}")
        self.db.refresh(instance)
        return instance

    async def _notify(self, user_id: str, message: str):
        if self.notifier:
            await self.notifier.notify(user_id, message)

    # ==========================================
    # TẠO QUÁN
    # ==========================================
    async def _create_from_dto(self, dto: RestaurantCreate, status: RestaurantStatus, error_prefix: str):
        await self._get_owner(dto.owner_id)

        data = dto.model_dump(exclude={"address", "latitude", "longitude"})
        restaurant = models.Restaurant(**data, status=status)
        if dto.address:
            restaurant.address = models.Address(
                street=dto.address, latitude=dto.latitude, longitude=dto.longitude
            )
        return self._save(restaurant, error_prefix)

    async def create(self, dto: RestaurantCreate) -> models.Restaurant:
        """Admin tạo quán trực tiếp: APPROVED ngay, không qua duyệt."""
        return await self._create_from_dto(dto, RestaurantStatus.APPROVED, "Failed to create restaurant")

    async def request_restaurant(self, dto: RestaurantCreate) -> models.Restaurant:
        """Gửi yêu cầu mở quán, chờ admin duyệt."""
        return await self._create_from_dto(dto, RestaurantStatus.PENDING, "Failed to request restaurant")

    async def request_restaurant_with_files(
        self,
        dto: RestaurantCreate,
        address_data: Optional[dict] = None,
        avatar: Optional[UploadFile] = None,
        background: Optional[UploadFile] = None,
        certificate: Optional[UploadFile] = None,
    ) -> models.Restaurant:
        await self._get_owner(dto.owner_id)

        # Địa chỉ chỉ được lưu cùng transaction với quán
        address = None
        if address_data:
            address = models.Address(**address_data)
            if dto.latitude is not None and dto.longitude is not None:
                address.latitude = dto.latitude
                address.longitude = dto.longitude
            else:
                await self._resolve_coordinates(address, address_data)
        elif dto.address:
            address = models.Address(street=dto.address, latitude=dto.latitude, longitude=dto.longitude)

        uploaded = await self._upload_all(_files(avatar, background, certificate))

        data = dto.model_dump(exclude={"address", "latitude", "longitude"})
        restaurant = models.Restaurant(
            **data,
            avatar=uploaded.get("avatar", ""),
            background_image=uploaded.get("background_image", ""),
            certificate_image=uploaded.get("certificate_image", ""),
            address=address,
            status=RestaurantStatus.APPROVED,
        )
        try:
            return self._save(restaurant, "Failed to create restaurant")
        except BadRequestError:
            await cleanup_files(self.storage, uploaded.values())
            raise

    # ==========================================
    # CẬP NHẬT QUÁN
    # ==========================================
    async def _update(self, restaurant_id: str, dto: RestaurantUpdate, address_data: Optional[dict],
                      files: dict) -> Tuple[models.Restaurant, List[str]]:
        restaurant = self.find_one(restaurant_id)
        data = dto.model_dump(exclude_unset=True)

        owner_id = data.pop("owner_id", None)
        if owner_id:
            await self._get_owner(owner_id)
            restaurant.owner_id = owner_id

        if address_data:
            address = restaurant.address or models.Address()
            for field, value in address_data.items():
                setattr(address, field, value)
            # Tọa độ cũ không còn đúng với địa chỉ mới
            address.latitude = None
            address.longitude = None
            await self._resolve_coordinates(address, address_data)
            restaurant.address = address

        old_urls = []
        new_urls = []
        try:
            for field, folder in FILE_FIELDS:
                if files.get(field):
                    old_urls.append(getattr(restaurant, field))
                    url = await self.storage.upload(files[field], folder)
                    new_urls.append(url)
                    setattr(restaurant, field, url)

            # null tường minh xóa giá trị của cột cho phép null
            for field, value in data.items():
                setattr(restaurant, field, value)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            await cleanup_files(self.storage, new_urls)
            raise BadRequestError(f"Failed to update restaurant: {e}")

        self.db.refresh(restaurant)
        # File cũ chỉ được xóa sau khi lưu thành công, do caller chạy nền
        return restaurant, [url for url in old_urls if url]

    async def update(self, restaurant_id: str, dto: RestaurantUpdate) -> models.Restaurant:
        restaurant, _ = await self._update(restaurant_id, dto, None, {})
        return restaurant

    async def update_with_files(
        self,
        restaurant_id: str,
        dto: RestaurantUpdate,
        avatar: Optional[UploadFile] = None,
        background: Optional[UploadFile] = None,
        certificate: Optional[UploadFile] = None,
    ) -> Tuple[models.Restaurant, List[str]]:
        return await self._update(restaurant_id, dto, None, _files(avatar, background, certificate))

    async def update_with_address_and_files(
        self,
        restaurant_id: str,
        dto: RestaurantUpdate,
        address_data: Optional[dict] = None,
        avatar: Optional[UploadFile] = None,
        background: Optional[UploadFile] = None,
        certificate: Optional[UploadFile] = None,
    ) -> Tuple[models.Restaurant, List[str]]:
        return await self._update(restaurant_id, dto, address_data, _files(avatar, background, certificate))

    # ==========================================
    # DUYỆT YÊU CẦU
    # ==========================================
    async def _transition(self, restaurant_id: str, target: RestaurantStatus) -> models.Restaurant:
        restaurant = self.find_one(restaurant_id)
        if restaurant.status != RestaurantStatus.PENDING:
            raise InvalidStateTransition(f"Restaurant with ID {restaurant_id} is not in pending status")

        restaurant.status = target
        self.db.commit()
        self.db.refresh(restaurant)
        logger.info("Restaurant %s -> %s", restaurant.id, target.value)

        await self._notify(restaurant.owner_id, f"Restaurant '{restaurant.name}' was {target.value.lower()}")
        return restaurant

    async def approve_restaurant(self, restaurant_id: str) -> models.Restaurant:
        return await self._transition(restaurant_id, RestaurantStatus.APPROVED)

    async def reject_restaurant(self, restaurant_id: str) -> models.Restaurant:
        return await self._transition(restaurant_id, RestaurantStatus.REJECTED)

    def get_restaurant_requests(self, page: int = 1, page_size: int = 10) -> dict:
        query = self.db.query(models.Restaurant).filter(models.Restaurant.status == RestaurantStatus.PENDING)
        return paginate(query.order_by(models.Restaurant.created_at, models.Restaurant.id), page, page_size)

    def delete_restaurant_request(self, restaurant_id: str) -> List[str]:
        restaurant = self.find_one(restaurant_id)
        if restaurant.status != RestaurantStatus.PENDING:
            raise InvalidStateTransition(f"Restaurant with ID {restaurant_id} is not a pending request")
        return self._delete(restaurant_id, f"Restaurant request with ID {restaurant_id} not found")

    # ==========================================
    # TRUY VẤN
    # ==========================================
    def find_all(self, page: int = 1, page_size: int = 10) -> dict:
        query = self.db.query(models.Restaurant).order_by(models.Restaurant.created_at, models.Restaurant.id)
        return paginate(query, page, page_size)

    def find_all_approved(self, page: int = 1, page_size: int = 10) -> dict:
        query = self.db.query(models.Restaurant).filter(models.Restaurant.status == RestaurantStatus.APPROVED)
        return paginate(query.order_by(models.Restaurant.created_at, models.Restaurant.id), page, page_size)

    def get_preview(self, page: int = 1, page_size: int = 10, approved_only: bool = False) -> dict:
        query = self.db.query(models.Restaurant)
        if approved_only:
            query = query.filter(models.Restaurant.status == RestaurantStatus.APPROVED)

        def to_preview(r):
            return {
                "id": r.id,
                "name": r.name,
                "address": r.address,
                "avatar": r.avatar,
                "description": r.description,
                "open_time": r.open_time,
                "close_time": r.close_time,
            }

        query = query.order_by(models.Restaurant.created_at, models.Restaurant.id)
        return paginate(query, page, page_size, transform=to_preview)

    def find_one(self, restaurant_id: str) -> models.Restaurant:
        restaurant = self.db.query(models.Restaurant).filter(models.Restaurant.id == restaurant_id).first()
        if not restaurant:
            raise NotFoundError(f"Restaurant with ID {restaurant_id} not found")
        return restaurant

    def find_by_owner_id(self, owner_id: str) -> Optional[models.Restaurant]:
        return self.db.query(models.Restaurant).filter(models.Restaurant.owner_id == owner_id).first()

    # ==========================================
    # XÓA
    # ==========================================
    def _delete(self, restaurant_id: str, not_found: str) -> List[str]:
        row = self.db.query(
            models.Restaurant.address_id,
            models.Restaurant.avatar,
            models.Restaurant.background_image,
            models.Restaurant.certificate_image,
        ).filter(models.Restaurant.id == restaurant_id).first()
        food_images = [
            url for (url,) in self.db.query(models.Food.image_url).filter(models.Food.restaurant_id == restaurant_id)
        ]

        self.db.query(models.Food).filter(models.Food.restaurant_id == restaurant_id).delete()
        affected = self.db.query(models.Restaurant).filter(models.Restaurant.id == restaurant_id).delete()
        if row and row.address_id:
            self.db.query(models.Address).filter(models.Address.id == row.address_id).delete()
        self.db.commit()

        if affected == 0:
            raise NotFoundError(not_found)
        # Trả về các file cần dọn
        return [url for url in (row.avatar, row.background_image, row.certificate_image, *food_images) if url]

    def remove(self, restaurant_id: str) -> List[str]:
        return self._delete(restaurant_id, f"Restaurant with ID {restaurant_id} not found")

    # ==========================================
    # THỐNG KÊ THEO CHỦ QUÁN
    # ==========================================
    async def get_owner_stats(self, owner_id: str, month: Optional[str] = None) -> dict:
        restaurant = self.find_by_owner_id(owner_id)
        if not restaurant:
            raise NotFoundError("No restaurant found for this owner")

        stats = await self.orders.stats(restaurant.id, month)
        return {
            "restaurant_id": restaurant.id,
            "month": month,
            "orderCount": stats["orderCount"],
            "revenue": stats["revenue"],
        }

    async def get_order_count_by_owner(self, owner_id: str, month: Optional[str] = None) -> int:
        return (await self.get_owner_stats(owner_id, month))["orderCount"]

    async def get_revenue_by_owner(self, owner_id: str, month: Optional[str] = None) -> float:
        return (await self.get_owner_stats(owner_id, month))["revenue"]

    # ==========================================
    # MÓN ĂN
    # ==========================================
    async def add_food(self, restaurant_id: str, dto: FoodCreate, image: Optional[UploadFile] = None) -> models.Food:
        self.find_one(restaurant_id)

        image_url = ""
        if image:
            try:
                image_url = await self.storage.upload(image, FOOD_FOLDER)
            except Exception as e:
                raise BadRequestError(f"File upload failed: {e}")

        food = models.Food(restaurant_id=restaurant_id, image_url=image_url, **dto.model_dump())
        return self._save(food, "Failed to create food")

    def remove_food(self, food_id: int) -> List[str]:
        food = self.db.query(models.Food).filter(models.Food.id == food_id).first()
        if not food:
            raise NotFoundError(f"Food with ID {food_id} not found")
        image_url = food.image_url
        self.db.delete(food)
        self.db.commit()
        return [image_url] if image_url else []
