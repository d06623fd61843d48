import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt
from passlib.context import CryptContext
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared import permissions
from shared.config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from shared.errors import ConflictError, DomainError, NotFoundError
from shared.pagination import paginate
from user_service import models
from user_service.schemas import RegisterRequest, UserCreate, UserSelfUpdate, UserUpdate

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

USER_ID_LENGTH = 28


def get_password_hash(password):
    return pwd_context.hash(password)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def generate_user_id() -> str:
    # uuid4 (128 bit) cắt còn 28 ký tự, cùng độ dài với UID của provider ngoài
    return str(uuid.uuid4())[:USER_ID_LENGTH]


def create_access_token(data: dict):
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def user_status(last_login_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    """'Active' nếu đăng nhập trong vòng một ngày (hoặc chưa từng ghi nhận), ngược lại '<n> days ago'."""
    if last_login_at is None:
        return "Active"
    now = now or datetime.utcnow()
    days_ago = (now - last_login_at).days
    if days_ago > 0:
        return f"{days_ago} days ago"
    return "Active"


def token_payload(user: models.User) -> dict:
    return {
        "sub": user.username,
        "id": user.id,
        "role": user.role.name,
        "permissions": user.role.permission_names,
    }


def ensure_default_roles(db: Session):
    """Tạo permission và các role mặc định nếu chưa có (chạy lúc khởi động service)."""
    existing = {p.name: p for p in db.query(models.Permission).all()}
    for name in permissions.ALL:
        if name not in existing:
            existing[name] = models.Permission(name=name)
            db.add(existing[name])

    for role_name, perm_names in permissions.DEFAULT_ROLES.items():
        role = db.query(models.Role).filter(models.Role.name == role_name).first()
        if role:
            # Role đã có: chỉ bổ sung quyền mặc định còn thiếu
            owned = set(role.permission_names)
            role.permissions.extend(existing[n] for n in perm_names if n not in owned)
            continue
        role = models.Role(name=role_name, permissions=[existing[n] for n in perm_names])
        db.add(role)
        logger.info("Created default role %s", role_name)
    db.commit()


class UserService:
    def __init__(self, db: Session):
        self.db = db

    # --- TRA CỨU ---
    def find_by_id(self, user_id: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.id == user_id).first()

    def find_by_username(self, username: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.username == username).first()

    def find_by_email(self, email: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.email == email).first()

    def find_one(self, user_id: str) -> models.User:
        user = self.find_by_id(user_id)
        if not user:
            raise NotFoundError(f"User with id {user_id} not found")
        return user

    def get_me(self, user_id: str) -> models.User:
        return self.find_one(user_id)

    def find_all(self, page: int = 1, page_size: int = 10, now: Optional[datetime] = None) -> dict:
        now = now or datetime.utcnow()

        def to_item(user):
            return {
                "id": user.id,
                "name": user.name,
                "email": user.email,
                "createdAt": user.created_at.strftime("%d-%m-%Y") if user.created_at else "",
                "status": user_status(user.last_login_at, now),
            }

        query = self.db.query(models.User).order_by(models.User.created_at, models.User.id)
        return paginate(query, page, page_size, transform=to_item)

    # --- TẠO MỚI ---
    def register(self, dto: RegisterRequest) -> models.User:
        role = self.db.query(models.Role).filter(models.Role.name == permissions.DEFAULT_ROLE).first()
        if not role:
            raise NotFoundError("Default User role not found")

        user_id = dto.id or generate_user_id()
        data = dto.model_dump(exclude={"id"})
        return self._save_new(user_id, role, data)

    def create(self, dto: UserCreate) -> models.User:
        try:
            role = self.db.query(models.Role).filter(models.Role.id == dto.role).first()
            if not role:
                raise NotFoundError("Role not found")

            data = dto.model_dump(exclude={"role"})
            return self._save_new(generate_user_id(), role, data)
        except DomainError as e:
            raise type(e)(f"Failed to create user: {e.message}")

    def _save_new(self, user_id: str, role: models.Role, data: dict) -> models.User:
        if self.find_by_id(user_id):
            raise ConflictError(f"User with id {user_id} already exists")
        self._ensure_unique(data.get("username"), data.get("email"))

        data["password"] = get_password_hash(data["password"])
        new_user = models.User(id=user_id, role=role, **data)
        self.db.add(new_user)
        self._commit()
        self.db.refresh(new_user)
        logger.info("Created user %s with role %s", new_user.id, role.name)
        return new_user

    # --- CẬP NHẬT ---
    def update(self, user_id: str, dto: UserUpdate) -> models.User:
        user = self.find_one(user_id)
        data = dto.model_dump(exclude_unset=True)

        role_id = data.pop("role", None)
        if role_id:
            role = self.db.query(models.Role).filter(models.Role.id == role_id).first()
            if not role:
                raise NotFoundError("Role not found")
            user.role = role

        return self._merge(user, data)

    def update_me(self, user_id: str, dto: UserSelfUpdate) -> models.User:
        # UserSelfUpdate không có trường role nên user không thể tự đổi vai trò
        user = self.get_me(user_id)
        return self._merge(user, dto.model_dump(exclude_unset=True))

    def update_password(self, user_id: str, password: str) -> models.User:
        user = self.find_one(user_id)
        user.password = get_password_hash(password)
        self._commit()
        self.db.refresh(user)
        return user

    def link_provider(self, user_id: str, provider: str, provider_id: str) -> models.User:
        user = self.find_one(user_id)
        user.auth_provider = provider
        user.provider_id = provider_id
        self._commit()
        self.db.refresh(user)
        return user

    def _merge(self, user: models.User, data: dict) -> models.User:
        # null tường minh (name, phone, avatar) xóa giá trị cũ
        self._ensure_unique(data.get("username"), data.get("email"), exclude_id=user.id)

        # Nếu có cập nhật password thì băm trước khi lưu
        if data.get("password"):
            data["password"] = get_password_hash(data["password"])

        for field, value in data.items():
            setattr(user, field, value)
        self._commit()
        self.db.refresh(user)
        return user

    def _ensure_unique(self, username: Optional[str], email: Optional[str], exclude_id: Optional[str] = None):
        conditions = []
        if username:
            conditions.append(models.User.username == username)
        if email:
            conditions.append(models.User.email == email)
        if not conditions:
            return

        query = self.db.query(models.User).filter(or_(*conditions))
        if exclude_id:
            query = query.filter(models.User.id != exclude_id)
        clash = query.first()
        if clash:
            field = "Username" if username and clash.username == username else "Email"
            raise ConflictError(f"{field} already exists")

    def _commit(self):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(f"Integrity error: {e.orig}")

    # --- XÓA ---
    def remove(self, user_id: str) -> None:
        affected = self.db.query(models.User).filter(models.User.id == user_id).delete()
        self.db.commit()
        if affected == 0:
            raise NotFoundError(f"User with id {user_id} not found")

    # --- ĐĂNG NHẬP ---
    def authenticate(self, login: str, password: str) -> Optional[models.User]:
        user = self.db.query(models.User).filter(
            or_(models.User.username == login, models.User.email == login)
        ).first()
        if not user or not verify_password(password, user.password):
            return None

        user.last_login_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(user)
        return user
