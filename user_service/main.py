from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from shared import permissions
from shared.auth import require_permission
from shared.config import ALGORITHM, SECRET_KEY
from shared.errors import BadRequestError, NotFoundError, register_error_handlers
from shared.log import setup_logging
from shared.pagination import page_params
from user_service.database import Base, SessionLocal, engine, get_db
from user_service.schemas import (
    LoginRequest, PasswordUpdate, ProviderLink, RegisterRequest, TokenResponse,
    UserCreate, UserPage, UserResponse, UserSelfUpdate, UserUpdate,
)
from user_service.services import UserService, create_access_token, ensure_default_roles, token_payload

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ensure_default_roles(db)
    finally:
        db.close()
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


def get_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)


def current_user(authorization: str = Header(None)) -> dict:
    """Giải mã token ngay tại User Service (các service khác gọi /verify)."""
    if not authorization:
        raise HTTPException(401, "Missing Token")
    token = authorization.replace("Bearer ", "")
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(401, "Invalid Token")


def allow(permission: str):
    return require_permission(permission, identity=current_user)


# --- API AUTH ---
@app.post("/register", response_model=UserResponse)
def register(payload: RegisterRequest, service: UserService = Depends(get_service)):
    return service.register(payload)


@app.post("/login", response_model=TokenResponse)
def login(req: LoginRequest, service: UserService = Depends(get_service)):
    user = service.authenticate(req.login, req.password)
    if not user:
        raise HTTPException(401, "Incorrect username/email or password")

    token_data = token_payload(user)
    return {
        "access_token": create_access_token(token_data),
        "token_type": "bearer",
        "id": user.id,
        "role": token_data["role"],
        "permissions": token_data["permissions"],
    }


@app.get("/verify")
def verify_token(payload: dict = Depends(current_user)):
    return payload


# --- API NGƯỜI DÙNG HIỆN TẠI ---
@app.get("/users/me", response_model=UserResponse)
def get_me(user: dict = Depends(current_user), service: UserService = Depends(get_service)):
    return service.get_me(user["id"])


@app.put("/users/me", response_model=UserResponse)
def update_me(payload: UserSelfUpdate, user: dict = Depends(current_user),
              service: UserService = Depends(get_service)):
    return service.update_me(user["id"], payload)


@app.put("/users/me/password", response_model=UserResponse)
def update_my_password(payload: PasswordUpdate, user: dict = Depends(current_user),
                       service: UserService = Depends(get_service)):
    return service.update_password(user["id"], payload.password)


# --- API QUẢN TRỊ ---
@app.post("/users", response_model=UserResponse, dependencies=[Depends(allow(permissions.USER_CREATE))])
def create_user(payload: UserCreate, service: UserService = Depends(get_service)):
    return service.create(payload)


@app.get("/users", response_model=UserPage, dependencies=[Depends(allow(permissions.USER_READ))])
def list_users(paging: tuple = Depends(page_params), service: UserService = Depends(get_service)):
    page, page_size = paging
    return service.find_all(page, page_size)


@app.get("/users/lookup", response_model=UserResponse, dependencies=[Depends(allow(permissions.USER_READ))])
def lookup_user(username: Optional[str] = Query(None), email: Optional[str] = Query(None),
                service: UserService = Depends(get_service)):
    if not username and not email:
        raise BadRequestError("username or email is required")
    user = service.find_by_username(username) if username else service.find_by_email(email)
    if not user:
        raise NotFoundError("User not found")
    return user


@app.get("/users/{user_id}", response_model=UserResponse, dependencies=[Depends(allow(permissions.USER_READ))])
def get_user(user_id: str, service: UserService = Depends(get_service)):
    return service.find_one(user_id)


@app.put("/users/{user_id}", response_model=UserResponse, dependencies=[Depends(allow(permissions.USER_WRITE))])
@app.patch("/users/{user_id}", response_model=UserResponse, dependencies=[Depends(allow(permissions.USER_WRITE))])
def update_user(user_id: str, payload: UserUpdate, service: UserService = Depends(get_service)):
    return service.update(user_id, payload)


@app.put("/users/{user_id}/password", response_model=UserResponse,
         dependencies=[Depends(allow(permissions.USER_WRITE))])
def update_user_password(user_id: str, payload: PasswordUpdate, service: UserService = Depends(get_service)):
    return service.update_password(user_id, payload.password)


@app.put("/users/{user_id}/provider", response_model=UserResponse,
         dependencies=[Depends(allow(permissions.USER_WRITE))])
def link_provider(user_id: str, payload: ProviderLink, service: UserService = Depends(get_service)):
    return service.link_provider(user_id, payload.provider, payload.provider_id)


@app.delete("/users/{user_id}", dependencies=[Depends(allow(permissions.USER_DELETE))])
def delete_user(user_id: str, service: UserService = Depends(get_service)):
    service.remove(user_id)
    return {"message": "Deleted"}


# --- INTERNAL API (Cho các service khác kiểm tra user tồn tại) ---
@app.get("/internal/users/{user_id}", response_model=UserResponse)
def internal_get_user(user_id: str, service: UserService = Depends(get_service)):
    return service.find_one(user_id)
