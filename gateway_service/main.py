import logging

import httpx
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from shared.config import (
    HTTP_TIMEOUT, NOTIFICATION_SERVICE_URL, ORDER_SERVICE_URL, RESTAURANT_SERVICE_URL, USER_SERVICE_URL,
)
from shared.log import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Header không chuyển tiếp nguyên trạng
HOP_HEADERS = {"host", "content-length", "transfer-encoding", "connection", "content-encoding"}


def build_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=HTTP_TIMEOUT)


# --- HÀM PROXY ---
async def forward_request(service_url: str, path: str, request: Request):
    headers = {k: v for k, v in request.headers.items() if k.lower() not in HOP_HEADERS}
    body = await request.body()

    try:
        async with build_client() as client:
            response = await client.request(
                method=request.method,
                url=f"{service_url}/{path}",
                headers=headers,
                params=list(request.query_params.multi_items()),
                content=body,
            )
    except httpx.RequestError as e:
        logger.error("Gateway cannot reach %s: %s", service_url, e)
        raise HTTPException(status_code=503, detail=f"Service Unavailable: {service_url}")

    return Response(
        content=response.content,
        status_code=response.status_code,
        headers={k: v for k, v in response.headers.items() if k.lower() not in HOP_HEADERS},
    )


# ==========================================
# CÁC ROUTES ĐỊNH TUYẾN
# ==========================================

# 1. USER SERVICE
@app.api_route("/login", methods=["POST"])
async def login(req: Request):
    return await forward_request(USER_SERVICE_URL, "login", req)


@app.api_route("/register", methods=["POST"])
async def register(req: Request):
    return await forward_request(USER_SERVICE_URL, "register", req)


@app.api_route("/verify", methods=["GET"])
async def verify(req: Request):
    return await forward_request(USER_SERVICE_URL, "verify", req)


@app.api_route("/users", methods=["GET", "POST"])
async def users_root(req: Request):
    return await forward_request(USER_SERVICE_URL, "users", req)


@app.api_route("/users/{path:path}", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def users_path(path: str, req: Request):
    return await forward_request(USER_SERVICE_URL, f"users/{path}", req)


# 2. RESTAURANT SERVICE
@app.api_route("/restaurants", methods=["GET", "POST"])
async def restaurants_root(req: Request):
    return await forward_request(RESTAURANT_SERVICE_URL, "restaurants", req)


@app.api_route("/restaurants/{path:path}", methods=["GET", "POST", "PUT", "DELETE"])
async def restaurants_path(path: str, req: Request):
    return await forward_request(RESTAURANT_SERVICE_URL, f"restaurants/{path}", req)


@app.api_route("/foods/{path:path}", methods=["DELETE"])
async def foods_path(path: str, req: Request):
    return await forward_request(RESTAURANT_SERVICE_URL, f"foods/{path}", req)


@app.api_route("/static/{path:path}", methods=["GET"])
async def static_files(path: str, req: Request):
    return await forward_request(RESTAURANT_SERVICE_URL, f"static/{path}", req)


# 3. ORDER SERVICE
@app.api_route("/checkout", methods=["POST"])
async def checkout(req: Request):
    return await forward_request(ORDER_SERVICE_URL, "checkout", req)


@app.api_route("/orders", methods=["GET"])
async def orders_root(req: Request):
    return await forward_request(ORDER_SERVICE_URL, "orders", req)


@app.api_route("/orders/{path:path}", methods=["GET", "PUT"])
async def orders_path(path: str, req: Request):
    # /orders/stats chỉ dùng nội bộ giữa các service
    if path.strip("/") == "stats":
        raise HTTPException(status_code=404, detail="Not Found")
    return await forward_request(ORDER_SERVICE_URL, f"orders/{path}", req)


@app.api_route("/shipping", methods=["GET", "POST"])
async def shipping_root(req: Request):
    return await forward_request(ORDER_SERVICE_URL, "shipping", req)


@app.api_route("/shipping/{path:path}", methods=["GET", "PUT"])
async def shipping_path(path: str, req: Request):
    return await forward_request(ORDER_SERVICE_URL, f"shipping/{path}", req)


# 4. NOTIFICATION
@app.api_route("/notify", methods=["POST"])
async def notify(req: Request):
    return await forward_request(NOTIFICATION_SERVICE_URL, "notify", req)
