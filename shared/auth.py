import logging
from typing import Callable

import httpx
from fastapi import Depends, HTTPException, Request

from shared.config import HTTP_TIMEOUT, USER_SERVICE_URL

logger = logging.getLogger(__name__)


async def verify_user(request: Request) -> dict:
    """Gọi sang User Service để kiểm tra token, trả về payload của token."""
    token = request.headers.get("Authorization")
    if not token:
        raise HTTPException(401, "Missing Token")

    try:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
            res = await client.get(f"{USER_SERVICE_URL}/verify", headers={"Authorization": token})
    except httpx.RequestError as e:
        logger.error("User Service unavailable: %s", e)
        raise HTTPException(503, "Auth Service Unavailable")

    if res.status_code != 200:
        raise HTTPException(401, "Invalid Token from Auth Service")
    return res.json()


def require_permission(permission: str, identity: Callable = verify_user) -> Callable:
    """Dependency kiểm tra user hiện tại có quyền `permission`."""
    async def checker(user: dict = Depends(identity)) -> dict:
        if permission not in user.get("permissions", []):
            raise HTTPException(403, f"Missing permission: {permission}")
        return user
    return checker
