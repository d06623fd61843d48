import logging
from typing import Optional

import httpx

from shared.config import HTTP_TIMEOUT, NOTIFICATION_SERVICE_URL, USER_SERVICE_URL
from shared.errors import UpstreamError

logger = logging.getLogger(__name__)


class UserDirectory:
    """Tra cứu user bên User Service (chỉ đọc)."""

    def __init__(self, base_url: str = USER_SERVICE_URL, timeout: float = HTTP_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    async def get_user(self, user_id: str) -> Optional[dict]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                res = await client.get(f"{self.base_url}/internal/users/{user_id}")
        except httpx.RequestError as e:
            raise UpstreamError(f"User Service unavailable: {e}")

        if res.status_code == 404:
            return None
        if res.status_code != 200:
            raise UpstreamError(f"User Service error {res.status_code}: {res.text}")
        return res.json()


class Notifier:
    """Gửi thông báo sang Notification Service. Lỗi chỉ ghi log, không làm hỏng thao tác chính."""

    def __init__(self, base_url: str = NOTIFICATION_SERVICE_URL, timeout: float = HTTP_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    async def notify(self, user_id: str, message: str) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                res = await client.post(f"{self.base_url}/notify", json={"user_id": user_id, "message": message})
                res.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("⚠️ Notification to user %s failed: %s", user_id, e)
