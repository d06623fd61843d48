from typing import Optional

import httpx

from shared.config import HTTP_TIMEOUT, ORDER_SERVICE_URL
from shared.errors import BadRequestError, UpstreamError


class OrderStatsClient:
    """Lấy thống kê đơn hàng của một quán từ Order Service."""

    def __init__(self, base_url: str = ORDER_SERVICE_URL, timeout: float = HTTP_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    async def stats(self, restaurant_id: str, month: Optional[str] = None) -> dict:
        params = {"restaurant_id": restaurant_id}
        if month:
            params["month"] = month
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                res = await client.get(f"{self.base_url}/orders/stats", params=params)
        except httpx.RequestError as e:
            raise UpstreamError(f"Order Service unavailable: {e}")

        if res.status_code == 400:
            # Lỗi đầu vào (vd: month sai định dạng) trả nguyên cho caller
            raise BadRequestError(res.json().get("detail", res.text))
        if res.status_code != 200:
            raise UpstreamError(f"Order Service error {res.status_code}: {res.text}")
        return res.json()
