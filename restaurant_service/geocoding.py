import logging
from typing import Optional
from urllib.parse import quote

import httpx

from shared.config import HTTP_TIMEOUT, MAPBOX_TOKEN, MAPBOX_URL

logger = logging.getLogger(__name__)


def format_address(address: dict) -> str:
    parts = [address.get(key) for key in ("street", "ward", "district", "city")]
    return ", ".join(p for p in parts if p)


class Geocoder:
    """Đổi địa chỉ thành tọa độ qua Mapbox Geocoding API."""

    def __init__(self, token: str = MAPBOX_TOKEN, base_url: str = MAPBOX_URL, timeout: float = HTTP_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def geocode(self, address: dict) -> Optional[dict]:
        """Trả về {"lat", "lng"} hoặc None nếu không tìm thấy. Lỗi mạng/HTTP được raise cho caller."""
        query = format_address(address)
        if not query:
            return None
        if not self.token:
            logger.warning("MAPBOX_TOKEN is not set, skipping geocoding for %s", query)
            return None

        url = f"{self.base_url}/geocoding/v5/mapbox.places/{quote(query)}.json"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            res = await client.get(url, params={"access_token": self.token, "limit": 1})
            res.raise_for_status()

        features = res.json().get("features") or []
        if not features:
            return None
        # Mapbox trả center theo thứ tự [lng, lat]
        lng, lat = features[0]["center"][:2]
        return {"lat": lat, "lng": lng}
