import os

# --- DỊCH VỤ NỘI BỘ ---
USER_SERVICE_URL = os.getenv("USER_SERVICE_URL", "http://user_service:8001")
RESTAURANT_SERVICE_URL = os.getenv("RESTAURANT_SERVICE_URL", "http://restaurant_service:8002")
ORDER_SERVICE_URL = os.getenv("ORDER_SERVICE_URL", "http://order_service:8003")
NOTIFICATION_SERVICE_URL = os.getenv("NOTIFICATION_SERVICE_URL", "http://notification_service:8006")

# Timeout (giây) cho mọi lời gọi HTTP ra ngoài
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", 5))

# --- DATABASE ---
DB_USER = os.getenv("DB_ROOT_USER", "root")
DB_PASS = os.getenv("DB_PASSWORD", "123456")

# --- JWT ---
SECRET_KEY = os.getenv("SECRET_KEY", "chuoi_mac_dinh_phong_khi_quen_set_env")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 30))

# --- FILE & GEOCODING ---
STATIC_DIR = os.getenv("STATIC_DIR", "static")
MAPBOX_TOKEN = os.getenv("MAPBOX_TOKEN", "")
MAPBOX_URL = os.getenv("MAPBOX_URL", "https://api.mapbox.com")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def database_url(service: str, default_db: str) -> str:
    """URL kết nối MySQL cho một service, có thể ghi đè toàn bộ bằng <SERVICE>_DATABASE_URL."""
    override = os.getenv(f"{service}_DATABASE_URL")
    if override:
        return override
    host = os.getenv(f"{service}_DB_HOST", "db")
    return f"mysql+pymysql://{DB_USER}:{DB_PASS}@{host}/{default_db}"
